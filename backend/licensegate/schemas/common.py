"""Common Marshmallow schemas and fields shared across resources."""

from __future__ import annotations

from datetime import UTC, date, datetime, time
from typing import Any

from marshmallow import fields


class DateOrDateTime(fields.Field):
    """Accept an ISO date or datetime and return an aware UTC ``datetime``.

    A bare date expands to the start of that day, or to its last instant when
    ``end_of_day`` is set, so ``createdTo=2024-01-31`` includes the whole day.
    """

    default_error_messages = {"invalid": "Not a valid ISO date or datetime."}

    def __init__(self, *, end_of_day: bool = False, **kwargs: Any) -> None:
        self.end_of_day = end_of_day
        super().__init__(**kwargs)

    def _deserialize(self, value: Any, attr: str | None, data: Any, **kwargs: Any) -> datetime:
        if not isinstance(value, str) or not value.strip():
            raise self.make_error("invalid")
        raw = value.strip()
        try:
            if len(raw) == 10:
                day = date.fromisoformat(raw)
                return datetime.combine(day, time.max if self.end_of_day else time.min, tzinfo=UTC)
            parsed = datetime.fromisoformat(raw)
        except ValueError as exc:
            raise self.make_error("invalid") from exc
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=UTC)
        return parsed.astimezone(UTC)

    def _serialize(self, value: Any, attr: str | None, obj: Any, **kwargs: Any) -> str | None:
        return value.isoformat() if value is not None else None
