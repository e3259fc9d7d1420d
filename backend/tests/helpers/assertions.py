"""Assertion helper utilities for tests."""

from __future__ import annotations


def assert_json_keys(data: dict, required: set[str]) -> None:
    """Ensure that all required keys are present in ``data``.

    Raises
    ------
    AssertionError
        If any required key is missing.
    """

    missing = required - data.keys()
    assert not missing, f"Missing keys: {', '.join(sorted(missing))}"


def assert_problem(resp, status: int, detail: str | None = None) -> dict:
    """Validate an ``application/problem+json`` error response and return it."""

    assert resp.status_code == status, resp.get_data(as_text=True)
    assert resp.mimetype == "application/problem+json"
    body = resp.get_json()
    assert_json_keys(body, {"type", "title", "status", "detail", "code", "request_id"})
    if detail is not None:
        assert body["detail"] == detail
    return body


def assert_pagination(obj: dict) -> None:
    """Validate the admin pagination envelope."""

    assert_json_keys(obj, {"items", "total", "page", "limit", "totalPages"})
    assert isinstance(obj["items"], list)
