"""Unit tests for the logging utility."""

from __future__ import annotations

import json
import logging

import pytest
from flask import g

from licensegate.core.logger import (
    REDACTED,
    JSONFormatter,
    bind_request_id,
    configure_logging,
    ensure_request_id,
    redact_tokens,
)


@pytest.fixture()
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.mark.usefixtures("_restore_root_logger")
def test_configure_logging_sets_level() -> None:
    """``configure_logging`` should set the root logger level."""
    configure_logging("DEBUG")

    assert logging.getLogger().level == logging.DEBUG
    assert isinstance(logging.getLogger().handlers[0].formatter, JSONFormatter)


def test_json_formatter_copies_structured_extras() -> None:
    record = logging.LogRecord(
        "licensegate.test", logging.INFO, __file__, 1, "redeemed %s", ("x",), None
    )
    record.coupon_id = "c" * 32
    record.user_id = "u" * 32
    record.unrelated = "dropped"

    payload = json.loads(JSONFormatter().format(record))

    assert payload["message"] == "redeemed x"
    assert payload["level"] == "INFO"
    assert payload["coupon_id"] == "c" * 32
    assert payload["user_id"] == "u" * 32
    assert "unrelated" not in payload


def test_request_id_prefers_the_correlation_header(app) -> None:
    with app.test_request_context(headers={"X-Correlation-ID": "abc-123"}):
        assert ensure_request_id() == "abc-123"
        assert ensure_request_id() == "abc-123"


def test_response_echoes_request_id(client) -> None:
    resp = client.get("/api/v1/health", headers={"X-Request-ID": "req-42"})
    assert resp.headers["X-Request-ID"] == "req-42"


def test_each_request_gets_its_own_id(client) -> None:
    first = client.get("/api/v1/health", headers={"X-Request-ID": "req-a"})
    second = client.get("/api/v1/health", headers={"X-Request-ID": "req-b"})
    minted = client.get("/api/v1/health")

    assert first.headers["X-Request-ID"] == "req-a"
    assert second.headers["X-Request-ID"] == "req-b"
    assert minted.headers["X-Request-ID"] not in {"req-a", "req-b"}


def test_bind_request_id_replaces_a_stale_value(app) -> None:
    with app.test_request_context(headers={"X-Request-ID": "fresh"}):
        g.request_id = "stale"
        assert bind_request_id() == "fresh"
        assert ensure_request_id() == "fresh"


def test_tokens_never_reach_the_log_line(services) -> None:
    token = services.codec.issue_access_token({"id": "u" * 32})
    record = logging.LogRecord(
        "licensegate.test", logging.WARNING, __file__, 1, "rejected %s", (token,), None
    )

    payload = json.loads(JSONFormatter().format(record))

    assert token not in payload["message"]
    assert payload["message"] == f"rejected {REDACTED}"
    assert redact_tokens("no secrets here") == "no secrets here"
