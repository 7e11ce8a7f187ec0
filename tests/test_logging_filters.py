"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

from flowchart_server.core.logging import (
    SERVICE_NAME,
    JsonFormatter,
    SensitiveDataFilter,
    build_sensitive_keys,
    hash_identity,
    is_sensitive_key,
)


def make_logger(name: str, **filter_kwargs) -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(SensitiveDataFilter(**filter_kwargs))
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_sensitive_filter_redacts_credentials():
    logger, stream = make_logger("test_redaction")

    logger.info(
        "test_event",
        extra={
            "api_key": "sk-secret-123",
            "service_key": "service-role-secret",
            "safe_field": "visible",
        },
    )

    output = stream.getvalue()

    assert "sk-secret-123" not in output
    assert "service-role-secret" not in output
    assert "[REDACTED]" in output
    assert "visible" in output


def test_sensitive_filter_redacts_code_and_documents():
    """Caller code, generated pages and emails never reach the log."""
    logger, stream = make_logger("test_payload_redaction")

    logger.info(
        "generation_event",
        extra={
            "code": "def secret_algorithm(): pass",
            "html": "<html>private diagram</html>",
            "gmail": "someone@example.com",
            "code_length": 28,
        },
    )

    output = stream.getvalue()

    assert "secret_algorithm" not in output
    assert "private diagram" not in output
    assert "someone@example.com" not in output
    assert "code_length" in output


def test_sensitive_filter_redacts_nested_dicts():
    logger, stream = make_logger("test_nested")

    logger.info(
        "nested_event",
        extra={
            "headers": {"Authorization": "Bearer secret-key", "user-agent": "pytest"},
            "safe_data": {"count": 5},
        },
    )

    output = stream.getvalue()

    assert "secret-key" not in output
    assert "pytest" in output


def test_json_formatter_includes_service_and_extras():
    logger, stream = make_logger("test_json_shape")

    logger.info("quota.check", extra={"request_id": "req-123", "allowed": True})

    data = json.loads(stream.getvalue())
    assert data["message"] == "quota.check"
    assert data["service"] == SERVICE_NAME
    assert data["request_id"] == "req-123"
    assert data["allowed"] is True
    assert data["level"] == "info"


def test_hash_identity_is_stable_and_opaque():
    first = hash_identity("User@Example.com ")

    assert first == hash_identity("user@example.com")
    assert len(first) == 16
    assert "example" not in first
    assert first != hash_identity("other@example.com")


def test_credential_suffixes_are_redacted():
    assert is_sensitive_key("LLM_API_KEY")
    assert is_sensitive_key("refresh_token")
    assert not is_sensitive_key("identity_hash")
    assert not is_sensitive_key("error_code")


def test_long_strings_truncated_once():
    logger, stream = make_logger("test_truncation", max_chars=32)

    logger.error("generation.failed", extra={"error_msg": "x" * 100})

    data = json.loads(stream.getvalue())
    assert data["error_msg"] == "x" * 32 + "...[truncated 68 chars]"


def test_configured_extra_keys_are_redacted():
    keys = build_sensitive_keys(" Session_ID , ,client_ip")
    logger, stream = make_logger("test_extra_keys", sensitive_keys=keys)

    logger.info("session.opened", extra={"session_id": "abc123", "client_ip": "10.0.0.1"})

    output = stream.getvalue()
    assert "abc123" not in output
    assert "10.0.0.1" not in output
    assert build_sensitive_keys(None) >= {"code", "html", "gmail"}


def test_exception_is_rendered_in_json():
    logger, stream = make_logger("test_exc_info")

    try:
        raise RuntimeError("store unreachable")
    except RuntimeError:
        logger.exception("quota.fetch_failed")

    data = json.loads(stream.getvalue())
    assert data["level"] == "error"
    assert "RuntimeError: store unreachable" in data["exception"]
