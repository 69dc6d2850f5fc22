"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

from app.core.logging import SECURITY, JsonFormatter, SensitiveDataFilter, mask_ips


def _capture(name: str) -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_sensitive_filter_redacts_contact_fields():
    """Ensure contact form PII never reaches the log line."""

    logger, stream = _capture("test_contact_redaction")

    logger.info(
        "contact_event",
        extra={
            "email": "ada@example.com",
            "sender_name": "Ada Lovelace",
            "company": "Analytical Engines Ltd",
            "message_body": "Please call me back on my private line.",
            "message_chars": 120,
        },
    )

    output = stream.getvalue()

    assert "ada@example.com" not in output
    assert "Ada Lovelace" not in output
    assert "Analytical Engines" not in output
    assert "private line" not in output
    assert "[REDACTED]" in output
    assert "message_chars" in output


def test_raw_client_ips_are_masked():
    logger, stream = _capture("test_ip_masking")

    logger.info(
        "request from 192.168.1.100",
        extra={"client_ip": "192.168.1.100", "peer": "10.1.2.3", "forwarded": ["172.16.0.9"]},
    )

    payload = json.loads(stream.getvalue())

    assert payload["message"] == "request from 192.168.1.0"
    assert payload["client_ip"] == "[REDACTED]"
    assert payload["peer"] == "10.1.2.0"
    assert payload["forwarded"] == ["172.16.0.0"]


def test_sensitive_filter_allows_safe_fields():
    """Verify safe fields pass through unmodified."""

    logger, stream = _capture("test_safe_fields")

    logger.info(
        "safe_event",
        extra={
            "request_id": "req-123",
            "path": "/v1/contact",
            "status_code": 429,
            "key_hash": "abc123",
        },
    )

    output = stream.getvalue()

    assert "req-123" in output
    assert "/v1/contact" in output
    assert "429" in output
    assert "abc123" in output
    assert "[REDACTED]" not in output


def test_sensitive_filter_redacts_nested_dicts():
    """Ensure nested sensitive fields are redacted."""

    logger, stream = _capture("test_nested")

    logger.info(
        "nested_event",
        extra={
            "headers": {
                "X-Forwarded-For": "203.0.113.50",
                "user-agent": "pytest",
            },
            "connection": {"redis_url": "redis://:hunter2@cache:6379/0"},
        },
    )

    output = stream.getvalue()

    assert "203.0.113.50" not in output
    assert "hunter2" not in output
    assert "pytest" in output


def test_security_level_is_named():
    logger, stream = _capture("test_security_level")

    logger.log(SECURITY, "rate_limit.exceeded", extra={"limit": 3})

    payload = json.loads(stream.getvalue())
    assert payload["level"] == "security"
    assert payload["limit"] == 3


def test_mask_ips_leaves_other_text_alone():
    assert mask_ips("no address here") == "no address here"
    assert mask_ips("a 1.2.3.4 b 5.6.7.8") == "a 1.2.3.0 b 5.6.7.0"
