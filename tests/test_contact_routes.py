"""Tests for the contact API routes.

Each test builds its own app with an in-memory limiter driven by a fake
clock, so budgets never leak between tests.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from app.adapters.rate_limit.in_memory import InMemoryTimestampStore
from app.adapters.rate_limit.redis_store import RedisTimestampStore
from app.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter
from app.core.app_factory import create_app


VALID_PAYLOAD = {
    "name": "Ada Lovelace",
    "email": "ada@example.com",
    "company": "Analytical Engines Ltd",
    "message": "We would like a quote for a new website.",
}


def _client_for(limiter: SlidingWindowRateLimiter) -> TestClient:
    return TestClient(create_app(limiter_factory=lambda: limiter))


@pytest.fixture
def limiter(clock) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(InMemoryTimestampStore(clock=clock), clock=clock)


@pytest.fixture
def client(limiter):
    with _client_for(limiter) as test_client:
        yield test_client


def _post(client: TestClient, ip: str = "198.51.100.7", payload: dict | None = None):
    return client.post(
        "/v1/contact",
        json=payload if payload is not None else VALID_PAYLOAD,
        headers={"X-Forwarded-For": f"{ip}, 10.0.0.1"},
    )


def test_submission_accepted_with_rate_limit_headers(client) -> None:
    response = _post(client)

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Form submitted successfully"
    assert body["data"]["submission_id"]
    assert response.headers["X-RateLimit-Limit"] == "3"
    assert response.headers["X-RateLimit-Remaining"] == "2"
    assert response.headers["X-RateLimit-Reset"].endswith("+00:00")


def test_fourth_submission_is_rejected(client) -> None:
    remaining = [_post(client).headers["X-RateLimit-Remaining"] for _ in range(3)]
    assert remaining == ["2", "1", "0"]

    response = _post(client)

    assert response.status_code == 429
    error = response.json()["error"]
    assert error["code"] == "rate_limited"
    assert error["message"] == "Too many submissions. Please try again in 60 minutes."
    assert error["details"]["retry_after"] == 3600
    assert response.headers["Retry-After"] == "3600"
    assert "request_id" in error


def test_limits_are_per_client_ip(client) -> None:
    for _ in range(4):
        _post(client, ip="198.51.100.7")

    response = _post(client, ip="198.51.100.8")

    assert response.status_code == 200
    assert response.headers["X-RateLimit-Remaining"] == "2"


def test_invalid_payload_does_not_consume_budget(client) -> None:
    response = _post(client, payload={**VALID_PAYLOAD, "email": "not-an-email"})
    assert response.status_code == 422

    status = client.get(
        "/v1/contact/rate-limit", headers={"X-Forwarded-For": "198.51.100.7"}
    )
    assert status.json()["remaining"] == 3


def test_status_endpoint_reports_without_consuming(client) -> None:
    _post(client)
    headers = {"X-Forwarded-For": "198.51.100.7"}

    first = client.get("/v1/contact/rate-limit", headers=headers).json()
    second = client.get("/v1/contact/rate-limit", headers=headers).json()

    assert first == second
    assert first["limited"] is False
    assert first["remaining"] == 2
    assert first["limit"] == 3


def test_submissions_survive_redis_outage(clock) -> None:
    redis_client = MagicMock()
    redis_client.ping.side_effect = RedisConnectionError("refused")
    primary = RedisTimestampStore(redis_client, clock=clock)
    primary.connect()
    limiter = SlidingWindowRateLimiter(primary, InMemoryTimestampStore(clock=clock), clock=clock)

    with _client_for(limiter) as client:
        codes = [_post(client).status_code for _ in range(4)]
        health = client.get("/health").json()

    assert codes == [200, 200, 200, 429]
    assert health["rate_limiter"]["backend"] == "memory"
    redis_client.zadd.assert_not_called()


def test_rate_limiting_can_be_disabled(client, monkeypatch) -> None:
    monkeypatch.setattr("app.core.rate_limit.settings.app.rate_limit_enabled", False)

    codes = [_post(client).status_code for _ in range(5)]

    assert codes == [200] * 5


def test_header_toggle_keeps_retry_after_on_429(client, monkeypatch) -> None:
    monkeypatch.setattr("app.core.rate_limit.settings.app.rate_limit_include_headers", False)

    responses = [_post(client) for _ in range(4)]

    assert all("X-RateLimit-Remaining" not in r.headers for r in responses)
    assert responses[-1].status_code == 429
    assert responses[-1].headers["Retry-After"] == "3600"


def test_health_reports_backend(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "rate_limiter": {"backend": "memory"}}


def test_limiter_closed_on_shutdown() -> None:
    limiter = MagicMock(spec=SlidingWindowRateLimiter)

    with _client_for(limiter):
        pass

    limiter.close.assert_called_once()
