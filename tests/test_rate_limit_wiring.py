"""Tests for building the limiter from settings."""

from unittest.mock import MagicMock

import redis
from redis.exceptions import ConnectionError as RedisConnectionError

from app.core import rate_limit
from app.core.config import Settings


def _settings(**redis_overrides) -> Settings:
    cfg = Settings()
    for field, value in redis_overrides.items():
        setattr(cfg.redis, field, value)
    return cfg


def test_memory_only_when_redis_disabled() -> None:
    limiter = rate_limit.build_rate_limiter(_settings(enabled=False))

    assert limiter.active_backend() == "memory"
    assert limiter.limit == 3
    assert limiter.window_seconds == 3600


def test_redis_primary_when_enabled(monkeypatch) -> None:
    client = MagicMock()
    captured: dict = {}

    def _fake_from_url(url, **kwargs):
        captured["url"] = url
        captured.update(kwargs)
        return client

    monkeypatch.setattr(redis.Redis, "from_url", _fake_from_url)

    limiter = rate_limit.build_rate_limiter(
        _settings(enabled=True, url="redis://cache:6379/2", socket_timeout_seconds=1.0)
    )

    assert captured["url"] == "redis://cache:6379/2"
    assert captured["socket_timeout"] == 1.0
    client.ping.assert_called_once()
    assert limiter.active_backend() == "redis"


def test_unreachable_redis_starts_on_fallback(monkeypatch) -> None:
    client = MagicMock()
    client.ping.side_effect = RedisConnectionError("refused")
    monkeypatch.setattr(
        redis.Redis, "from_url", lambda url, **kwargs: client
    )

    limiter = rate_limit.build_rate_limiter(_settings(enabled=True))

    assert limiter.active_backend() == "memory"
    assert limiter.check("192.0.2.1").remaining == 2
