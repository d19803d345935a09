from __future__ import annotations

import redis.asyncio as redis

from code_runner.settings import get_settings

_redis_cache: redis.Redis | None = None


def get_redis() -> redis.Redis:
    global _redis_cache
    if _redis_cache is not None:
        return _redis_cache
    settings = get_settings()
    if settings.use_fake_redis:
        import fakeredis

        _redis_cache = fakeredis.FakeAsyncRedis(decode_responses=True)
    else:
        _redis_cache = redis.from_url(settings.redis_url, decode_responses=True)
    return _redis_cache
