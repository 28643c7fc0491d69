"""Shared slowapi limiter for the tenderlink API.

RATE_LIMIT_DEFAULT applies to every route; the crawler webhook carries
its own tighter RATE_LIMIT_WEBHOOK. Counters live in Redis when REDIS_URL
answers a ping, so every uvicorn worker sees the same budget; otherwise
each worker counts in memory on its own.
"""

from loguru import logger
from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import settings


def _storage_uri() -> str | None:
    if not (settings.rate_limit_enabled and settings.redis_url):
        return None
    try:
        import redis

        redis.from_url(settings.redis_url, socket_connect_timeout=2).ping()
    except Exception as e:
        logger.warning(f"Redis unreachable ({e}); per-worker in-memory rate limits")
        return None
    logger.info("Rate limits stored in Redis")
    return settings.redis_url


limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit_default],
    enabled=settings.rate_limit_enabled,
    storage_uri=_storage_uri(),
)
