"""Rate limiting configuration for the API."""

import logging
import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

logger = logging.getLogger(__name__)

# Redis backs the limiter for multi-worker deployments.
# Falls back to in-memory if Redis is not available (dev/test mode)
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")


def per_minute(limit: int) -> str:
    return f"{limit}/minute"


DEFAULT_LIMITS = (
    []
    if IS_TESTING or settings.RATE_LIMIT_API <= 0
    else [per_minute(settings.RATE_LIMIT_API)]
)
WEBHOOK_LIMIT = per_minute(settings.RATE_LIMIT_WEBHOOK)
WRITE_LIMIT = per_minute(settings.RATE_LIMIT_WRITE)
SEARCH_LIMIT = per_minute(settings.RATE_LIMIT_SEARCH)
EXPORT_LIMIT = per_minute(settings.RATE_LIMIT_EXPORT)


def _build_limiter() -> Limiter:
    if IS_TESTING:
        # In-memory storage for tests (no Redis dependency), limits off
        return Limiter(
            key_func=get_remote_address,
            storage_uri="memory://",
            default_limits=DEFAULT_LIMITS,
            enabled=False,
        )

    try:
        import redis

        client = redis.from_url(REDIS_URL, socket_connect_timeout=1)
        client.ping()
        return Limiter(
            key_func=get_remote_address,
            storage_uri=REDIS_URL,
            default_limits=DEFAULT_LIMITS,
        )
    except Exception as e:
        logger.warning("Redis unavailable for rate limiting, using in-memory: %s", e)
        return Limiter(
            key_func=get_remote_address,
            storage_uri="memory://",
            default_limits=DEFAULT_LIMITS,
        )


limiter = _build_limiter()
