# Opt-in shared Redis connection used by locks.py and rate_limit.py.
# REDIS_ENABLED gates it; any connection problem leaves callers running without Redis.
import logging
import os
from typing import Optional

_logger = logging.getLogger("propswipe.redis")

_TRUTHY = {"1", "true", "t", "yes", "y", "on"}


def _truthy(val: Optional[str]) -> bool:
    return val is not None and val.strip().lower() in _TRUTHY


def is_redis_enabled() -> bool:
    return _truthy(os.getenv("REDIS_ENABLED", "false"))


# One connection attempt per process; a failed attempt is not retried
_client = None
_initialized = False


def get_redis():
    """
    Return the shared Redis client, or None when Redis is disabled or unreachable.
    """
    global _client, _initialized
    if not is_redis_enabled():
        return None
    if _initialized:
        return _client

    url = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    _initialized = True
    try:
        import redis

        client = redis.Redis.from_url(
            url,
            socket_timeout=0.25,
            socket_connect_timeout=0.25,
            retry_on_timeout=False,
            health_check_interval=0,
        )
        client.ping()
    except Exception as exc:
        _logger.warning("redis.unavailable", extra={"url": url, "error": str(exc)})
        _client = None
        return None

    _client = client
    _logger.info("redis.connected", extra={"url": url})
    return _client


def reset_redis() -> None:
    """Forget the cached client so the next get_redis() reconnects (tests, config reloads)."""
    global _client, _initialized
    _client = None
    _initialized = False
