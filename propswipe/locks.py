# Short per-resource Redis locks guarding interest creation and confirmation across workers.
# Fails open: with Redis disabled or down every caller proceeds as if it held the lock.
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator
from uuid import uuid4

from .errors import BusyError
from .redis_client import get_redis

logger = logging.getLogger("propswipe.locks")

# Compare-and-delete so an expired lock re-acquired by another worker is never released by us
_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
else
    return 0
end
"""


@contextmanager
def redis_try_lock(key: str, ttl_ms: int = 5000) -> Iterator[bool]:
    """
    Yield True when `key` was acquired (or Redis is unavailable), False when another worker holds it.

        with redis_try_lock(f"lock:interest:{renter_id}:{property_id}") as locked:
            if not locked:
                raise BusyError(...)
    """
    r = get_redis()
    if r is None:
        yield True
        return

    token = uuid4().hex
    acquired = False
    try:
        acquired = bool(r.set(key, token, nx=True, px=ttl_ms))
    except Exception as exc:
        logger.warning("lock.acquire_failed", extra={"key": key, "error": str(exc)})
        yield True
        return

    try:
        yield acquired
    finally:
        if acquired:
            try:
                r.eval(_RELEASE_SCRIPT, 1, key, token)
            except Exception as exc:
                # Left to expire by TTL
                logger.debug("lock.release_failed", extra={"key": key, "error": str(exc)})


@contextmanager
def exclusive(key: str, resource: str, ttl_ms: int = 5000) -> Iterator[None]:
    """Run the block holding `key`; raise BusyError when it is held elsewhere."""
    with redis_try_lock(key, ttl_ms=ttl_ms) as locked:
        if not locked:
            logger.info("lock.busy", extra={"key": key})
            raise BusyError(resource, retry_after=max(1, ttl_ms // 1000))
        yield
