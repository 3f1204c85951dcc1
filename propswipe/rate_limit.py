# Per-IP fixed-window rate limiting for auth, write and swipe endpoints.
# Keys: rl:v1:ip:{ip}:{scope}, expiring with the window. Fails open without Redis.
import logging
import os
from typing import Callable, Dict, Literal, Optional, Tuple

from fastapi import HTTPException, Request, status

from .redis_client import get_redis

logger = logging.getLogger("propswipe.rate_limit")

Scope = Literal["login", "signup", "write", "swipe"]

# scope -> (env var, default cap per window)
_SCOPE_LIMITS: Dict[str, Tuple[str, int]] = {
    "login": ("RATE_LIMIT_LOGIN_PER_WINDOW", 10),
    "signup": ("RATE_LIMIT_SIGNUP_PER_WINDOW", 5),
    "write": ("RATE_LIMIT_WRITE_PER_WINDOW", 30),
    # Swiping is bursty; interests and legacy match checks share this bucket
    "swipe": ("RATE_LIMIT_SWIPE_PER_WINDOW", 120),
}


def _to_int(val: Optional[str], default: int) -> int:
    try:
        return int(val) if val is not None else default
    except ValueError:
        return default


def _window_seconds() -> int:
    return _to_int(os.getenv("RATE_LIMIT_WINDOW_SECONDS"), 60)


def _limit_for_scope(scope: Scope) -> int:
    env_var, default = _SCOPE_LIMITS[scope]
    return _to_int(os.getenv(env_var), default)


def _client_ip(request: Request) -> str:
    # Forwarded headers are not trusted here
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit(scope: Scope) -> Callable[[Request], None]:
    """
    FastAPI dependency factory: at most N requests per IP per window for `scope`.

    The first hit in a window sets the key TTL; later hits share it. Exceeding the cap
    raises 429 with a retry_after hint.
    """
    window = _window_seconds()
    limit = _limit_for_scope(scope)

    def _dependency(request: Request) -> None:
        r = get_redis()
        if r is None:
            return

        ip = _client_ip(request)
        key = f"rl:v1:ip:{ip}:{scope}"
        try:
            current = r.incr(key, amount=1)
            if current == 1:
                r.expire(key, window)
            ttl = r.ttl(key) if current > limit else None
        except Exception as exc:
            logger.warning("rate_limit.fail_open", extra={"scope": scope, "ip": ip, "error": str(exc)})
            return

        if ttl is not None:
            retry_after = ttl if isinstance(ttl, int) and ttl > 0 else window
            logger.info("rate_limit.exceeded", extra={"scope": scope, "ip": ip, "limit": limit})
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={
                    "error": "rate_limited",
                    "scope": scope,
                    "limit": limit,
                    "window_seconds": window,
                    "retry_after": retry_after,
                },
                headers={"Retry-After": str(retry_after)},
            )

    return _dependency
