import logging
from typing import Callable, Optional

from fastapi import Request
from redis import Redis, ConnectionPool, RedisError

from app.core.config import settings
from app.core.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)

# Simple Redis-based fixed-window rate limiter
_pool: Optional[ConnectionPool] = None
_client: Optional[Redis] = None


def get_client() -> Redis:
    global _pool, _client
    if _client is None:
        _pool = ConnectionPool.from_url(settings.REDIS_URL, decode_responses=True)
        _client = Redis(connection_pool=_pool)
    return _client


def allow(key: str, limit: int, window_seconds: int, client: Optional[Redis] = None) -> bool:
    """Return True if action under key is allowed within window, else False.

    Uses INCR + EXPIRE (nx) so the window starts at the first hit.
    """
    r = client or get_client()
    with r.pipeline() as pipe:
        pipe.incr(key, 1)
        pipe.expire(key, window_seconds, nx=True)
        count, _ = pipe.execute()
    return int(count) <= limit


def client_ip(request: Request) -> str:
    # One trusted proxy in front: only the hop it appended (rightmost) is reliable,
    # everything to its left is client-supplied
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        hop = forwarded.split(",")[-1].strip()
        if hop:
            return hop
    return request.client.host if request.client else "unknown"


def rate_limit(scope: str, limit: int, window_seconds: int, message: str) -> Callable[[Request], None]:
    """Dependency factory enforcing ``limit`` hits per ``window_seconds`` per client IP."""

    def _rate_limit_dependency(request: Request) -> None:
        if not settings.RATE_LIMIT_ENABLED:
            return
        key = f"ratelimit:{scope}:{client_ip(request)}"
        try:
            allowed = allow(key, limit, window_seconds)
        except RedisError as e:
            # Limiter outage must not take the API down with it
            logger.warning("Rate limiter unavailable for %s: %s", scope, e)
            return
        if not allowed:
            raise RateLimitExceededError(message)

    return _rate_limit_dependency


waitlist_limiter = rate_limit(
    "waitlist",
    settings.WAITLIST_RATE_LIMIT,
    settings.WAITLIST_RATE_WINDOW_SECONDS,
    "Too many requests, please try again later.",
)

verify_email_limiter = rate_limit(
    "verify-email",
    settings.VERIFY_RATE_LIMIT,
    settings.VERIFY_RATE_WINDOW_SECONDS,
    "Too many verification attempts, please try again later.",
)

admin_limiter = rate_limit(
    "admin",
    settings.ADMIN_RATE_LIMIT,
    settings.ADMIN_RATE_WINDOW_SECONDS,
    "Too many requests, please slow down.",
)
