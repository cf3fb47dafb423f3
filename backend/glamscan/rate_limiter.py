"""
Fixed-window rate limiting kept in process memory.

Counters live in a `limits` MemoryStorage, so they reset on restart and are
not shared between workers. Each limiter namespaces its keys by name.
"""
import logging
import math
import time
from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from limits import RateLimitItem, RateLimitItemPerMinute
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter

from .config import settings
from .exceptions import RateLimitError

logger = logging.getLogger(__name__)

_storage = MemoryStorage()
_strategy = FixedWindowRateLimiter(_storage)


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_time: float  # epoch seconds at which the current window closes


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def auth_key(request: Request, email: Optional[str] = None) -> str:
    """Auth limits are tracked per email when one is known, per IP otherwise."""
    if email:
        return f"auth:{email.strip().lower()}"
    return f"auth:ip:{get_client_ip(request)}"


class RateLimiter:
    def __init__(self, name: str, limit: RateLimitItem, message: str):
        self.name = name
        self.limit = limit
        self.message = message

    def check(self, request: Request, identifier: Optional[str] = None) -> RateLimitResult:
        key = identifier or f"rate_limit:{get_client_ip(request)}"
        allowed = _strategy.hit(self.limit, self.name, key)
        reset_time, remaining = _strategy.get_window_stats(self.limit, self.name, key)
        return RateLimitResult(allowed=allowed, remaining=remaining, reset_time=reset_time)

    def enforce(self, request: Request, identifier: Optional[str] = None,
                message: Optional[str] = None) -> Optional[RateLimitResult]:
        if not settings.RATE_LIMIT_ENABLED:
            return None
        result = self.check(request, identifier)
        if not result.allowed:
            retry_after = max(1, math.ceil(result.reset_time - time.time()))
            logger.warning(f"Rate limit '{self.name}' exceeded for {identifier or get_client_ip(request)}; retry in {retry_after}s")
            raise RateLimitError(message or self.message, retry_after=retry_after)
        return result

    def __call__(self, request: Request) -> None:
        # Lets a limiter be used directly as a FastAPI dependency
        self.enforce(request)


auth_limiter = RateLimiter(
    "auth", RateLimitItemPerMinute(5, 15), "Too many authentication attempts. Please try again later."
)
general_limiter = RateLimiter(
    "general", RateLimitItemPerMinute(60), "Too many requests. Please try again later."
)
post_limiter = RateLimiter(
    "post", RateLimitItemPerMinute(10), "Too many posts created. Please slow down."
)
message_limiter = RateLimiter(
    "message", RateLimitItemPerMinute(30), "Too many messages sent. Please slow down."
)


def reset() -> None:
    """Drop every counter. Used by the test-suite between tests."""
    _storage.reset()
