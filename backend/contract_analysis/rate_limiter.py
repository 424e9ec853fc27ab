"""
Rate limiting for the contract analysis API.

Two layers:

* a blanket per-IP slowapi limiter covering every route, and
* ``RateLimiter``, a per-identity fixed-window counter used by the expensive
  routes (analysis, upload) so that limits follow the user rather than the IP.

Both keep their counters in a ``limits`` storage built from
``RATE_LIMIT_STORAGE_URI``. ``memory://`` is only correct for a single
instance; point it at redis or memcached when running more than one.
"""
import logging
import math
import time
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request, Response
from limits import RateLimitItemPerSecond
from limits.storage import storage_from_string
from limits.strategies import FixedWindowRateLimiter
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from fastapi.responses import JSONResponse

from contract_analysis.config import settings
from contract_analysis.exceptions import RateLimitExceededError
from contract_analysis.models.user import User
from contract_analysis.utils.dependencies import require_auth
from contract_analysis.utils.security import get_client_ip

logger = logging.getLogger(__name__)


# Blanket limiter for all routes
limiter = Limiter(
    key_func=get_client_ip,
    default_limits=[settings.DEFAULT_RATE_LIMIT],
    enabled=settings.RATE_LIMIT_ENABLED,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    headers_enabled=False,
    strategy="fixed-window",
)


@dataclass(frozen=True)
class RateLimitPreset:
    max_requests: int
    window_seconds: int


class RateLimits:
    """Per-identity limits for the expensive endpoints."""
    ANALYSIS = RateLimitPreset(max_requests=10, window_seconds=3600)
    UPLOAD = RateLimitPreset(max_requests=20, window_seconds=3600)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_time: float  # epoch seconds
    limit: int

    @property
    def retry_after(self) -> int:
        return max(1, math.ceil(self.reset_time - time.time()))

    def headers(self) -> dict:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_time * 1000)),
        }


class RateLimiter:
    """
    Fixed-window request counter keyed by identity.

    ``check`` never raises: if the store fails the request is admitted and
    the failure is logged.
    """

    def __init__(self, storage_uri: str = "memory://"):
        self.storage = storage_from_string(storage_uri)
        self.strategy = FixedWindowRateLimiter(self.storage)

    def check(self, identity: str, max_requests: int, window_seconds: int) -> RateLimitResult:
        item = RateLimitItemPerSecond(max_requests, window_seconds)
        try:
            allowed = self.strategy.hit(item, identity)
            reset_time, remaining = self.strategy.get_window_stats(item, identity)
        except Exception as e:
            logger.error(f"Rate limit store failure for {identity}: {e}")
            return RateLimitResult(
                allowed=True,
                remaining=max_requests - 1,
                reset_time=time.time() + window_seconds,
                limit=max_requests,
            )

        return RateLimitResult(
            allowed=allowed,
            remaining=max(0, remaining),
            reset_time=reset_time,
            limit=max_requests,
        )

    def reset(self) -> None:
        self.storage.reset()


_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """FastAPI dependency returning the process-wide limiter."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter(settings.RATE_LIMIT_STORAGE_URI)
    return _rate_limiter


def rate_limit_identity(request: Request, user: Optional[User] = None) -> str:
    if user is not None:
        return f"user:{user.id}"
    return f"ip:{get_client_ip(request) or 'unknown'}"


def enforce_rate_limit(
    limiter_: RateLimiter,
    identity: str,
    preset: RateLimitPreset,
    response: Optional[Response] = None,
) -> RateLimitResult:
    """Count one request against ``identity``; raise 429 when over the limit."""
    result = limiter_.check(identity, preset.max_requests, preset.window_seconds)
    if not result.allowed:
        logger.warning(f"Rate limit exceeded for {identity}")
        headers = result.headers()
        headers["Retry-After"] = str(result.retry_after)
        raise RateLimitExceededError(retry_after=result.retry_after, headers=headers)

    if response is not None:
        response.headers.update(result.headers())
    return result


def rate_limit(preset: RateLimitPreset):
    """Build a route dependency applying ``preset`` to the current user."""

    def dependency(
        request: Request,
        response: Response,
        user: User = Depends(require_auth),
        limiter_: RateLimiter = Depends(get_rate_limiter),
    ) -> RateLimitResult:
        return enforce_rate_limit(limiter_, rate_limit_identity(request, user), preset, response)

    return dependency


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """Handler for the blanket slowapi limiter."""
    logger.warning(
        f"Rate limit exceeded: {exc.detail} for {get_client_ip(request)} on {request.url.path}"
    )
    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "message": "Too many requests. Please try again later.",
            "retryAfter": 60,
        },
        headers={"Retry-After": "60"},
    )
