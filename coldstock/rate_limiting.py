"""In-memory rate limiting of the /api/ endpoints per client IP."""

import time
from collections import defaultdict, deque
from typing import Final

from fastapi import Request, status
from fastapi.responses import JSONResponse

from .config import settings
from .logging_config import get_logger
from .request_utils import (
    get_client_ip,
    is_api_request,
    is_auth_request,
    is_write_request,
)

WINDOW_SECONDS: Final = 60

logger: Final = get_logger(__name__)


class RateLimitExceeded(Exception):
    def __init__(self, limit: int, limit_type: str, current_requests: int):
        super().__init__(f"Rate limit exceeded ({limit_type}: {limit}/min)")
        self.limit = limit
        self.limit_type = limit_type
        self.current_requests = current_requests
        self.retry_after = WINDOW_SECONDS

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={
                "error": "Rate limit exceeded",
                "limit": self.limit,
                "limit_type": self.limit_type,
                "retry_after": self.retry_after,
                "current_requests": self.current_requests,
            },
            headers={"Retry-After": str(self.retry_after)},
        )


class RateLimiter:
    """Sliding window limiter with separate general, write and auth limits.

    All requests of a client share one window; the limit that applies depends
    on the request being checked, so login attempts are capped lower than
    reads while still counting towards them.
    """

    def __init__(self, general: int, write: int, auth: int):
        self._requests: defaultdict[str, deque[float]] = defaultdict(deque)
        self._limits: dict[str, int] = {
            "general": general,
            "write": write,
            "auth": auth,
        }
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False

    def enable(self) -> None:
        self._enabled = True

    def reset(self) -> None:
        self._requests.clear()

    def set_limits_for_testing(self, **limits: int) -> dict[str, int]:
        """Override some limits and return the previous ones."""
        original = dict(self._limits)
        for limit_type, value in limits.items():
            if limit_type in self._limits:
                self._limits[limit_type] = value
        return original

    def restore_limits(self, original_limits: dict[str, int]) -> None:
        self._limits.update(original_limits)

    def get_request_count(self, ip: str) -> int:
        return len(self._window(ip))

    def add_request_timestamp(self, ip: str, timestamp: float) -> None:
        self._requests[ip].append(timestamp)

    def limit_for(self, request: Request) -> tuple[int, str]:
        if is_auth_request(request):
            limit_type = "auth"
        elif is_write_request(request):
            limit_type = "write"
        else:
            limit_type = "general"
        return self._limits[limit_type], limit_type

    def get_rate_limit_info(self, request: Request) -> tuple[int, int, int]:
        """Limit, remaining requests and reset time (epoch seconds)."""
        limit, _ = self.limit_for(request)
        used = len(self._window(get_client_ip(request)))
        return limit, max(0, limit - used), int(time.time()) + WINDOW_SECONDS

    def _window(self, ip: str) -> deque[float]:
        """Timestamps of the last minute, with older ones dropped."""
        timestamps = self._requests[ip]
        cutoff = time.time() - WINDOW_SECONDS
        while timestamps and timestamps[0] <= cutoff:
            timestamps.popleft()
        return timestamps

    def check_rate_limit(self, request: Request) -> None:
        """Count the request, or raise RateLimitExceeded when over the limit."""
        if not self._enabled:
            return

        client_ip = get_client_ip(request)
        limit, limit_type = self.limit_for(request)
        timestamps = self._window(client_ip)

        if len(timestamps) >= limit:
            logger.warning(
                "Rate limit exceeded",
                client_ip=client_ip,
                limit_type=limit_type,
                limit=limit,
                path=request.url.path,
            )
            raise RateLimitExceeded(limit, limit_type, len(timestamps))

        timestamps.append(time.time())


rate_limiter: Final = RateLimiter(
    general=settings.rate_limit_general,
    write=settings.rate_limit_write,
    auth=settings.rate_limit_auth,
)


async def rate_limit_middleware(request: Request, call_next):
    if not is_api_request(request):
        return await call_next(request)

    try:
        rate_limiter.check_rate_limit(request)
    except RateLimitExceeded as exceeded:
        return exceeded.to_response()

    response = await call_next(request)

    limit, remaining, reset_time = rate_limiter.get_rate_limit_info(request)
    response.headers["X-RateLimit-Limit"] = str(limit)
    response.headers["X-RateLimit-Remaining"] = str(remaining)
    response.headers["X-RateLimit-Reset"] = str(reset_time)
    return response
