"""
DoggyClub Backend — Rate Limiting Middleware
==============================================

What:  Per-client sliding window rate limiter.
Why:   A misbehaving device app that reports its location in a tight loop
       would otherwise hammer the location upsert and detection queries.
How:   Tracks request timestamps per client key in memory.
When:  First in the middleware chain (rejects abuse before any processing).

Client key:
    The X-User-ID header when it parses as a UUID (one budget per account,
    however many devices and IPs it uses), otherwise the client IP.

Algorithm: Sliding Window Counter
    1. Each client key gets a list of request timestamps
    2. On each request, remove timestamps older than the window
    3. If remaining count >= limit, reject with 429
    4. Otherwise, add current timestamp and allow through

Production Upgrade Path:
    In-memory state is per process. For multiple workers, move the counters
    to Redis (INCR with TTL) so all workers share one budget.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.auth import USER_ID_HEADER, parse_user_id
from app.config import settings
from app.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)


def client_key(request: Request) -> str:
    # Malformed ids fall back to the IP budget
    user_id = parse_user_id(request.headers.get(USER_ID_HEADER))
    if user_id is not None:
        return f"user:{user_id}"
    host = getattr(request.client, "host", "unknown") if request.client else "unknown"
    return f"ip:{host}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory sliding window rate limiter.

    Configuration (from settings):
        rate_limit_requests: Max requests per window (default: 600)
        rate_limit_window: Window duration in seconds (default: 3600)

    Excluded paths:
        /health and the API docs are never limited.

    Thread Safety:
        Safe for single-process async (uvicorn). NOT shared between
        gunicorn workers.
    """

    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        self._requests: Dict[str, List[float]] = defaultdict(list)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        key = client_key(request)
        now = time.time()
        window_start = now - settings.rate_limit_window

        # ── Sliding Window: Clean old entries ─────────────────────────────
        self._requests[key] = [ts for ts in self._requests[key] if ts > window_start]

        # ── Check rate limit ──────────────────────────────────────────────
        if len(self._requests[key]) >= settings.rate_limit_requests:
            oldest = self._requests[key][0]
            exc = RateLimitExceededError(
                retry_after=int(oldest + settings.rate_limit_window - now) + 1
            )

            logger.warning(
                "Rate limit exceeded for %s: %d requests in %ds window",
                key,
                len(self._requests[key]),
                settings.rate_limit_window,
            )

            # Middleware runs outside the app's exception handlers, so the
            # error body is built here in the same shape they produce
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": exc.message,
                    "details": exc.context,
                },
                headers={"Retry-After": str(exc.retry_after)},
            )

        # ── Record this request ───────────────────────────────────────────
        self._requests[key].append(now)

        # ── Periodic cleanup of inactive clients ──────────────────────────
        if sum(len(v) for v in self._requests.values()) % 1000 == 0:
            self._cleanup_inactive_clients(window_start)

        return await call_next(request)

    def _cleanup_inactive_clients(self, window_start: float) -> None:
        """Drop keys with no request inside the current window."""
        inactive = [
            key for key, timestamps in self._requests.items()
            if not timestamps or max(timestamps) < window_start
        ]
        for key in inactive:
            del self._requests[key]

        if inactive:
            logger.debug("Cleaned up %d inactive rate limit entries", len(inactive))
