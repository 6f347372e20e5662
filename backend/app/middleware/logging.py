"""
DoggyClub Backend — Request Logging Middleware
================================================

What:  One access log line per HTTP request: method, path, status, duration.
Who:   Applied to every request via Starlette middleware.
When:  After RequestIDMiddleware (uses the request ID for correlation).

Log level follows the status class: 5xx → ERROR, 4xx → WARNING, else INFO.
Bodies are never logged; location reports are personal data.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.auth import USER_ID_HEADER
from app.middleware.request_id import request_id_var

logger = logging.getLogger("doggyclub.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs method, path, status, duration and client for each request.

    Typical durations:
        - GET /health: 1-5ms
        - PUT /api/locations: 5-20ms (one upsert)
        - POST /api/encounters/detect: 10-100ms (box query + one insert per new pair)
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start_time = time.perf_counter()

        path = request.url.path

        # Health probes every few seconds would drown everything else
        if path == "/health":
            return await call_next(request)

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        fields = {
            "request_id": request_id_var.get(""),
            "method": request.method,
            "path": path,
            "status": status,
            "duration_ms": round(duration_ms, 2),
            "client_ip": request.client.host if request.client else "unknown",
            "user_id": request.headers.get(USER_ID_HEADER, "-"),
        }

        logger.log(
            _level_for(status),
            "%(method)s %(path)s %(status)d %(duration_ms).1fms [%(request_id)s] user=%(user_id)s from %(client_ip)s",
            fields,
            extra=fields,
        )

        return response


def _level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO
