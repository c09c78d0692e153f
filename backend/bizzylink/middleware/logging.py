"""
BizzyLink Backend: Access Logging Middleware
=============================================

What:  One log line per request on the `bizzylink.access` logger.
Why:   Gives every request a duration and a request ID, so a slow plugin
       lookup or a failing forum call can be traced to its error envelope.
How:   Measures the time spent in the rest of the stack and logs method,
       path, status, duration, request ID and client IP. The same values are
       attached as `extra` fields for structured handlers.
Who:   Every request except /health.
When:  Inside RequestIDMiddleware, so the request ID is already set.

Log line:
    GET /api/forum/categories 200 12.4ms [a1b2c3d4] from 203.0.113.7

    extra={"request_id", "method", "path", "status", "duration_ms",
           "client_ip"}

Levels:
    5xx → ERROR    a server fault, worth an alert
    4xx → WARNING  bad input, expired tokens, rate limits
    else → INFO
    /health is not logged; load balancers hit it every few seconds.

What we log vs what we don't:
    ✅ method, path, status, duration, client IP, request ID
    ❌ request bodies (passwords, link codes), Authorization and
       X-Server-Key headers
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from bizzylink.middleware.request_id import request_id_var

logger = logging.getLogger("bizzylink.access")

QUIET_PATHS = {"/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs one line per finished request.

    Duration runs from middleware entry to the response leaving the stack:
    validation, database queries and serialization, but not background tasks
    such as the link webhook, which run after the response is sent.

    Typical durations:
        - POST /api/minecraft/lookup: 2-10ms (one indexed query)
        - GET /api/forum/categories/{category_id}/threads: 10-50ms
        - POST /api/auth/login: 50-300ms (bcrypt dominates)
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        method = request.method

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        rid = request_id_var.get("") or getattr(request.state, "request_id", "")
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
