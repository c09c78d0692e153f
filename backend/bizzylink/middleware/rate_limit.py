"""
BizzyLink Backend: Rate Limiting Middleware
============================================

What:  Per-IP sliding-window request limit.
Why:   Caps login guessing and link-code generation from any one address.
How:   Keeps the timestamps of each IP's requests inside the window. When an
       IP already has `rate_limit_requests` of them, the request is answered
       429 with a Retry-After header in the usual error envelope.
Who:   Every request, except the exemptions below.
When:  Outermost custom middleware, so a rejected request never reaches
       request logging or a database session.

Algorithm: sliding window
    1. Each IP maps to the timestamps of its requests.
    2. On each request, timestamps older than `rate_limit_window` are dropped.
    3. If `rate_limit_requests` remain, reject with 429. Retry-After is the
       time until the oldest one leaves the window.
    4. Otherwise record the request and let it through.
    Every CLEANUP_EVERY admitted requests, IPs with no recent request are
    forgotten.

Exemptions:
    - /health and the API docs
    - Minecraft plugin calls carrying the correct X-Server-Key. The game
      server sends a lookup for every player join from a single IP, so it
      would exhaust a per-IP budget within minutes. A wrong key gets no
      exemption.

The counters live in process memory. Each worker process keeps its own
window, so the effective limit scales with the number of workers.
"""

import hmac
import logging
import time
from collections import defaultdict
from typing import Dict, List

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from bizzylink.config import settings

logger = logging.getLogger(__name__)

CLEANUP_EVERY = 1000


def _has_server_key(request: Request) -> bool:
    supplied = request.headers.get("X-Server-Key")
    expected = settings.server_api_key
    if not supplied or not expected:
        return False
    return hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


class RateLimitMiddleware(BaseHTTPMiddleware):
    """In-memory sliding window, keyed by client IP."""

    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._seen = 0

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.EXCLUDED_PATHS or _has_server_key(request):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.time()
        window_start = now - settings.rate_limit_window

        timestamps = [ts for ts in self._requests[client_ip] if ts > window_start]
        self._requests[client_ip] = timestamps

        if len(timestamps) >= settings.rate_limit_requests:
            retry_after = int(timestamps[0] + settings.rate_limit_window - now) + 1
            logger.warning(
                "Rate limit exceeded for IP %s: %d requests in %ds window",
                client_ip,
                len(timestamps),
                settings.rate_limit_window,
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": f"Too many requests. Please wait {retry_after} seconds before retrying.",
                    "details": {"retry_after": retry_after},
                },
                headers={"Retry-After": str(retry_after)},
            )

        timestamps.append(now)

        self._seen += 1
        if self._seen % CLEANUP_EVERY == 0:
            self._cleanup_inactive_ips(window_start)

        return await call_next(request)

    def _cleanup_inactive_ips(self, window_start: float) -> None:
        inactive_ips = [
            ip for ip, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] < window_start
        ]
        for ip in inactive_ips:
            del self._requests[ip]
        if inactive_ips:
            logger.debug("Cleaned up %d inactive IP entries", len(inactive_ips))
