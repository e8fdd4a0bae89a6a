# backend/viewcounter/middleware/rate_limit.py
from __future__ import annotations

import logging
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ..services.rate_limit import FixedWindowLimiter, client_ip
from ..services.runtime_metrics import METRICS

log = logging.getLogger("viewcounter.rate_limit")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Per-IP fixed window over every path the app serves: routes, the usage
    page and the static /assets mount alike.

    On reject: 429 with a JSON detail and Retry-After; the handler never runs.
    """

    def __init__(self, app, *, limiter: FixedWindowLimiter) -> None:
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        ip = client_ip(request)
        allowed, retry_after = self.limiter.hit(ip)
        if allowed:
            return await call_next(request)

        METRICS.inc("rate_limited")
        log.info("rate limited", extra={"client_ip": ip})
        return JSONResponse(
            {"detail": "Too many requests"},
            status_code=429,
            headers={"Retry-After": str(retry_after)},
        )
