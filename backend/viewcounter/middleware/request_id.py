# backend/viewcounter/middleware/request_id.py
from __future__ import annotations

import re
import uuid
from contextvars import ContextVar
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# Badge URLs get embedded on arbitrary pages, so the incoming header is untrusted:
# it is echoed into response headers and every log line.
_ACCEPTABLE_ID = re.compile(r"^[A-Za-z0-9._:\-]{1,128}$")

_current_request_id: ContextVar[Optional[str]] = ContextVar("viewcounter_request_id", default=None)


def get_request_id() -> Optional[str]:
    return _current_request_id.get()


def accept_request_id(raw: Optional[str]) -> str:
    """Caller-supplied id when it is short and plain, a fresh uuid4 hex otherwise."""
    if raw and _ACCEPTABLE_ID.match(raw.strip()):
        return raw.strip()
    return uuid.uuid4().hex


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Tags each badge/metrics/asset request with an id: kept on request.state for
    the access log line, in a ContextVar for service logs, and echoed back in
    the X-Request-ID response header.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = accept_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = rid

        token = _current_request_id.set(rid)
        try:
            response = await call_next(request)
        finally:
            _current_request_id.reset(token)

        response.headers[REQUEST_ID_HEADER] = rid
        return response
