"""Request ID middleware for Nexora.

Reuses an inbound X-Request-ID header or generates a UUID4 per request,
stores it in a ContextVar so it can be retrieved anywhere in the request
lifecycle (including log records), and attaches it as a X-Request-ID
response header.
"""

import logging
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

log = logging.getLogger(__name__)

# Module-level ContextVar; allows non-HTTP code (services, sync, logging)
# to read the current request ID without needing the Request object.
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def get_request_id() -> str:
    return request_id_var.get()


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Sets the request ID ContextVar and adds the X-Request-ID header to
    every response."""

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        req_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = request_id_var.set(req_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = req_id
        log.debug("%s %s -> %s", request.method, request.url.path, response.status_code)
        return response
