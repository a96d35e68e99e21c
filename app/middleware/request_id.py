# =============================================================================
# app/middleware/request_id.py - Request ID Tagging
# =============================================================================
# Gives every request an id, binds it to the logging context and returns it
# in the X-Request-ID response header. A well-formed inbound X-Request-ID
# (from a proxy or the frontend) is kept so a request can be traced end to end.
# =============================================================================

import re
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.observability import request_id_var

REQUEST_ID_HEADER = "X-Request-ID"

_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9\-_.]{8,64}$")


def new_request_id(inbound: str | None = None) -> str:
    if inbound and _VALID_REQUEST_ID.match(inbound):
        return inbound
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tags each request/response pair with a request id."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = new_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
