"""
Request correlation middleware.

Assigns ``request.state.request_id`` from the inbound ``x-request-id``
header (or a new UUID4) and echoes it on every response.
"""

from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from .problem_details import REQUEST_ID_HEADER

MAX_REQUEST_ID_LENGTH = 128


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Middleware that propagates a correlation id through the request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        inbound = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
        request_id = inbound[:MAX_REQUEST_ID_LENGTH] or str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
