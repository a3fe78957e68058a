"""
Synapse Router - API Middleware

RequestIdMiddleware: every request gets an id (the caller's X-Request-Id, or
a generated one), exposed on request.state and echoed in the response.
"""

import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Ensures every request has an id."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("x-request-id")
        if not request_id:
            request_id = f"req_{uuid.uuid4().hex[:24]}"

        request.state.request_id = request_id

        response = await call_next(request)

        if "x-request-id" not in response.headers:
            response.headers["X-Request-Id"] = request_id

        return response
