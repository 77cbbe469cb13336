"""Middleware for request correlation ID propagation."""

import re
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from playlist_agent.platform.observability.logging import correlation_id_ctx

REQUEST_ID_HEADER = "X-Request-ID"

# Inbound ids are echoed into logs and response headers
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def resolve_correlation_id(header_value: str | None) -> str:
    """Return the caller's request id when it is well formed, else a new UUID."""
    if header_value and _VALID_REQUEST_ID.match(header_value):
        return header_value
    return str(uuid.uuid4())


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Middleware that extracts or generates correlation IDs for request tracing.

    The id is stored in a context variable for the structured logging system,
    forwarded on outgoing Spotify requests and echoed back in the response.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = resolve_correlation_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.correlation_id = correlation_id
        token = correlation_id_ctx.set(correlation_id)

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = correlation_id
            return response
        finally:
            correlation_id_ctx.reset(token)
