"""Request middleware."""

import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from site_driver.core.logging_config import set_correlation_id

REQUEST_ID_HEADER = "X-Request-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Tag every request with a correlation ID.

    An inbound ``X-Request-ID`` header is honoured; otherwise a new UUID is
    generated. The ID is attached to log records emitted while handling the
    request and echoed back in the response headers.
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        set_correlation_id(correlation_id)

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = correlation_id
        return response
