"""
RequestContext Middleware - Adds request tracking to all requests.

Adds to request.state:
- request_id: Unique ID for request tracing (taken from X-Request-ID when
  the caller sends one)
- ip_address: Client IP address

The request id is also bound to structlog's contextvars, so every log line
written while handling the request carries it, and it is echoed back in the
X-Request-ID response header.
"""

import uuid

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import settings
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        request.state.ip_address = self._extract_client_ip(request)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    def _extract_client_ip(self, request: Request) -> str | None:
        """
        Client IP, trusting X-Forwarded-For only when the direct peer is a
        configured proxy.
        """
        direct_ip = request.client.host if request.client else None

        if not settings.TRUST_X_FORWARDED_FOR or direct_ip not in settings.TRUSTED_PROXY_IPS:
            return direct_ip

        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            # "client, proxy1, proxy2"
            return forwarded_for.split(",")[0].strip()

        return direct_ip
