"""
RequestContext Middleware - Adds request tracking to all requests.

Adds to request.state:
- request_id: Unique ID for request tracing
- ip_address: Client IP address
- user_agent: Client user agent string

request_id is also bound into structlog's context variables, so every log
line emitted while the request is handled carries it.
"""

import uuid

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from vibe_report.config import settings
from vibe_report.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Add request context to all incoming requests.

    A well-formed incoming X-Request-ID is reused; otherwise a UUID is
    generated. The id is echoed on the response.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = self._incoming_request_id(request) or str(uuid.uuid4())
        request.state.request_id = request_id

        ip_address = self._extract_client_ip(request)
        request.state.ip_address = ip_address
        request.state.user_agent = request.headers.get("user-agent")

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger.debug(
            "Request started",
            method=request.method,
            path=request.url.path,
            ip_address=ip_address,
        )

        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @staticmethod
    def _incoming_request_id(request: Request) -> str | None:
        value = request.headers.get(REQUEST_ID_HEADER)
        if value and len(value) <= 64 and value.replace("-", "").isalnum():
            return value
        return None

    def _extract_client_ip(self, request: Request) -> str | None:
        """
        Client IP, trusting X-Forwarded-For only from configured proxies.
        """
        if not settings.TRUST_X_FORWARDED_FOR:
            return request.client.host if request.client else None

        if request.client and request.client.host in settings.TRUSTED_PROXY_IPS:
            forwarded_for = request.headers.get("x-forwarded-for")
            if forwarded_for:
                # "client, proxy1, proxy2"
                return forwarded_for.split(",")[0].strip()

        return request.client.host if request.client else None
