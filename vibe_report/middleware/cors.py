"""
CORS Middleware - Cross-Origin Resource Sharing configuration.

Browser clients on the configured origins may call the API with a bearer
token or an X-Guest-Id header. Preflights from other origins are refused.

OPTIONS requests that are not CORS preflights (no Origin or no
Access-Control-Request-Method) pass through to the route, which is how
the payment webhook answers its own OPTIONS probe.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from vibe_report.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class CORSMiddleware(BaseHTTPMiddleware):
    """
    Handles preflight OPTIONS requests and adds CORS headers to responses.
    """

    def __init__(
        self,
        app,
        allowed_origins: list[str] | None = None,
        allow_credentials: bool = True,
        allow_methods: list[str] | None = None,
        allow_headers: list[str] | None = None,
        expose_headers: list[str] | None = None,
        max_age: int = 600,
    ):
        super().__init__(app)
        self.allowed_origins = [origin.rstrip("/") for origin in (allowed_origins or [])]
        self.allow_credentials = allow_credentials
        self.allow_methods = allow_methods or ["GET", "POST", "OPTIONS", "HEAD"]
        self.allow_headers = allow_headers or [
            "Accept",
            "Content-Type",
            "Authorization",
            "X-Guest-Id",
            "X-Request-ID",
        ]
        self.expose_headers = expose_headers or ["X-Request-ID"]
        self.max_age = max_age

        logger.info(
            "CORS middleware initialized",
            allowed_origins=self.allowed_origins,
            allow_credentials=self.allow_credentials,
        )

    async def dispatch(self, request, call_next):
        origin = request.headers.get("origin")
        is_allowed_origin = origin in self.allowed_origins if origin else False
        is_preflight = (
            request.method == "OPTIONS"
            and origin is not None
            and "access-control-request-method" in request.headers
        )

        if is_preflight:
            if is_allowed_origin:
                return self._preflight_response(origin)
            logger.warning("CORS preflight rejected - origin not allowed", origin=origin)
            return Response(status_code=403, content="Origin not allowed")

        response = await call_next(request)

        if is_allowed_origin:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Expose-Headers"] = ", ".join(self.expose_headers)
            if self.allow_credentials:
                response.headers["Access-Control-Allow-Credentials"] = "true"
        elif origin:
            logger.warning(
                "CORS request from disallowed origin", origin=origin, path=request.url.path
            )

        return response

    def _preflight_response(self, origin: str) -> Response:
        headers = {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Methods": ", ".join(self.allow_methods),
            "Access-Control-Allow-Headers": ", ".join(self.allow_headers),
            "Access-Control-Max-Age": str(self.max_age),
            "X-Content-Type-Options": "nosniff",
        }
        if self.allow_credentials:
            headers["Access-Control-Allow-Credentials"] = "true"

        logger.debug("CORS preflight request handled", origin=origin)
        return Response(status_code=204, headers=headers)
