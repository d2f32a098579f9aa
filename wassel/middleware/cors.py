"""
CORS Middleware - cross-origin access for the browser client.

The offline-first client runs in a browser on APP_ORIGIN and calls these
handlers cross-origin, so every response carries CORS headers and OPTIONS
preflights are answered directly without reaching the routes.

Configuration:
- CORS_ALLOWED_ORIGINS: exact origins, or "*" to allow any origin

Usage:
    app.add_middleware(CORSMiddleware, allowed_origins=settings.CORS_ALLOWED_ORIGINS)
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from wassel.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

WILDCARD = "*"
DEFAULT_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]
DEFAULT_ALLOW_METHODS = ["GET", "POST", "OPTIONS"]


class CORSMiddleware(BaseHTTPMiddleware):
    """Handles preflight OPTIONS requests and adds CORS headers to responses."""

    def __init__(
        self,
        app,
        allowed_origins: list[str] | None = None,
        allow_methods: list[str] | None = None,
        allow_headers: list[str] | None = None,
        max_age: int = 600,
    ):
        super().__init__(app)
        self.allowed_origins = allowed_origins or []
        self.allow_methods = allow_methods or DEFAULT_ALLOW_METHODS
        self.allow_headers = allow_headers or DEFAULT_ALLOW_HEADERS
        self.max_age = max_age

        logger.info("CORS middleware initialized", allowed_origins=self.allowed_origins)

    def _allow_origin_value(self, origin: str | None) -> str | None:
        if WILDCARD in self.allowed_origins:
            return WILDCARD
        if origin and origin in self.allowed_origins:
            return origin
        return None

    async def dispatch(self, request, call_next):
        origin = request.headers.get("origin")
        allow_origin = self._allow_origin_value(origin)

        if request.method == "OPTIONS":
            if allow_origin is None:
                logger.warning("CORS preflight rejected - origin not allowed", origin=origin)
                return Response(status_code=403, content="Origin not allowed")
            return self._preflight_response(allow_origin)

        response = await call_next(request)

        if allow_origin is not None:
            response.headers["Access-Control-Allow-Origin"] = allow_origin
            response.headers["Access-Control-Allow-Headers"] = ", ".join(self.allow_headers)
            if allow_origin != WILDCARD:
                response.headers["Vary"] = "Origin"
        elif origin:
            logger.warning("CORS request from disallowed origin", origin=origin, path=request.url.path)

        return response

    def _preflight_response(self, allow_origin: str) -> Response:
        headers = {
            "Access-Control-Allow-Origin": allow_origin,
            "Access-Control-Allow-Methods": ", ".join(self.allow_methods),
            "Access-Control-Allow-Headers": ", ".join(self.allow_headers),
            "Access-Control-Max-Age": str(self.max_age),
        }
        return Response(status_code=200, content="ok", headers=headers)
