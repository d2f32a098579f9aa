# wassel/main.py
"""
FastAPI entry point for the Wassel API handlers.

The service container (HTTP client, Redis, rate limiter, TTL cache, upstream
services) is created in the lifespan and torn down on shutdown.
"""

import time
from collections.abc import Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from wassel.config import settings
from wassel.infrastructure.observability.logging import get_logger, log_request, setup_logging
from wassel.middleware import CORSMiddleware, RateLimitHeadersMiddleware, RequestContextMiddleware
from wassel.routes import health, messages, payments, push_tokens, sms, trips
from wassel.services.container import ServiceContainer
from wassel.services.upstream import UpstreamError

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


def create_app(services_factory: Callable[[], ServiceContainer] | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Build the service container on startup, close it on shutdown."""
        logger.info("Application starting", environment=settings.environment, debug=settings.debug)

        services = services_factory() if services_factory else ServiceContainer(settings)
        try:
            await services.start()
        except Exception as e:
            logger.error("Failed to initialize services", error=str(e))
            await services.close()
            raise

        app.state.services = services
        logger.info("All services initialized successfully")

        yield

        logger.info("Application shutting down")
        await services.close()

    app = FastAPI(
        title="Wassel API",
        description="Thin API handlers backing the Wassel offline-first client",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(health.router)
    app.include_router(trips.router)
    app.include_router(messages.router)
    app.include_router(payments.router)
    app.include_router(sms.router)
    app.include_router(push_tokens.router)

    app.add_middleware(RateLimitHeadersMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(CORSMiddleware, allowed_origins=settings.CORS_ALLOWED_ORIGINS)

    @app.exception_handler(UpstreamError)
    async def upstream_error_handler(request: Request, exc: UpstreamError):
        logger.warning(
            "Upstream error surfaced to caller",
            upstream=exc.upstream,
            status_code=exc.status_code,
            path=request.url.path,
        )
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_body()))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request body", "details": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
        return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log HTTP requests with timing."""
        start_time = time.time()
        response = await call_next(request)
        log_request(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        return response

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
