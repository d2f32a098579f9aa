# wassel/services/container.py
"""
Server-side service container.

Built once in the FastAPI lifespan and stored on app.state; routes receive it
through the `get_services` dependency. Tests build their own container with a
mock transport and install it the same way.
"""

import httpx
from fastapi import Request

from wassel.config import Settings
from wassel.infrastructure.observability.logging import get_logger
from wassel.middleware.rate_limiter import RateLimiter
from wassel.services.message_service import MessageService
from wassel.services.payment_service import PaymentService
from wassel.services.push_token_service import PushTokenService
from wassel.services.redis_client import RedisClient
from wassel.services.sms_service import SmsService
from wassel.services.supabase_rest import SupabaseRestClient
from wassel.services.trip_service import TripService
from wassel.services.ttl_cache import TTLCache

logger = get_logger(__name__)


class ServiceContainer:
    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self.http = httpx.AsyncClient(timeout=settings.UPSTREAM_TIMEOUT_S, transport=transport)
        self.redis = RedisClient(settings.REDIS_URL) if settings.REDIS_URL else None

        self.rate_limiter = RateLimiter(redis_client=self.redis)
        self.cache = TTLCache()

        self.supabase = SupabaseRestClient.from_settings(self.http, settings)
        self.payments = PaymentService.from_settings(self.http, settings)
        self.sms = SmsService.from_settings(self.http, settings)
        self.trips = TripService(self.supabase, self.cache, cache_ttl_seconds=settings.TRIP_CACHE_TTL_S)
        self.messages = MessageService(self.supabase)
        self.push_tokens = PushTokenService(self.supabase)

    async def start(self) -> None:
        if self.redis is not None:
            logger.info("Initializing Redis connection")
            await self.redis.initialize()

    async def close(self) -> None:
        shutdown_errors = []

        if self.redis is not None:
            try:
                await self.redis.close()
            except Exception as e:
                logger.error("Error closing Redis", error=str(e))
                shutdown_errors.append(f"Redis: {e}")

        try:
            await self.http.aclose()
        except Exception as e:
            logger.error("Error closing HTTP client", error=str(e))
            shutdown_errors.append(f"HTTP: {e}")

        if shutdown_errors:
            logger.warning("Some services had shutdown errors", errors=shutdown_errors)
        else:
            logger.info("All services closed successfully")


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services
