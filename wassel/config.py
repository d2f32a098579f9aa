from pathlib import Path
from urllib.parse import urlparse

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Supabase settings (managed backend: auth + REST + realtime)
    SUPABASE_URL: str | None = None
    SUPABASE_JWKS_URL: str | None = None
    SUPABASE_ANON_KEY: str | None = None
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    # Stripe settings
    STRIPE_SECRET_KEY: str | None = None
    STRIPE_API_BASE: str = "https://api.stripe.com/v1"

    # Twilio settings
    TWILIO_ACCOUNT_SID: str | None = None
    TWILIO_AUTH_TOKEN: str | None = None
    TWILIO_PHONE_NUMBER: str | None = None
    TWILIO_API_BASE: str = "https://api.twilio.com/2010-04-01"

    # Redis settings (optional backing store for runtime cache groups)
    REDIS_URL: str | None = None

    # =================================================================
    # THIN API HANDLER SETTINGS
    # =================================================================
    UPSTREAM_TIMEOUT_S: float = 10.0
    TRIP_CACHE_TTL_S: int = 30
    RATE_LIMIT_ENABLED: bool = True
    SMS_RATE_LIMIT: int = 5
    SMS_RATE_WINDOW_S: int = 60
    TRUST_X_FORWARDED_FOR: bool = False
    CORS_ALLOWED_ORIGINS: list[str] = ["*"]

    # =================================================================
    # OFFLINE CLIENT RUNTIME SETTINGS
    # =================================================================
    OFFLINE_DB_PATH: str = "wassel-offline.db"
    OFFLINE_RETENTION_DAYS: int = 30
    SYNC_MAX_ATTEMPTS: int | None = None  # None = retry on every sync trigger
    SYNC_USER_ID: str | None = None  # user whose trips the sync job flushes
    SYNC_ACCESS_TOKEN: str | None = None
    APP_ORIGIN: str = "http://localhost:5173"
    BACKEND_BASE_URL: str = "http://localhost:8000"
    CACHE_VERSION: str = "v1"
    CACHE_STORAGE: str = "memory"  # "memory" | "redis"

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # derive sensible defaults if not provided
    def jwks_url(self) -> str | None:
        if self.SUPABASE_JWKS_URL:
            return self.SUPABASE_JWKS_URL
        if not self.SUPABASE_URL:
            return None
        base = self.SUPABASE_URL.rstrip("/")
        return f"{base}/auth/v1/.well-known/jwks.json"

    def project_ref(self) -> str | None:
        """
        Extract the Supabase project ref from SUPABASE_URL host, e.g.
        https://ykvceus...supabase.co -> ykvceus...
        """
        if not self.SUPABASE_URL:
            return None
        host = urlparse(self.SUPABASE_URL).hostname or ""
        return host.split(".")[0] or None

    def retention_max_age_ms(self) -> int:
        return self.OFFLINE_RETENTION_DAYS * 24 * 60 * 60 * 1000

    def get_sms_rate_limit(self) -> dict:
        """
        Rate limit applied per destination phone number.
        Development gets a looser window so manual testing isn't blocked.
        """
        config = {"limit": self.SMS_RATE_LIMIT, "window_seconds": self.SMS_RATE_WINDOW_S}

        if self.environment == "development":
            config["limit"] = self.SMS_RATE_LIMIT * 10

        return config


settings = Settings()
