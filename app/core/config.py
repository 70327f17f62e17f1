"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Database
    DATABASE_URL: str

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 4

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Public base URL (used to build webhook URLs shown to admins)
    APP_URL: str = "http://localhost:8000"

    # Dev-only
    DEV_SECRET: str = "change-me"

    # Internal scheduled endpoints (outbound dialer cron)
    INTERNAL_SECRET: str = ""

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting (requests per minute)
    RATE_LIMIT_API: int = 100  # General API
    RATE_LIMIT_WEBHOOK: int = 300  # Inbound/outbound provider webhooks
    RATE_LIMIT_WRITE: int = 30
    RATE_LIMIT_SEARCH: int = 20
    RATE_LIMIT_EXPORT: int = 5

    # Twilio (platform defaults; campaigns may override)
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_PHONE_NUMBER: str = ""
    TWILIO_API_BASE_URL: str = "https://api.twilio.com"

    # VAPI (outbound voice assistant)
    VAPI_API_KEY: str = ""
    VAPI_BASE_URL: str = "https://api.vapi.ai"

    # Webhook ingestion
    WEBHOOK_MAX_PAYLOAD_BYTES: int = 1_000_000  # 1MB limit
    WEBHOOK_DUPLICATE_WINDOW_MINUTES: int = 5

    # Contact import
    IMPORT_MAX_FILE_BYTES: int = 10 * 1024 * 1024  # 10MB

    # Reports
    REPORT_DEFAULT_DAYS: int = 30
    REPORT_EXPORT_MAX_ROWS: int = 10_000

    # Outbound dialer calling window (contact local time)
    CALLING_HOURS_START: int = 9
    CALLING_HOURS_END: int = 20

    # Worker (python -m app.worker)
    WORKER_POLL_INTERVAL: int = 60  # seconds

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets

    @property
    def cookie_secure(self) -> bool:
        """Secure cookies only in production."""
        return self.ENV not in ("dev", "test")


settings = Settings()
