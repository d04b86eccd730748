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
    DATABASE_URL: str = "sqlite:///./crm.db"

    # Public base URL used to build inbound webhook URLs
    API_BASE_URL: str = "http://localhost:8000"

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 4

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Inbound webhooks
    WEBHOOK_REQUIRE_SIGNATURE: bool = False  # When False, only supplied signatures are checked
    WEBHOOK_MAX_PAYLOAD_BYTES: int = 100000  # 100KB limit

    # Rate Limiting (requests per minute)
    RATE_LIMIT_WEBHOOK: int = 100
    RATE_LIMIT_API: int = 60
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # Read limits
    ACTIVITY_DEFAULT_LIMIT: int = 50
    ACTIVITY_MAX_LIMIT: int = 200
    LEAD_LIST_MAX_LIMIT: int = 500
    WEBHOOK_LOG_MAX_LIMIT: int = 200

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
    def is_dev(self) -> bool:
        return self.ENV == "dev"


settings = Settings()
