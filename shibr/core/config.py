"""
Runtime settings, read from the environment and an optional .env file.
"""
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    APP_NAME: str = "Shibr Marketplace"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"
    API_V1_PREFIX: str = "/api/v1"

    # Auth tokens
    SECRET_KEY: str = "your-super-secret-key-change-this-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Postgres; DATABASE_URL wins when set
    POSTGRES_SERVER: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "shibr"
    POSTGRES_PASSWORD: str = "shibr_password"
    POSTGRES_DB: str = "shibr"
    DATABASE_URL: Optional[str] = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    # Redis; REDIS_URL wins when set
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None
    REDIS_URL: Optional[str] = None
    REDIS_MAX_CONNECTIONS: int = 10
    REDIS_SOCKET_TIMEOUT: float = 5.0

    @model_validator(mode="after")
    def fill_connection_urls(self) -> "Settings":
        if not self.DATABASE_URL:
            self.DATABASE_URL = (
                f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
                f"@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
            )
        if not self.REDIS_URL:
            auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
            self.REDIS_URL = f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return self

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
    ]

    # Throttling
    OTP_RATE_LIMIT_PER_IP_HOUR: int = 20

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Storefront
    TAX_RATE: str = "0.15"  # Saudi VAT, kept as a string for Decimal math
    CURRENCY: str = "SAR"
    CART_TTL_SECONDS: int = 24 * 60 * 60

    # One-time codes
    OTP_LENGTH: int = 6
    OTP_EXPIRY_MINUTES: int = 10
    OTP_MAX_ATTEMPTS: int = 5
    OTP_MAX_REQUESTS_PER_HOUR: int = 5
    OTP_RESEND_COOLDOWN_SECONDS: int = 60
    OTP_PROVIDER: str = "stub"  # "stub" or "karzoun"
    KARZOUN_API_URL: str = "https://api.karzoun.app/CloudApi.php"
    KARZOUN_API_TOKEN: Optional[str] = None
    KARZOUN_SENDER_ID: Optional[str] = None
    KARZOUN_TEMPLATE_NAME: Optional[str] = None

    # Rentals
    RENTAL_REQUEST_EXPIRY_HOURS: int = 48
    DEFAULT_PLATFORM_COMMISSION_RATE: float = 22.0
    DEFAULT_STORE_COMMISSION_RATE: float = 10.0

    # Platform settings defaults (overridable from the admin dashboard)
    DEFAULT_PLATFORM_FEE_PERCENTAGE: float = 8.0
    DEFAULT_MINIMUM_SHELF_PRICE: float = 100.0
    DEFAULT_MAXIMUM_DISCOUNT_PERCENTAGE: float = 22.0

    # Initial admin
    ADMIN_EMAIL: str = "admin@shibr.io"
    ADMIN_PASSWORD: str = "change-me-admin"

    # Prometheus
    METRICS_ENABLED: bool = True
    METRICS_PATH: str = "/metrics"
    STATS_CACHE_SECONDS: int = 60

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # "json" or "text"


settings = Settings()
