"""
Application configuration using pydantic-settings.
All config is validated at startup - fail fast if anything is missing.
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_base_url: str = "http://localhost:8000"
    log_level: str = "INFO"

    # Calendar day boundaries for check-ins and streaks
    app_timezone: str = "Europe/Berlin"

    # Database
    database_url: str
    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Redis (rate limiting)
    redis_url: str = "redis://localhost:6379/0"

    # Webhooks - hex(HMAC-SHA256(secret, raw body)) in x-webhook-signature
    webhook_secret: str
    webhook_rate_limit_per_minute: int = 100

    # Bearer auth (tokens are issued by the identity provider, only verified here)
    auth_jwt_secret: str
    auth_jwt_algorithm: str = "HS256"

    # Journey
    trial_period_days: int = 7

    # Sentry
    sentry_dsn: str = ""

    # CORS
    allowed_origins: str = ""  # Comma-separated

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
