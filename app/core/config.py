from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    APP_NAME: str = "Marketplace Admin"
    MODE: str = "production"  # debug | production | test

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./data.db"
    DATABASE_ECHO: bool = False
    CREATE_TABLES_ON_STARTUP: bool = True
    TRANSACTION_RETRIES: int = 3

    # Auth
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # Authorization
    SUPERUSER_ROLE: str = "super_admin"
    SUPERUSER_BYPASS_ENABLED: bool = True

    # Redis / Celery
    REDIS_URL: str = "redis://localhost:6379/0"
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"
    NOTIFICATIONS_ENABLED: bool = True

    # Login throttling
    LOGIN_RATE_LIMIT: int = 10
    LOGIN_RATE_WINDOW_SECONDS: int = 60

    # Logging
    LOG_LEVEL: str = "INFO"
    ACCESS_LOG_ENABLED: bool = True
    SENTRY_DSN: Optional[str] = None
    SENTRY_ENVIRONMENT: Optional[str] = None
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1

    # CORS
    ALLOW_ORIGINS: str = "*"

    # SMTP
    SMTP_SERVER: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_FROM_EMAIL: Optional[str] = None
    SMTP_FROM_NAME: str = "Marketplace Admin"

    # Seeded super admin (python -m app.seed)
    SUPER_ADMIN_EMAIL: Optional[str] = None
    SUPER_ADMIN_PASSWORD: Optional[str] = None
    SUPER_ADMIN_NAME: str = "Super Admin"


settings = Settings()
