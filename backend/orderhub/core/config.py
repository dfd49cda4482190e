"""
Configuration settings for the orderhub event service
"""
from typing import List, Union
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field, field_validator


class Settings(BaseSettings):
    """Application settings"""

    # Project Info
    PROJECT_NAME: str = "Orderhub Events API"
    VERSION: str = "1.0.0"
    APP_ENV: str = Field(default="development")
    DEBUG: bool = Field(default=True)

    # API Settings
    API_V1_PREFIX: str = "/api/v1"

    # CORS
    CORS_ORIGINS: Union[str, List[str]] = Field(
        default="http://localhost:3000,http://localhost"
    )

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from string or list"""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        elif isinstance(v, list):
            return v
        return ["http://localhost:3000", "http://localhost"]

    # MongoDB (event store)
    MONGODB_URL: str = Field(...)
    MONGODB_DATABASE: str = Field(default="orderhub")
    MONGODB_SERVER_SELECTION_TIMEOUT_MS: int = Field(default=5000)

    # Redis (pub/sub fan-out)
    REDIS_URL: str = Field(...)

    # Event bus
    EVENT_CHANNEL_PREFIX: str = Field(default="events")
    EVENT_SOURCE: str = Field(default="microservice")
    EVENT_SCHEMA_VERSION: str = Field(default="1.0.0")
    EVENT_VALIDATION_MODE: str = Field(default="warn")
    EVENT_SUPPRESS_LOCAL_ECHO: bool = Field(default=False)
    EVENT_RETRY_MAX: int = Field(default=3)
    EVENT_RETRY_DELAY_MS: int = Field(default=1000)
    EVENT_RETENTION_DAYS: int = Field(default=30)
    EVENT_DEAD_LETTER_TO_STORE: bool = Field(default=True)

    @field_validator('EVENT_VALIDATION_MODE')
    @classmethod
    def validate_validation_mode(cls, v: str) -> str:
        """Only warn-only and reject policies exist"""
        mode = v.strip().lower()
        if mode not in {"warn", "reject"}:
            raise ValueError("EVENT_VALIDATION_MODE must be 'warn' or 'reject'")
        return mode

    # Payment simulation used by the order handlers
    PAYMENT_SUCCESS_RATE: float = Field(default=0.8, ge=0.0, le=1.0)

    # Celery
    CELERY_BROKER_URL: str = Field(
        default="",
        validation_alias=AliasChoices("CELERY_BROKER_URL", "REDIS_URL"),
    )
    CELERY_RESULT_BACKEND: str = Field(
        default="",
        validation_alias=AliasChoices("CELERY_RESULT_BACKEND", "REDIS_URL"),
    )

    # Rate Limiting
    RATE_LIMIT_PER_MINUTE: int = 60

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    STRUCTURED_LOGGING_ENABLED: bool = Field(default=False)

    # Observability
    OBSERVABILITY_ENABLED: bool = Field(default=True)
    METRICS_ENABLED: bool = Field(default=True)
    METRICS_PATH: str = Field(default="/metrics")

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


# Create settings instance
settings = Settings()  # type: ignore[call-arg]
