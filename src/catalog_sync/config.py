"""Application configuration management."""

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from shared.constants import (
    BASE_BATCH_SIZE,
    CATALOG_BATCH_LIMIT,
    DEFAULT_JOB_PRIORITY,
    DEFAULT_MAX_ATTEMPTS,
    JOB_RETENTION_DAYS,
    MAX_BATCH_SIZE,
    MIN_BATCH_SIZE,
    PASSTHROUGH_BRANDS,
    RECORD_MAX_ATTEMPTS,
    RETRY_BASE_DELAY_SECONDS,
    STATS_RETENTION_DAYS,
    STATS_WINDOW_HOURS,
    TICK_RESCHEDULE_SECONDS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_name: str = "wholesale-catalog-sync"
    app_env: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # API Settings
    # -------------------------------------------------------------------------
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 2

    # -------------------------------------------------------------------------
    # PostgreSQL Database
    # -------------------------------------------------------------------------
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "catalog_sync"
    postgres_password: str = ""
    postgres_db: str = "catalog_sync"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_recycle: int = 1800

    @property
    def database_url(self) -> str:
        """Construct PostgreSQL connection URL."""
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def database_url_sync(self) -> str:
        """Construct synchronous PostgreSQL connection URL (for Alembic)."""
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # -------------------------------------------------------------------------
    # Redis
    # -------------------------------------------------------------------------
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str = ""
    redis_db: int = 0

    @property
    def redis_url(self) -> str:
        """Construct Redis connection URL."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # -------------------------------------------------------------------------
    # Celery
    # -------------------------------------------------------------------------
    celery_broker_url: str = ""
    celery_result_backend: str = ""

    @property
    def celery_broker(self) -> str:
        """Get Celery broker URL, defaulting to Redis URL."""
        return self.celery_broker_url or self.redis_url

    @property
    def celery_backend(self) -> str:
        """Get Celery result backend URL, defaulting to Redis URL."""
        return self.celery_result_backend or self.redis_url

    # -------------------------------------------------------------------------
    # Catalog Store (WooCommerce REST API)
    # -------------------------------------------------------------------------
    catalog_base_url: str = "http://localhost:8080"
    catalog_consumer_key: str = ""
    catalog_consumer_secret: str = ""
    catalog_timeout: float = 60.0
    catalog_verify_ssl: bool = True
    catalog_query_string_auth: bool = False
    catalog_batch_limit: int = Field(default=CATALOG_BATCH_LIMIT, ge=2, le=CATALOG_BATCH_LIMIT)

    # -------------------------------------------------------------------------
    # Pricing
    # -------------------------------------------------------------------------
    retail_margin_percent: float = 0.0
    passthrough_brands: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(PASSTHROUGH_BRANDS)
    )

    # -------------------------------------------------------------------------
    # Import Settings
    # -------------------------------------------------------------------------
    excluded_categories: Annotated[list[str], NoDecode] = Field(default_factory=list)
    defer_images: bool = False
    record_max_attempts: int = RECORD_MAX_ATTEMPTS  # 0 retries failing records forever

    @field_validator("passthrough_brands", "excluded_categories", mode="before")
    @classmethod
    def parse_name_list(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [name.strip() for name in v.split(",") if name.strip()]
        return v

    # -------------------------------------------------------------------------
    # Queue Settings
    # -------------------------------------------------------------------------
    queue_base_batch_size: int = BASE_BATCH_SIZE
    queue_min_batch_size: int = MIN_BATCH_SIZE
    queue_max_batch_size: int = MAX_BATCH_SIZE
    queue_default_priority: int = DEFAULT_JOB_PRIORITY
    queue_max_attempts: int = DEFAULT_MAX_ATTEMPTS
    queue_retry_base_delay_seconds: int = RETRY_BASE_DELAY_SECONDS
    queue_tick_reschedule_seconds: int = TICK_RESCHEDULE_SECONDS
    queue_tick_interval_seconds: int = 30
    queue_concurrency_low_load: float = 0.5
    queue_concurrency_medium_load: float = 1.0
    queue_batch_low_load: float = 0.3
    queue_batch_medium_load: float = 0.7
    queue_job_retention_days: int = JOB_RETENTION_DAYS
    queue_stats_retention_days: int = STATS_RETENTION_DAYS
    queue_stats_window_hours: int = STATS_WINDOW_HOURS


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
