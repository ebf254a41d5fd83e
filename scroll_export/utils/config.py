"""
Configuration Utility - Environment Variables Management

Centralized configuration loading from .env files using pydantic-settings.
Type-safe access to all environment variables with validation.

Usage:
    from scroll_export.utils.config import settings, ExportConfig

    es_url = settings.ES_URL
    config = ExportConfig.from_settings(settings)

The pipeline itself only ever sees an ExportConfig; Settings is read by the
entrypoint when a run is assembled.
"""

from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from scroll_export.utils.schemas import ExtractionFilter


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Elasticsearch Configuration
    ES_URL: str = Field(default="http://localhost:9200")
    ES_INDEX: str = Field(default="partner")
    ES_DOC_TYPE: str | None = Field(default=None)
    ES_USERNAME: str | None = Field(default=None)
    ES_PASSWORD: str | None = Field(default=None)
    ES_SCROLL_KEEPALIVE: str = Field(default="1m")
    API_TIMEOUT: float = Field(default=30.0, gt=0)

    # Extraction Configuration
    FILTER_FIELD: str = Field(default="code", min_length=1)
    FILTER_VALUE: str = Field(default="no_matching")
    PAGE_SIZE: int = Field(default=100, ge=1)
    WORKER_COUNT: int = Field(default=10, ge=1)
    RECORD_BUFFER_SIZE: int = Field(default=100, ge=1)
    RESULT_BUFFER_SIZE: int = Field(default=100, ge=1)
    PROGRESS_LOG_EVERY: int = Field(default=1000, ge=1)

    # Output
    OUTPUT_PATH: str = Field(default="data.json")

    # Scheduler Configuration
    RUN_ONCE: bool = Field(default=True)
    EXPORT_SCHEDULE_CRON: str = Field(default="")

    # Redis Configuration (empty URL disables completion events)
    REDIS_URL: str = Field(default="")
    REDIS_MAX_CONNECTIONS: int = Field(default=10, ge=1)
    REDIS_CHANNEL_EXPORT: str = Field(default="files.exports")

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")

    # Application Metadata
    APP_NAME: str = Field(default="scroll-export")
    APP_VERSION: str = Field(default="0.1.0")


class ExportConfig(BaseModel):
    """Run configuration for a single export.

    Recognized options: filter_field, filter_value, page_size, worker_count.
    The buffer sizes bound the record and result channels.
    """

    model_config = ConfigDict(frozen=True)

    filter_field: str = Field(default="code", min_length=1)
    filter_value: str = Field(default="no_matching")
    page_size: int = Field(default=100, ge=1)
    worker_count: int = Field(default=10, ge=1)
    record_buffer_size: int = Field(default=100, ge=1)
    result_buffer_size: int = Field(default=100, ge=1)

    @classmethod
    def from_settings(cls, source: Settings) -> "ExportConfig":
        return cls(
            filter_field=source.FILTER_FIELD,
            filter_value=source.FILTER_VALUE,
            page_size=source.PAGE_SIZE,
            worker_count=source.WORKER_COUNT,
            record_buffer_size=source.RECORD_BUFFER_SIZE,
            result_buffer_size=source.RESULT_BUFFER_SIZE,
        )

    def extraction_filter(self) -> ExtractionFilter:
        return ExtractionFilter(field=self.filter_field, value=self.filter_value)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Singleton Settings instance
    """
    return Settings()


# Global settings instance
settings = get_settings()
