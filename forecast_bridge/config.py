"""Service configuration pulled from environment variables via pydantic."""
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger, mask_url
logger = get_tagged_logger(__name__, tag="config")


class Settings(BaseSettings):
    """Environment-driven, immutable configuration shared by the API and worker processes."""
    model_config = SettingsConfigDict(env_prefix="FORECAST_", extra="ignore", frozen=True)

    # queues
    queue_backend: Literal["sqs", "memory"] = "sqs"
    request_queue_url: str = ""
    response_queue_url: str = ""
    aws_region: str | None = None
    sqs_endpoint_url: str | None = None
    receive_wait_seconds: int = Field(default=20, ge=0, le=20)
    visibility_timeout_seconds: int = Field(default=20, ge=0)
    max_messages: int = Field(default=1, ge=1, le=10)
    send_delay_seconds: int = Field(default=1, ge=0, le=900)

    # correlation cache
    redis_url: str | None = None
    cache_scope: str = "weatherService:Cache"
    cache_ttl_seconds: int = Field(default=1800, gt=0)

    # dispatch bridge
    wait_time_ms: int = Field(default=100, ge=0)

    # forecast provider
    provider_base_url: str = "https://api.forecast.io/forecast"
    provider_api_key: str | None = None
    provider_timeout_seconds: float = 10.0
    provider_retries: int = Field(default=3, ge=0)

    # worker pool
    worker_concurrency: int = Field(default=16, ge=1)
    result_channel_size: int = Field(default=100, ge=1)
    worker_process_wait_ms: int = Field(default=0, ge=0)

    # process wiring
    embedded_workers: bool = False
    skip_preflight: bool = False

    @field_validator("provider_base_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs to avoid double slashes."""
        return str(v).rstrip("/")

    @property
    def wait_time_seconds(self) -> float:
        """Bounded wait of the dispatch bridge, in seconds."""
        return self.wait_time_ms / 1000.0

    def masked(self) -> dict:
        """Settings as a dict that is safe to log."""
        data = self.model_dump()
        data["redis_url"] = mask_url(self.redis_url)
        if self.provider_api_key:
            data["provider_api_key"] = "***"
        return data


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build the process-wide settings once."""
    settings = Settings()
    logger.debug("Loaded settings: %s", settings.masked())
    return settings


if __name__ == "__main__":
    logger.setLevel("DEBUG")
    logger.debug("Loaded settings: %s", get_settings().masked())
