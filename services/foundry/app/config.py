"""Application configuration using Pydantic settings."""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GenerationSettings(BaseModel):
    base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL of an OpenAI-compatible chat completions API",
    )
    api_key: str = Field(default="", description="API key for the generation backend")
    model: str = "gpt-4o-2024-08-06"
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = 12_000
    timeout_seconds: float = 120.0
    max_retries: int = Field(default=3, ge=0)
    repair_attempts: int = Field(default=1, ge=0)


class PipelineSettings(BaseModel):
    deadline_seconds: float | None = Field(default=300.0, gt=0)
    rollback_on_generation_failure: bool = True


class ObservabilitySettings(BaseModel):
    otel_service_name: str = "foundry"
    otel_exporter_otlp_endpoint: str | None = None
    log_level: str = "INFO"


class StorageSettings(BaseModel):
    database_url: str = Field(
        default="sqlite+aiosqlite:///./foundry.db",
        description="SQLAlchemy async database URL (Postgres in production)",
    )
    s3_endpoint: str | None = None
    s3_region: str | None = None
    s3_bucket: str | None = None
    publish_exports: bool = False


class FoundrySettings(BaseSettings):
    generation: GenerationSettings = GenerationSettings()
    pipeline: PipelineSettings = PipelineSettings()
    observability: ObservabilitySettings = ObservabilitySettings()
    storage: StorageSettings = StorageSettings()
    environment: Literal["dev", "qa", "prod"] | str = "dev"

    model_config = SettingsConfigDict(env_nested_delimiter="__", env_prefix="FOUNDRY_", case_sensitive=False)


@lru_cache(maxsize=1)
def get_settings(**kwargs: Any) -> FoundrySettings:
    """Return cached settings instance."""
    return FoundrySettings(**kwargs)


__all__ = [
    "FoundrySettings",
    "GenerationSettings",
    "PipelineSettings",
    "StorageSettings",
    "get_settings",
]
