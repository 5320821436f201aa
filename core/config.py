"""Configuration loading and validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.errors = errors or []


class PaginationConfig(BaseModel):
    """How round candidate listings are paged."""

    page_size: int | None = Field(default=None, ge=1, le=500)
    concurrency: int | None = Field(default=None, ge=1, le=10)
    include_custom_fields: bool = True
    include_evaluations: bool = True


class CacheConfig(BaseModel):
    """Read cache settings."""

    ttl_seconds: float | None = Field(default=None, ge=0)


class EvaluationConfig(BaseModel):
    """Batch evaluation settings."""

    url: str | None = None
    delay_seconds: float | None = Field(default=None, ge=0)


class TrackerConfig(BaseModel):
    """Schema for tracker.yaml."""

    pagination: PaginationConfig = Field(default_factory=PaginationConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    evaluation: EvaluationConfig = Field(default_factory=EvaluationConfig)


class Settings(BaseSettings):
    """Application settings from environment."""

    model_config = SettingsConfigDict(
        env_prefix="TRACKER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Endpoints
    api_base_url: str = "http://localhost:8000"
    candidates_base_url: str = "http://localhost:8001"
    evaluation_url: str | None = None

    # Auth
    api_token: str = ""

    # Storage
    backend: Literal["api", "memory"] = "api"
    runs_dir: str = "./data/runs"

    # Reads
    cache_ttl_seconds: float = 30 * 60
    page_size: int = 50
    page_concurrency: int = 3

    # Writes
    created_by: str = "system"
    evaluation_delay_seconds: float = 1.0

    # Runtime
    verbose: int = 0
    log_level: str = "INFO"

    @field_validator("verbose", mode="before")
    @classmethod
    def _coerce_verbose(cls, v: Any) -> int:
        if isinstance(v, bool):
            return 2 if v else 0
        if isinstance(v, str):
            low = v.strip().lower()
            try:
                return int(low)
            except ValueError:
                pass
            if low in ("true", "yes"):
                return 2
            return 0
        return int(v)

    # HTTP client defaults
    default_timeout: int = 30
    default_rate_limit: float = 5.0
    max_retries: int = 3

    def apply(self, config: TrackerConfig) -> Settings:
        """Return a copy with YAML overrides applied."""
        overrides: dict[str, Any] = {}
        if config.pagination.page_size is not None:
            overrides["page_size"] = config.pagination.page_size
        if config.pagination.concurrency is not None:
            overrides["page_concurrency"] = config.pagination.concurrency
        if config.cache.ttl_seconds is not None:
            overrides["cache_ttl_seconds"] = config.cache.ttl_seconds
        if config.evaluation.url is not None:
            overrides["evaluation_url"] = config.evaluation.url
        if config.evaluation.delay_seconds is not None:
            overrides["evaluation_delay_seconds"] = config.evaluation.delay_seconds
        return self.model_copy(update=overrides)


def load_tracker_config(path: Path) -> TrackerConfig:
    """Load tracker configuration from YAML file."""
    if not path.exists():
        return TrackerConfig()

    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Invalid YAML in {path}: {e}") from e

    try:
        return TrackerConfig(**data)
    except ValidationError as e:
        raise ConfigValidationError(f"Invalid {path.name}", errors=e.errors()) from e


def load_config(
    config_path: Path | None = None,
    settings: Settings | None = None,
) -> tuple[Settings, TrackerConfig]:
    """Load all configuration.

    Returns:
        Tuple of (Settings with YAML overrides applied, TrackerConfig)
    """
    settings = settings or Settings()
    config_path = config_path or Path("configs/tracker.yaml")
    tracker = load_tracker_config(config_path)

    return settings.apply(tracker), tracker


def snapshot_config(settings: Settings, tracker: TrackerConfig) -> dict[str, Any]:
    """Create a serializable snapshot of the current configuration."""
    data = settings.model_dump(mode="json")
    data["api_token"] = "***" if settings.api_token else ""
    return {
        "settings": data,
        "tracker": tracker.model_dump(mode="json"),
    }
