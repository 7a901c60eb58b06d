"""Type-safe configuration management leveraging Pydantic Settings."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from plscore.core.config import ScoringConfig


class ProjectConfig(BaseModel):
    """Project metadata and bookkeeping."""

    name: str = "plscore"
    version: str = "1.0.0"
    description: str = ""


class DatabaseConfig(BaseModel):
    """Relational store holding leads and the frequency table."""

    url: str = "sqlite:///plscore.db"
    echo: bool = False

    @field_validator("url")
    @classmethod
    def _ensure_url(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("database.url must not be empty")
        return value


class TrackingConfig(BaseModel):
    """Job tracking configuration."""

    backend: Literal["mlflow", "none"] = "none"
    tracking_uri: str = "file:./mlruns"
    experiment_name: str = "predictive_lead_scoring"
    run_name_prefix: str = "cron"


class ServingConfig(BaseModel):
    """HTTP service configuration."""

    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)
    enable_metrics: bool = True
    allow_frequency_reset: bool = False


class LoggingConfig(BaseModel):
    """Root logger configuration applied by entry points."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Settings(BaseSettings):
    """Application wide settings.

    Values load from YAML first and can be overridden using env vars prefixed
    with ``PLSCORE_``. Nested values can be overridden using ``__`` as delimiter,
    e.g. ``PLSCORE_SCORING__START_DATE=2024-01-01``.
    """

    model_config = SettingsConfigDict(
        env_prefix="PLSCORE_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    _config_path: Path | None = None

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    tracking: TrackingConfig = Field(default_factory=TrackingConfig)
    serving: ServingConfig = Field(default_factory=ServingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Settings:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with config_path.open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle)

        if not isinstance(payload, dict):
            raise ValueError("Configuration file must contain a mapping at the root")

        settings = cls(**payload)
        settings._config_path = config_path  # pyright: ignore[attr-defined]
        return settings

    def resolve_path(self, raw: str, relative_to: Path | None = None) -> Path:
        """Resolve a path relative to the config file or provided base."""

        base = relative_to
        if base is None:
            base = getattr(self, "_config_path", None)
            if base is not None:
                base = base.parent
            else:
                base = Path.cwd()
        return (base / raw).resolve()


__all__ = [
    "DatabaseConfig",
    "LoggingConfig",
    "ProjectConfig",
    "ServingConfig",
    "Settings",
    "TrackingConfig",
]
