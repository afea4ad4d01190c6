"""Pydantic models for config validation.

Opt-in schema validation for ``Config.config_data``.  Call
``Config.validated()`` to obtain a typed, validated ``AutocrewConfig``
instance.  Dict-based access continues to work unchanged.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


class PathsConfig(BaseModel):
    """File-system paths used by the orchestration core."""

    data_dir: Path
    projects_dir: Path | None = None
    log_dir: Path | None = None

    @field_validator("data_dir", "projects_dir", "log_dir", mode="before")
    @classmethod
    def _expand_user(cls, v: Any) -> Any:
        if isinstance(v, str):
            return Path(v).expanduser()
        if isinstance(v, Path):
            return v.expanduser()
        return v

    @model_validator(mode="after")
    def _default_projects_dir(self) -> PathsConfig:
        if self.projects_dir is None:
            self.projects_dir = self.data_dir / "projects"
        return self


class EventsConfig(BaseModel):
    """Event bus tuning."""

    history_size: int = Field(default=1000, ge=1)


class WorkflowConfig(BaseModel):
    """Workflow engine defaults."""

    default: str = "default"


class LoggingConfig(BaseModel):
    """Loguru sink settings."""

    level: str = "WARNING"
    file: str | None = None

    @field_validator("level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        upper = v.upper()
        if upper not in _LOG_LEVELS:
            raise ValueError(f"unknown log level {v!r}; expected one of {sorted(_LOG_LEVELS)}")
        return upper


class PurposesConfig(BaseModel):
    """Optional YAML file with extra purpose definitions."""

    file: str | None = None


class AutocrewConfig(BaseModel):
    """Root configuration model.

    Uses ``extra="allow"`` so callers can bolt on custom sections
    without touching this schema.
    """

    model_config = ConfigDict(extra="allow")

    paths: PathsConfig = PathsConfig(data_dir=Path(".autocrew"))
    events: EventsConfig = EventsConfig()
    workflow: WorkflowConfig = WorkflowConfig()
    logging: LoggingConfig = LoggingConfig()
    purposes: PurposesConfig = PurposesConfig()
