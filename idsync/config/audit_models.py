"""Audit, logging and state configuration models."""

from pathlib import Path

from pydantic import BaseModel, Field

from .base_models import LogLevel, LogFormat


class AuditConfig(BaseModel):
    """Audit and logging configuration."""

    log_level: LogLevel = Field(
        LogLevel.INFO,
        description="Logging level"
    )
    log_format: LogFormat = Field(
        LogFormat.JSON,
        description="Log output format"
    )
    default_page_size: int = Field(
        50,
        description="Default number of sync log entries per page",
        ge=1,
        le=500
    )


class StateConfig(BaseModel):
    """Local state file configuration (used by the CLI)."""

    state_file: Path = Field(
        Path("./state/identity-sync.json"),
        description="JSON file holding users, directory entities, mappings and sync logs"
    )
