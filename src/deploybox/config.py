"""Runtime configuration for deploybox."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, Field

ENV_PREFIX = "DEPLOYBOX_"


class Settings(BaseModel):
    """Orchestrator settings, overridable through ``DEPLOYBOX_*`` variables."""

    deployments_dir: Path = Path("deployments")
    host: str = "0.0.0.0"
    port: int = Field(default=3001, ge=1, le=65535)
    base_port: int = Field(default=4000, ge=1, le=65535)
    max_port_attempts: int = Field(default=10_000, gt=0)
    public_base_url: str = "http://localhost"
    git_command: str = "git"
    log_filename: str = ".deploybox.log"
    stop_timeout_seconds: float = Field(default=10.0, gt=0)
    settle_seconds: float = Field(default=0.0, ge=0)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        source = os.environ if environ is None else environ
        values: dict[str, str] = {}
        for field_name in cls.model_fields:
            key = f"{ENV_PREFIX}{field_name.upper()}"
            if key in source:
                values[field_name] = source[key]
        return cls.model_validate(values)
