"""Project domain models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel


class ProjectState(str, Enum):
    """Lifecycle state of a deployed project."""

    PENDING = "pending"
    CLONING = "cloning"
    BUILDING = "building"
    STARTING = "starting"
    LIVE = "live"
    UPDATING = "updating"
    RESTARTING = "restarting"
    ERROR = "error"


class ProjectSnapshot(BaseModel):
    """Read-only view of a project handed to API callers."""

    name: str
    repo_url: str
    build_command: str
    start_command: str
    state: ProjectState
    work_dir: Path | None = None
    port: int | None = None
    public_url: str | None = None
    log: str = ""
    created_at: datetime
    updated_at: datetime
