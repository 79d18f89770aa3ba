"""Event models broadcast to live project viewers."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field


class EventKind(str, Enum):
    """Kinds of events published on a project channel."""

    LOG_UPDATE = "logUpdate"
    STATUS_UPDATE = "statusUpdate"


class DeployEvent(BaseModel):
    """One increment published to subscribers of a project."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    project_name: str
    kind: EventKind
    payload: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
