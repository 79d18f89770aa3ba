"""Common route helpers."""

from __future__ import annotations

from fastapi import HTTPException, status

from deploybox.core.orchestrator import Orchestrator
from deploybox.models.project import ProjectSnapshot


def require_project(name: str, orchestrator: Orchestrator) -> ProjectSnapshot:
    """Load project or return 404."""
    project = orchestrator.get_project(name)
    if project is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return project
