"""Project API schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field

from deploybox.models.project import ProjectSnapshot


class DeployRequest(BaseModel):
    """Payload for creating and deploying a project."""

    name: str = Field(min_length=1)
    repo_url: str = Field(min_length=1)
    build_command: str
    start_command: str


class AcceptedResponse(BaseModel):
    """Acknowledgement that a workflow was scheduled."""

    name: str
    state: str


class ProjectResponse(BaseModel):
    """Single project payload."""

    project: ProjectSnapshot


class ProjectsResponse(BaseModel):
    """Collection response for projects."""

    items: list[ProjectSnapshot]
