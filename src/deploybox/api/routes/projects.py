"""Project routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from deploybox.api.deps import get_orchestrator
from deploybox.api.routes.common import require_project
from deploybox.api.schemas.projects import (
    AcceptedResponse,
    DeployRequest,
    ProjectResponse,
    ProjectsResponse,
)
from deploybox.core.errors import (
    DeleteFailureError,
    DuplicateNameError,
    InvalidProjectNameError,
    NotFoundError,
)
from deploybox.core.orchestrator import Orchestrator

router = APIRouter(prefix="/api/v1/projects", tags=["projects"])


@router.get("", response_model=ProjectsResponse)
async def list_projects(
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> ProjectsResponse:
    return ProjectsResponse(items=orchestrator.list_projects())


@router.post("", status_code=status.HTTP_202_ACCEPTED, response_model=AcceptedResponse)
async def deploy_project(
    request: DeployRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> AcceptedResponse:
    try:
        project = await orchestrator.create_and_deploy(
            request.name,
            request.repo_url,
            request.build_command,
            request.start_command,
        )
    except DuplicateNameError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except InvalidProjectNameError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        ) from exc
    return AcceptedResponse(name=project.name, state=project.state.value)


@router.get("/{name}", response_model=ProjectResponse)
async def get_project(
    name: str,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> ProjectResponse:
    return ProjectResponse(project=require_project(name, orchestrator))


@router.post(
    "/{name}/redeploy", status_code=status.HTTP_202_ACCEPTED, response_model=AcceptedResponse
)
async def redeploy_project(
    name: str,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> AcceptedResponse:
    try:
        project = await orchestrator.redeploy(name)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return AcceptedResponse(name=project.name, state=project.state.value)


@router.delete("/{name}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    name: str,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> None:
    try:
        await orchestrator.delete_project(name)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except DeleteFailureError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc
