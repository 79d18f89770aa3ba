"""Repository push notifications."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from deploybox.api.deps import get_orchestrator
from deploybox.api.schemas.projects import AcceptedResponse
from deploybox.api.schemas.webhook import WebhookPayload
from deploybox.core.errors import NotFoundError
from deploybox.core.orchestrator import Orchestrator

router = APIRouter(prefix="/api/v1/webhook", tags=["webhook"])


@router.post("", status_code=status.HTTP_202_ACCEPTED, response_model=AcceptedResponse)
async def receive_push(
    payload: WebhookPayload,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> AcceptedResponse:
    for repo_url in payload.repository.candidate_urls():
        try:
            project = await orchestrator.trigger_update(repo_url)
        except NotFoundError:
            continue
        return AcceptedResponse(name=project.name, state=project.state.value)
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Project not found for this repository.",
    )
