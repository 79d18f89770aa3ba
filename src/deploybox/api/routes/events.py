"""Live project event stream."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from deploybox.api.deps import get_event_hub, get_orchestrator
from deploybox.core.events import EventHub, Subscription
from deploybox.core.orchestrator import Orchestrator

router = APIRouter(tags=["events"])

PROJECT_NOT_FOUND_CLOSE_CODE = 4404


@router.websocket("/api/v1/projects/{name}/ws")
async def project_events(
    name: str,
    websocket: WebSocket,
    orchestrator: Orchestrator = Depends(get_orchestrator),
    hub: EventHub = Depends(get_event_hub),
) -> None:
    await websocket.accept()
    project = orchestrator.get_project(name)
    if project is None:
        await websocket.close(code=PROJECT_NOT_FOUND_CLOSE_CODE)
        return

    # Subscribe before the snapshot so nothing published in between is lost.
    subscription = hub.subscribe(name)
    try:
        await websocket.send_json({"event": "snapshot", "project": project.model_dump(mode="json")})
        forward = asyncio.create_task(_forward(websocket, subscription))
        listen = asyncio.create_task(_wait_for_disconnect(websocket))
        done, pending = await asyncio.wait({forward, listen}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        if forward in done and forward.exception() is None:
            # Channel closed because the project was deleted.
            await websocket.close()
    except WebSocketDisconnect:
        return
    finally:
        subscription.close()


async def _forward(websocket: WebSocket, subscription: Subscription) -> None:
    async for event in subscription:
        await websocket.send_json(
            {
                "event": event.kind.value,
                "payload": event.payload,
                "timestamp": event.timestamp.isoformat(),
            }
        )


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return
