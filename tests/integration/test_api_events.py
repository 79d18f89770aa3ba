from __future__ import annotations

from pathlib import Path

import pytest
from starlette.websockets import WebSocketDisconnect

from deploybox.api.routes.events import PROJECT_NOT_FOUND_CLOSE_CODE
from tests.support.api_helpers import REPO, deploy, make_client, wait_for_project


def test_websocket_sends_snapshot_then_live_events(tmp_path: Path) -> None:
    with make_client(tmp_path) as client:
        deploy(client)
        wait_for_project(client, "demo", state="live")

        with client.websocket_connect("/api/v1/projects/demo/ws") as websocket:
            snapshot = websocket.receive_json()
            assert snapshot["event"] == "snapshot"
            assert snapshot["project"]["state"] == "live"
            assert "is now LIVE." in snapshot["project"]["log"]

            client.post("/api/v1/webhook", json={"repository": {"html_url": REPO}})

            statuses: list[str] = []
            saw_log = False
            while statuses[-1:] != ["live"]:
                message = websocket.receive_json()
                if message["event"] == "statusUpdate":
                    statuses.append(message["payload"])
                elif message["event"] == "logUpdate":
                    saw_log = True

        assert statuses == ["updating", "building", "restarting", "live"]
        assert saw_log


def test_websocket_closes_for_unknown_project(tmp_path: Path) -> None:
    with make_client(tmp_path) as client:
        with client.websocket_connect("/api/v1/projects/missing/ws") as websocket:
            with pytest.raises(WebSocketDisconnect) as excinfo:
                websocket.receive_json()
    assert excinfo.value.code == PROJECT_NOT_FOUND_CLOSE_CODE
