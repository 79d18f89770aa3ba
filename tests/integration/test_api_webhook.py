from __future__ import annotations

from pathlib import Path

from tests.support.api_helpers import REPO, deploy, make_client, wait_for_project


def test_webhook_triggers_update(tmp_path: Path) -> None:
    with make_client(tmp_path) as client:
        deploy(client)
        wait_for_project(client, "demo", state="live")

        response = client.post(
            "/api/v1/webhook",
            json={"ref": "refs/heads/main", "repository": {"html_url": REPO}},
        )
        assert response.status_code == 202
        assert response.json()["name"] == "demo"

        project = wait_for_project(
            client, "demo", state="live", log_contains="Restarting app on port 4000"
        )
        assert f"Updating demo from {REPO}..." in project["log"]
        assert project["port"] == 4000


def test_webhook_matches_clone_url(tmp_path: Path) -> None:
    with make_client(tmp_path) as client:
        deploy(client)
        wait_for_project(client, "demo", state="live")

        response = client.post(
            "/api/v1/webhook",
            json={"repository": {"html_url": "https://example/demo", "clone_url": REPO}},
        )
        assert response.status_code == 202


def test_webhook_unknown_repository(tmp_path: Path) -> None:
    with make_client(tmp_path) as client:
        response = client.post(
            "/api/v1/webhook",
            json={"repository": {"html_url": "https://example/unknown.git"}},
        )
    assert response.status_code == 404
    assert response.json()["detail"] == "Project not found for this repository."


def test_webhook_requires_repository(tmp_path: Path) -> None:
    with make_client(tmp_path) as client:
        response = client.post("/api/v1/webhook", json={"ref": "refs/heads/main"})
    assert response.status_code == 422
