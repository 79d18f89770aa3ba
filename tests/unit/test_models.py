from datetime import UTC, datetime

from deploybox.models.events import DeployEvent, EventKind
from deploybox.models.project import ProjectSnapshot, ProjectState


def test_snapshot_defaults() -> None:
    now = datetime.now(UTC)
    snapshot = ProjectSnapshot(
        name="demo",
        repo_url="https://example/demo.git",
        build_command="true",
        start_command="true",
        state=ProjectState.PENDING,
        created_at=now,
        updated_at=now,
    )
    assert snapshot.port is None
    assert snapshot.log == ""
    assert snapshot.model_dump(mode="json")["state"] == "pending"


def test_event_defaults() -> None:
    event = DeployEvent(project_name="demo", kind=EventKind.LOG_UPDATE, payload="hi\n")
    assert event.id
    assert event.kind.value == "logUpdate"
