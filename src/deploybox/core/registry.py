"""In-memory table of known projects."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from deploybox.core.errors import DuplicateNameError, NotFoundError
from deploybox.core.log_sink import LogSink
from deploybox.core.process_runner import ProcessHandle
from deploybox.models.project import ProjectSnapshot, ProjectState


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(eq=False)
class ProjectRecord:
    """Authoritative state of one project, mutated only by the orchestrator."""

    name: str
    repo_url: str
    build_command: str
    start_command: str
    sink: LogSink
    work_dir: Path | None = None
    state: ProjectState = ProjectState.PENDING
    port: int | None = None
    public_url: str | None = None
    server: ProcessHandle | None = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    workflows: set[asyncio.Task[None]] = field(default_factory=set)
    watcher: asyncio.Task[None] | None = None
    deleted: bool = False
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def touch(self) -> None:
        """Update mutation timestamp."""
        self.updated_at = _now()

    def snapshot(self) -> ProjectSnapshot:
        return ProjectSnapshot(
            name=self.name,
            repo_url=self.repo_url,
            build_command=self.build_command,
            start_command=self.start_command,
            state=self.state,
            work_dir=self.work_dir,
            port=self.port,
            public_url=self.public_url,
            log=self.sink.snapshot(),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class ProjectRegistry:
    """Projects keyed by name, in creation order."""

    def __init__(self) -> None:
        self._records: dict[str, ProjectRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, name: object) -> bool:
        return name in self._records

    def add(self, record: ProjectRecord) -> None:
        if record.name in self._records:
            raise DuplicateNameError(record.name)
        self._records[record.name] = record

    def get(self, name: str) -> ProjectRecord | None:
        return self._records.get(name)

    def require(self, name: str) -> ProjectRecord:
        record = self._records.get(name)
        if record is None:
            msg = f"Project not found: {name}"
            raise NotFoundError(msg)
        return record

    def remove(self, name: str) -> ProjectRecord:
        record = self.require(name)
        del self._records[name]
        return record

    def find_by_repo_url(self, repo_url: str) -> ProjectRecord | None:
        for record in self._records.values():
            if record.repo_url == repo_url:
                return record
        return None

    def list(self) -> list[ProjectRecord]:
        return list(self._records.values())
