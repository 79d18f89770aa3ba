"""Per-project log accumulation, persistence, and fan-out."""

from __future__ import annotations

import logging
from pathlib import Path

from deploybox.core.events import Broadcaster
from deploybox.models.events import EventKind

logger = logging.getLogger(__name__)

DEFAULT_LOG_FILENAME = ".deploybox.log"


class LogStore:
    """Append-only text files, one per project, kept inside the project directory."""

    def __init__(self, base_dir: Path, filename: str = DEFAULT_LOG_FILENAME) -> None:
        self._base_dir = base_dir
        self._filename = filename

    def path_for(self, project_name: str) -> Path:
        return self._base_dir / project_name / self._filename

    def append_line(self, project_name: str, text: str) -> None:
        with self.path_for(project_name).open("a", encoding="utf-8") as handle:
            handle.write(text)

    def read_all(self, project_name: str) -> str:
        path = self.path_for(project_name)
        if not path.exists():
            return ""
        return path.read_text(encoding="utf-8", errors="replace")


class LogSink:
    """Accumulate one project's log in memory and on disk, and broadcast each chunk.

    Disk writes start once :meth:`attach` is called, because the project directory is
    created by the clone and must be empty until then. Chunks appended earlier are
    held back and flushed on attach. Storage errors are logged and never raised.
    """

    def __init__(self, project_name: str, store: LogStore, broadcaster: Broadcaster) -> None:
        self.project_name = project_name
        self._store = store
        self._broadcaster = broadcaster
        self._chunks: list[str] = []
        self._backlog: list[str] = []
        self._attached = False
        self._closed = False

    @property
    def attached(self) -> bool:
        return self._attached

    def append(self, text: str) -> None:
        if not text:
            return
        self._chunks.append(text)
        self._persist(text)
        self._broadcaster.publish(self.project_name, EventKind.LOG_UPDATE, text)

    def snapshot(self) -> str:
        return "".join(self._chunks)

    def load(self) -> str:
        """Rehydrate the in-memory log from disk and return the stored text.

        Once attached, every chunk is already on disk, so only the unflushed backlog
        is kept alongside the stored text.
        """
        try:
            stored = self._store.read_all(self.project_name)
        except OSError as exc:
            logger.warning("Could not read log of %s: %s", self.project_name, exc)
            return ""
        if stored:
            self._chunks = [stored, *self._backlog]
        return stored

    def attach(self) -> None:
        """Start persisting, flushing whatever was appended so far."""
        if self._attached or self._closed:
            return
        self._attached = True
        backlog = "".join(self._backlog)
        self._backlog.clear()
        if backlog:
            self._write(backlog)

    def close(self) -> None:
        """Stop persisting; later appends stay in memory only."""
        self._closed = True
        self._backlog.clear()

    def _persist(self, text: str) -> None:
        if self._closed:
            return
        if not self._attached:
            self._backlog.append(text)
            return
        self._write(text)

    def _write(self, text: str) -> None:
        try:
            self._store.append_line(self.project_name, text)
        except OSError as exc:
            logger.warning("Could not persist log of %s: %s", self.project_name, exc)
