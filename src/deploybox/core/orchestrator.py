"""Deployment lifecycle: clone, build, start, update, and delete projects."""

from __future__ import annotations

import asyncio
import logging
import re
import shutil
from collections.abc import Coroutine
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeAlias

from deploybox.config import Settings
from deploybox.core.errors import (
    DeleteFailureError,
    DeployboxError,
    InvalidProjectNameError,
    NotFoundError,
)
from deploybox.core.events import Broadcaster, EventHub
from deploybox.core.log_sink import LogSink, LogStore
from deploybox.core.port_allocator import PortAllocator
from deploybox.core.process_runner import ProcessHandle, ProcessRunner
from deploybox.core.registry import ProjectRecord, ProjectRegistry
from deploybox.models.events import EventKind
from deploybox.models.project import ProjectSnapshot, ProjectState

logger = logging.getLogger(__name__)

_PROJECT_NAME_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9._-]{0,99}")

Workflow: TypeAlias = Coroutine[Any, Any, None]


@dataclass(slots=True)
class OrchestratorContext:
    """Shared state owned by one orchestrator instance."""

    settings: Settings
    registry: ProjectRegistry
    ports: PortAllocator
    runner: ProcessRunner
    broadcaster: Broadcaster
    log_store: LogStore

    @classmethod
    def from_settings(
        cls, settings: Settings, *, broadcaster: Broadcaster | None = None
    ) -> OrchestratorContext:
        return cls(
            settings=settings,
            registry=ProjectRegistry(),
            ports=PortAllocator(
                base_port=settings.base_port,
                reserved=(settings.port,),
                max_attempts=settings.max_port_attempts,
            ),
            runner=ProcessRunner(stop_timeout_seconds=settings.stop_timeout_seconds),
            broadcaster=broadcaster if broadcaster is not None else EventHub(),
            log_store=LogStore(settings.deployments_dir, settings.log_filename),
        )


class Orchestrator:
    """Drive projects through deploy, update, and delete workflows.

    Workflows run as background tasks and at most one workflow per project runs at a
    time. Callers only learn whether a request was accepted; the outcome shows up in
    the project's state and log.
    """

    def __init__(self, context: OrchestratorContext) -> None:
        self._ctx = context

    @property
    def context(self) -> OrchestratorContext:
        return self._ctx

    async def create_and_deploy(
        self,
        name: str,
        repo_url: str,
        build_command: str,
        start_command: str,
    ) -> ProjectSnapshot:
        if not _PROJECT_NAME_PATTERN.fullmatch(name):
            raise InvalidProjectNameError(name)

        record = ProjectRecord(
            name=name,
            repo_url=repo_url,
            build_command=build_command,
            start_command=start_command,
            sink=LogSink(name, self._ctx.log_store, self._ctx.broadcaster),
        )
        self._ctx.registry.add(record)
        logger.info("Accepted deploy of %s from %s", name, repo_url)

        # History left by an earlier orchestrator process in the same directory.
        record.sink.load()
        self._publish_state(record)
        self._schedule(record, self._deploy(record))
        return record.snapshot()

    async def trigger_update(self, repo_url: str) -> ProjectSnapshot:
        record = self._ctx.registry.find_by_repo_url(repo_url)
        if record is None:
            msg = f"Project not found for this repository: {repo_url}"
            raise NotFoundError(msg)
        logger.info("Update of %s triggered for %s", record.name, repo_url)
        self._schedule(record, self._update(record))
        return record.snapshot()

    async def redeploy(self, name: str) -> ProjectSnapshot:
        record = self._ctx.registry.require(name)
        logger.info("Redeploy of %s requested", name)
        self._schedule(record, self._deploy(record))
        return record.snapshot()

    async def delete_project(self, name: str) -> None:
        record = self._ctx.registry.require(name)
        logger.info("Deleting %s", name)

        in_flight = list(record.workflows)
        for task in in_flight:
            task.cancel()
        await asyncio.gather(*in_flight, return_exceptions=True)

        async with record.lock:
            try:
                await self._stop_server(record)
            except OSError as exc:
                msg = f"Failed to stop {name}: {exc}"
                raise DeleteFailureError(msg) from exc

            record.sink.close()
            if record.work_dir is not None and record.work_dir.exists():
                try:
                    await asyncio.to_thread(shutil.rmtree, record.work_dir)
                except OSError as exc:
                    msg = f"Failed to remove {record.work_dir}: {exc}"
                    # The server is already stopped, so the project is no longer live.
                    self._fail(record, DeleteFailureError(msg))
                    raise DeleteFailureError(msg) from exc

            if record.port is not None:
                self._ctx.ports.release(record.port)
            if record.watcher is not None:
                record.watcher.cancel()
            record.deleted = True
            self._ctx.registry.remove(name)

        self._ctx.broadcaster.close(name)
        logger.info("Deleted %s", name)

    def get_project(self, name: str) -> ProjectSnapshot | None:
        record = self._ctx.registry.get(name)
        return record.snapshot() if record is not None else None

    def list_projects(self) -> list[ProjectSnapshot]:
        return [record.snapshot() for record in self._ctx.registry.list()]

    async def wait_until_idle(self, name: str) -> None:
        """Wait for every queued or running workflow of ``name`` to finish."""
        record = self._ctx.registry.require(name)
        while record.workflows:
            await asyncio.gather(*list(record.workflows), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel workflows and stop every server process."""
        records = self._ctx.registry.list()
        tasks = [task for record in records for task in record.workflows]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        for record in records:
            if record.watcher is not None:
                record.watcher.cancel()
            try:
                await self._stop_server(record)
            except OSError:
                logger.exception("Failed to stop %s during shutdown", record.name)

    async def _deploy(self, record: ProjectRecord) -> None:
        async with record.lock:
            if not self._is_registered(record):
                return
            await self._guard(record, self._run_deploy(record))

    async def _update(self, record: ProjectRecord) -> None:
        async with record.lock:
            if not self._is_registered(record):
                return
            work_dir = record.work_dir
            if work_dir is None or not work_dir.exists():
                record.sink.append("Directory not found. Please deploy first.\n")
                return
            await self._guard(record, self._run_update(record, work_dir))

    def _is_registered(self, record: ProjectRecord) -> bool:
        # A workflow queued behind a delete must not resurrect the project.
        if record.deleted or self._ctx.registry.get(record.name) is not record:
            logger.info("Skipping workflow of deleted project %s", record.name)
            return False
        return True

    async def _run_deploy(self, record: ProjectRecord) -> None:
        settings = self._ctx.settings
        runner = self._ctx.runner
        base_dir = settings.deployments_dir
        base_dir.mkdir(parents=True, exist_ok=True)
        work_dir = self._work_dir_for(record.name)
        record.work_dir = work_dir

        await self._stop_server(record)

        self._enter(record, ProjectState.CLONING, f"Cloning {record.repo_url}...\n")
        if (work_dir / ".git").is_dir():
            record.sink.append(f"Reusing existing checkout in {work_dir}\n")
            await runner.run(settings.git_command, ["pull"], cwd=work_dir, sink=record.sink)
        else:
            await runner.run(
                settings.git_command,
                ["clone", record.repo_url, record.name],
                cwd=base_dir,
                sink=record.sink,
            )
        record.sink.attach()

        self._enter(
            record,
            ProjectState.BUILDING,
            f"\nRunning build command: {record.build_command}\n",
        )
        await runner.run(record.build_command, cwd=work_dir, sink=record.sink)

        port = self._ensure_port(record)
        self._enter(record, ProjectState.STARTING, f"\nStarting app on port {port}\n")
        await self._start_server(record, work_dir, port)
        self._go_live(record)

    async def _run_update(self, record: ProjectRecord, work_dir: Path) -> None:
        settings = self._ctx.settings
        runner = self._ctx.runner

        self._enter(
            record,
            ProjectState.UPDATING,
            f"Updating {record.name} from {record.repo_url}...\n",
        )
        await runner.run(settings.git_command, ["pull"], cwd=work_dir, sink=record.sink)

        self._enter(
            record,
            ProjectState.BUILDING,
            f"\nRe-running build command: {record.build_command}\n",
        )
        await runner.run(record.build_command, cwd=work_dir, sink=record.sink)

        port = self._ensure_port(record)
        self._enter(record, ProjectState.RESTARTING, f"\nRestarting app on port {port}\n")
        await self._stop_server(record)
        await self._start_server(record, work_dir, port)
        self._go_live(record)

    async def _guard(self, record: ProjectRecord, workflow: Workflow) -> None:
        try:
            await workflow
        except DeployboxError as exc:
            self._fail(record, exc)
        except Exception as exc:
            logger.exception("Unexpected failure in workflow of %s", record.name)
            self._fail(record, exc)

    async def _start_server(self, record: ProjectRecord, work_dir: Path, port: int) -> None:
        handle = await self._ctx.runner.spawn(
            record.start_command,
            cwd=work_dir,
            sink=record.sink,
            env={"PORT": str(port)},
        )
        record.server = handle
        if self._ctx.settings.settle_seconds:
            await asyncio.sleep(self._ctx.settings.settle_seconds)
        record.watcher = asyncio.create_task(self._watch_server(record, handle))

    async def _stop_server(self, record: ProjectRecord) -> None:
        handle = record.server
        if handle is None:
            return
        record.server = None
        await handle.terminate()

    async def _watch_server(self, record: ProjectRecord, handle: ProcessHandle) -> None:
        returncode = await handle.wait()
        async with record.lock:
            if handle.stop_requested or record.server is not handle:
                return
            if returncode == 0:
                record.sink.append(f"\nProcess exited with status {returncode}\n")
                return
            if record.state is not ProjectState.LIVE:
                return
            record.sink.append(f"Exited with status {returncode}\n")
            self._fail(record, RuntimeError(f"App process crashed with status {returncode}"))

    def _ensure_port(self, record: ProjectRecord) -> int:
        if record.port is None:
            record.port = self._ctx.ports.allocate()
            logger.info("Assigned port %d to %s", record.port, record.name)
        return record.port

    def _go_live(self, record: ProjectRecord) -> None:
        base_url = self._ctx.settings.public_base_url.rstrip("/")
        record.public_url = f"{base_url}/{record.name}"
        self._enter(record, ProjectState.LIVE, f"\nProject {record.name} is now LIVE.\n")

    def _enter(self, record: ProjectRecord, state: ProjectState, banner: str) -> None:
        record.state = state
        record.touch()
        logger.info("%s -> %s", record.name, state.value)
        self._publish_state(record)
        record.sink.append(banner)

    def _fail(self, record: ProjectRecord, exc: BaseException) -> None:
        logger.warning("%s failed: %s", record.name, exc)
        self._enter(record, ProjectState.ERROR, f"\nERROR: {exc}\n")

    def _publish_state(self, record: ProjectRecord) -> None:
        self._ctx.broadcaster.publish(record.name, EventKind.STATUS_UPDATE, record.state.value)

    def _schedule(self, record: ProjectRecord, workflow: Workflow) -> None:
        task = asyncio.create_task(workflow)
        record.workflows.add(task)
        task.add_done_callback(record.workflows.discard)

    def _work_dir_for(self, name: str) -> Path:
        return self._ctx.settings.deployments_dir / name
