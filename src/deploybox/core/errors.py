"""Error kinds raised by the deployment engine."""

from __future__ import annotations


class DeployboxError(Exception):
    """Base class for engine errors."""


class DuplicateNameError(DeployboxError, ValueError):
    """A project with this name is already registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Project with this name already exists: {name}")
        self.name = name


class InvalidProjectNameError(DeployboxError, ValueError):
    """The project name cannot be used as a directory name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Invalid project name: {name!r}")
        self.name = name


class NotFoundError(DeployboxError, LookupError):
    """No project matches the requested name or repository URL."""


class ProcessFailure(DeployboxError):
    """An external command could not be started or exited non-zero."""

    def __init__(
        self,
        command: str,
        *,
        exit_code: int | None = None,
        start_error: str | None = None,
    ) -> None:
        if start_error is not None:
            message = f"Command failed to start: {start_error}"
        else:
            message = f"Exited with status {exit_code}"
        super().__init__(message)
        self.command = command
        self.exit_code = exit_code
        self.start_error = start_error


class ResourceExhaustedError(DeployboxError):
    """No free port was found within the search window."""


class DeleteFailureError(DeployboxError):
    """Stopping the project or removing its directory failed."""
