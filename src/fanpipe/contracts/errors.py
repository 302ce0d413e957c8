"""Exception taxonomy for fanpipe runs.

Pre-flight errors (``NoWritablePipeLocationError``, ``SpawnError``) abort a
run before any waiting happens. ``ProcessFailure`` subclasses are raised by
the supervisor on the first non-zero exit. ``CleanupFailure`` is only ever
logged: by the time the workspace is removed the run's outcome is decided.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from fanpipe.contracts.enums import ProcessRole


class FanpipeError(Exception):
    """Base class for all fanpipe errors."""


class NoWritablePipeLocationError(FanpipeError):
    """No candidate directory accepted a named pipe.

    Attributes:
        attempts: (candidate, reason) pairs in probe order
    """

    def __init__(self, attempts: Sequence[tuple[Path, str]]) -> None:
        self.attempts = list(attempts)
        details = "; ".join(f"{path}: {reason}" for path, reason in self.attempts)
        super().__init__(f"No writable location for named pipes ({details or 'no candidates'})")


class SpawnError(FanpipeError):
    """A process could not be started."""

    def __init__(self, role: ProcessRole, name: str, reason: str) -> None:
        self.role = role
        self.name = name
        self.reason = reason
        super().__init__(f"Failed to spawn {role.value} process {name}: {reason}")


class ProcessFailure(FanpipeError):
    """A supervised process exited with a non-zero status.

    Attributes:
        role: Supervision group of the failing process
        name: Process label (``worker-3``, ``unloader``, ``multiplexer``...)
        pid: OS process id
        exit_status: ``Popen.returncode`` (negative for signal deaths)
        index: Worker ordinal, None for collaborators
    """

    def __init__(
        self,
        role: ProcessRole,
        name: str,
        pid: int,
        exit_status: int,
        index: int | None = None,
    ) -> None:
        self.role = role
        self.name = name
        self.pid = pid
        self.exit_status = exit_status
        self.index = index
        super().__init__(f"{role.value} process {name} (pid {pid}) exited with status {self.describe_status()}")

    def describe_status(self) -> str:
        """Exit status, or the signal that killed the process."""
        if self.exit_status < 0:
            return f"{self.exit_status} (signal {-self.exit_status})"
        return str(self.exit_status)

    @property
    def exit_code(self) -> int:
        """Shell-style exit code for the orchestrator itself."""
        if self.exit_status < 0:
            return 128 + (-self.exit_status)
        if 0 < self.exit_status < 256:
            return self.exit_status
        return 1


class UnloadFailure(ProcessFailure):
    """The unloader or fan-out multiplexer failed."""


class WorkerFailure(ProcessFailure):
    """A user command worker failed."""


class LoadFailure(ProcessFailure):
    """The fan-in multiplexer or loader failed."""


FAILURE_BY_ROLE: dict[ProcessRole, type[ProcessFailure]] = {
    ProcessRole.UNLOAD: UnloadFailure,
    ProcessRole.COMMAND: WorkerFailure,
    ProcessRole.LOAD: LoadFailure,
}


class RunInterruptedError(FanpipeError):
    """The orchestrator received SIGINT or SIGTERM while supervising."""

    exit_code = 130


class CleanupFailure(FanpipeError):
    """The pipe workspace could not be fully removed."""


class RecordFormatError(FanpipeError):
    """A record on a pipe does not match the configured wire format."""
