"""Observability events for orchestrator runs.

Events are emitted by the orchestrator and consumed by CLI formatters for
human-readable or structured output.
"""

from dataclasses import dataclass
from enum import StrEnum

from fanpipe.contracts.enums import ExecutionMode, RunStatus


class RunPhase(StrEnum):
    """Orchestrator lifecycle phases."""

    WORKSPACE = "workspace"
    TOPOLOGY = "topology"
    SPAWN = "spawn"
    SUPERVISE = "supervise"


@dataclass(frozen=True, slots=True)
class PhaseStarted:
    """Emitted when a run phase begins.

    Attributes:
        phase: The lifecycle phase starting
        target: Optional target (workspace path, mode, role)
    """

    phase: RunPhase
    target: str | None = None


@dataclass(frozen=True, slots=True)
class PhaseCompleted:
    """Emitted when a run phase completes successfully."""

    phase: RunPhase
    duration_seconds: float


@dataclass(frozen=True, slots=True)
class PhaseError:
    """Emitted when a run phase fails.

    Stores the full exception object to preserve its type and chained causes.
    """

    phase: RunPhase
    error: BaseException
    target: str | None = None

    @property
    def error_message(self) -> str:
        """Human-readable error message for formatting."""
        return str(self.error)


@dataclass(frozen=True, slots=True)
class RunSummary:
    """Summary emitted when a run finishes (success or failure)."""

    run_id: str
    mode: ExecutionMode
    status: RunStatus
    num_processes: int
    processes_supervised: int
    duration_seconds: float
    exit_code: int
