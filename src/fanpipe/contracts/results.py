"""Run result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from fanpipe.contracts.enums import ExecutionMode, ProcessRole, RunStatus


@dataclass
class RunResult:
    """Result of a successful orchestrator run.

    Failed runs raise instead of returning; see ``fanpipe.contracts.errors``.
    """

    run_id: str
    mode: ExecutionMode
    status: RunStatus
    num_processes: int
    workspace: Path
    duration_seconds: float = 0.0
    processes_by_role: dict[ProcessRole, int] = field(default_factory=dict)

    @property
    def processes_supervised(self) -> int:
        """Total processes tracked across all roles."""
        return sum(self.processes_by_role.values())
