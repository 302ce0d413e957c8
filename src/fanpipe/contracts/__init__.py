"""Shared contracts for cross-boundary data types.

This package is a leaf module with no outbound dependencies to core/engine.
Settings classes are not re-exported here; import them from
``fanpipe.core.config``.
"""

from fanpipe.contracts.enums import SUPERVISION_ORDER, ExecutionMode, ProcessRole, RunStatus, WireFormat
from fanpipe.contracts.errors import (
    FAILURE_BY_ROLE,
    CleanupFailure,
    FanpipeError,
    LoadFailure,
    NoWritablePipeLocationError,
    ProcessFailure,
    RecordFormatError,
    RunInterruptedError,
    SpawnError,
    UnloadFailure,
    WorkerFailure,
)
from fanpipe.contracts.events import PhaseCompleted, PhaseError, PhaseStarted, RunPhase, RunSummary
from fanpipe.contracts.results import RunResult
from fanpipe.contracts.topology import TopologyPlan, WorkerSpec

__all__ = [
    "FAILURE_BY_ROLE",
    "SUPERVISION_ORDER",
    "CleanupFailure",
    "ExecutionMode",
    "FanpipeError",
    "LoadFailure",
    "NoWritablePipeLocationError",
    "PhaseCompleted",
    "PhaseError",
    "PhaseStarted",
    "ProcessFailure",
    "ProcessRole",
    "RecordFormatError",
    "RunInterruptedError",
    "RunPhase",
    "RunResult",
    "RunStatus",
    "RunSummary",
    "SpawnError",
    "TopologyPlan",
    "UnloadFailure",
    "WireFormat",
    "WorkerFailure",
    "WorkerSpec",
]
