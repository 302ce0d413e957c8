"""Execution mode selection and pipe planning.

Pure functions: nothing here touches the filesystem.

| source | sink | mode          | worker stdin | worker stdout |
|--------|------|---------------|--------------|---------------|
| yes    | yes  | bidirectional | pipe         | pipe          |
| yes    | no   | source_only   | pipe         | inherited     |
| no     | yes  | sink_only     | inherited    | pipe          |
| no     | no   | standalone    | inherited    | inherited     |
"""

from __future__ import annotations

from fanpipe.contracts.enums import ExecutionMode
from fanpipe.contracts.topology import TopologyPlan

WORKER_INPUT_PREFIX = "worker-in"
WORKER_OUTPUT_PREFIX = "worker-out"
UNLOAD_PREFIX = "unload"
LOAD_PREFIX = "load"


def _names(prefix: str, count: int) -> tuple[str, ...]:
    return tuple(f"{prefix}-{i}" for i in range(1, count + 1))


def plan_topology(
    *,
    has_source: bool,
    has_sink: bool,
    num_processes: int,
    num_parallel_unloads: int = 1,
    num_parallel_loads: int = 1,
) -> TopologyPlan:
    """Select the execution mode and the pipes it needs.

    Worker pipe counts always equal ``num_processes``; intermediate pipe
    counts are configured independently.

    Raises:
        ValueError: If any count is below 1
    """
    for label, count in (
        ("num_processes", num_processes),
        ("num_parallel_unloads", num_parallel_unloads),
        ("num_parallel_loads", num_parallel_loads),
    ):
        if count < 1:
            raise ValueError(f"{label} must be >= 1, got {count}")

    mode = ExecutionMode.from_endpoints(has_source=has_source, has_sink=has_sink)
    return TopologyPlan(
        mode=mode,
        num_processes=num_processes,
        worker_inputs=_names(WORKER_INPUT_PREFIX, num_processes) if mode.has_source else (),
        worker_outputs=_names(WORKER_OUTPUT_PREFIX, num_processes) if mode.has_sink else (),
        unload_pipes=_names(UNLOAD_PREFIX, num_parallel_unloads) if mode.has_source else (),
        load_pipes=_names(LOAD_PREFIX, num_parallel_loads) if mode.has_sink else (),
    )
