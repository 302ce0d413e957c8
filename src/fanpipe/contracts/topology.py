"""Process topology types.

A ``TopologyPlan`` names every FIFO a run needs; paths are only bound once a
workspace directory exists.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from fanpipe.contracts.enums import ExecutionMode


@dataclass(frozen=True, slots=True)
class WorkerSpec:
    """One worker slot.

    Attributes:
        index: 1-based ordinal, unique within the run
        input_pipe: FIFO bound to stdin, None to inherit the orchestrator's
        output_pipe: FIFO bound to stdout, None to inherit the orchestrator's
    """

    index: int
    input_pipe: Path | None = None
    output_pipe: Path | None = None


@dataclass(frozen=True, slots=True)
class TopologyPlan:
    """Execution mode plus the FIFO names that must exist before spawning.

    Attributes:
        mode: Derived execution mode
        num_processes: Worker count
        worker_inputs: One pipe per worker when a source is present
        worker_outputs: One pipe per worker when a sink is present
        unload_pipes: Intermediate fan-out pipes (unloader -> multiplexer)
        load_pipes: Intermediate fan-in pipes (multiplexer -> loader)
    """

    mode: ExecutionMode
    num_processes: int
    worker_inputs: tuple[str, ...] = ()
    worker_outputs: tuple[str, ...] = ()
    unload_pipes: tuple[str, ...] = ()
    load_pipes: tuple[str, ...] = ()

    @property
    def pipe_names(self) -> tuple[str, ...]:
        """Every pipe to pre-create, in a stable order."""
        return self.worker_inputs + self.worker_outputs + self.unload_pipes + self.load_pipes

    def worker_specs(self, directory: Path) -> list[WorkerSpec]:
        """Bind worker slots to pipe paths under ``directory``."""
        specs = []
        for index in range(1, self.num_processes + 1):
            input_pipe = directory / self.worker_inputs[index - 1] if self.worker_inputs else None
            output_pipe = directory / self.worker_outputs[index - 1] if self.worker_outputs else None
            specs.append(WorkerSpec(index=index, input_pipe=input_pipe, output_pipe=output_pipe))
        return specs
