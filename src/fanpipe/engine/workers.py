"""Parallel instances of the user command."""

from __future__ import annotations

import os
import shlex
from collections.abc import Mapping
from pathlib import Path

from fanpipe.contracts.enums import ProcessRole
from fanpipe.contracts.topology import TopologyPlan, WorkerSpec
from fanpipe.core.logging import get_logger
from fanpipe.engine.supervisor import Supervisor, TrackedProcess

logger = get_logger(__name__)

WORKER_ID_ENV = "FANPIPE_WORKER_ID"
WORKER_COUNT_ENV = "FANPIPE_WORKER_COUNT"
DEFAULT_SHELL = "/bin/sh"


def worker_script(spec: WorkerSpec, command: str) -> str:
    """Shell script running ``command`` with the worker's pipes as stdin/stdout.

    The redirections are performed by the worker's own shell. Opening a FIFO
    blocks until its peer opens the other end, and that wait must happen in
    the child, never in the orchestrator.
    """
    redirects = []
    if spec.input_pipe is not None:
        redirects.append(f"<{shlex.quote(str(spec.input_pipe))}")
    if spec.output_pipe is not None:
        redirects.append(f">{shlex.quote(str(spec.output_pipe))}")
    if not redirects:
        return command
    return f"exec {' '.join(redirects)}\n{command}"


class WorkerPool:
    """Spawns ``num_processes`` workers running the same command text.

    Each worker sees its 1-based ordinal in ``FANPIPE_WORKER_ID`` and the pool
    size in ``FANPIPE_WORKER_COUNT``.
    """

    def __init__(
        self,
        supervisor: Supervisor,
        *,
        shell: str = DEFAULT_SHELL,
        base_env: Mapping[str, str] | None = None,
    ) -> None:
        self._supervisor = supervisor
        self._shell = shell
        self._base_env = base_env

    def spawn(self, plan: TopologyPlan, workspace_dir: Path, command: str) -> list[TrackedProcess]:
        """Launch every worker and add it to the ``command`` group.

        Raises:
            SpawnError: On the first worker that fails to start. Workers
                started before it are already tracked.
        """
        base_env = dict(os.environ if self._base_env is None else self._base_env)
        workers = []
        for spec in plan.worker_specs(workspace_dir):
            env = {
                **base_env,
                WORKER_ID_ENV: str(spec.index),
                WORKER_COUNT_ENV: str(plan.num_processes),
            }
            workers.append(
                self._supervisor.spawn(
                    ProcessRole.COMMAND,
                    f"worker-{spec.index}",
                    [self._shell, "-c", worker_script(spec, command)],
                    index=spec.index,
                    env=env,
                )
            )
        logger.info("workers_spawned", count=len(workers), mode=plan.mode.value)
        return workers
