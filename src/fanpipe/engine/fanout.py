"""Source side of the topology: database -> unloader -> multiplexer -> workers."""

from __future__ import annotations

import subprocess
from collections.abc import Mapping
from pathlib import Path

from fanpipe.contracts.enums import ProcessRole, WireFormat
from fanpipe.contracts.topology import TopologyPlan
from fanpipe.core.config import CollaboratorSettings
from fanpipe.core.logging import get_logger
from fanpipe.engine.collaborators import STDERR_FD, multiplexer_argv, unloader_argv
from fanpipe.engine.supervisor import Supervisor, TrackedProcess

logger = get_logger(__name__)


class FanOutDistributor:
    """Spawns the unloader and the fan-out multiplexer into the ``unload`` group.

    The unloader writes query rows across ``num_parallel_unloads``
    intermediate pipes; the multiplexer redistributes them over the
    ``num_processes`` worker input pipes.
    """

    def __init__(
        self,
        supervisor: Supervisor,
        collaborators: CollaboratorSettings,
        *,
        env: Mapping[str, str],
    ) -> None:
        self._supervisor = supervisor
        self._collaborators = collaborators
        self._env = env

    def spawn(self, plan: TopologyPlan, workspace_dir: Path, query: str, fmt: WireFormat) -> list[TrackedProcess]:
        """Launch unloader then multiplexer.

        Raises:
            ValueError: If the plan has no source side
            SpawnError: If either process fails to start
        """
        if not plan.mode.has_source:
            raise ValueError(f"Execution mode {plan.mode.value} has no source")

        intermediate = [workspace_dir / name for name in plan.unload_pipes]
        worker_inputs = [workspace_dir / name for name in plan.worker_inputs]

        unloader = self._supervisor.spawn(
            ProcessRole.UNLOAD,
            "unloader",
            unloader_argv(self._collaborators.unloader, query, fmt, intermediate),
            env=self._env,
            stdin=subprocess.DEVNULL,
            stdout=STDERR_FD,
        )
        multiplexer = self._supervisor.spawn(
            ProcessRole.UNLOAD,
            "multiplexer",
            multiplexer_argv(self._collaborators.multiplexer, fmt, intermediate, worker_inputs),
            env=self._env,
            stdin=subprocess.DEVNULL,
            stdout=STDERR_FD,
        )
        logger.info(
            "fan_out_spawned",
            unload_pipes=len(intermediate),
            worker_pipes=len(worker_inputs),
            format=fmt.value,
        )
        return [unloader, multiplexer]
