"""Sink side of the topology: workers -> multiplexer -> loader -> database."""

from __future__ import annotations

import subprocess
from collections.abc import Mapping
from pathlib import Path

from fanpipe.contracts.enums import ProcessRole, WireFormat
from fanpipe.contracts.topology import TopologyPlan
from fanpipe.core.config import CollaboratorSettings
from fanpipe.core.logging import get_logger
from fanpipe.engine.collaborators import STDERR_FD, loader_argv, multiplexer_argv
from fanpipe.engine.supervisor import Supervisor, TrackedProcess

logger = get_logger(__name__)


class FanInCollector:
    """Spawns the fan-in multiplexer and the loader into the ``load`` group."""

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

    def spawn(self, plan: TopologyPlan, workspace_dir: Path, table: str, fmt: WireFormat) -> list[TrackedProcess]:
        """Launch multiplexer then loader.

        Raises:
            ValueError: If the plan has no sink side
            SpawnError: If either process fails to start
        """
        if not plan.mode.has_sink:
            raise ValueError(f"Execution mode {plan.mode.value} has no sink")

        worker_outputs = [workspace_dir / name for name in plan.worker_outputs]
        intermediate = [workspace_dir / name for name in plan.load_pipes]

        multiplexer = self._supervisor.spawn(
            ProcessRole.LOAD,
            "multiplexer",
            multiplexer_argv(self._collaborators.multiplexer, fmt, worker_outputs, intermediate),
            env=self._env,
            stdin=subprocess.DEVNULL,
            stdout=STDERR_FD,
        )
        loader = self._supervisor.spawn(
            ProcessRole.LOAD,
            "loader",
            loader_argv(self._collaborators.loader, table, fmt, intermediate),
            env=self._env,
            stdin=subprocess.DEVNULL,
            stdout=STDERR_FD,
        )
        logger.info(
            "fan_in_spawned",
            worker_pipes=len(worker_outputs),
            load_pipes=len(intermediate),
            table=table,
        )
        return [multiplexer, loader]
