# src/fanpipe/engine/orchestrator.py
"""Run orchestration.

Coordinates, for a single run:
- Pipe workspace creation (scoped to the run)
- Topology planning and FIFO creation
- Spawning workers, then fan-in, then fan-out (sink-most first)
- Supervision in role order unload, command, load
- Unconditional reaping and workspace removal
"""

from __future__ import annotations

import signal
import threading
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import Any

import structlog

from fanpipe.contracts.enums import RunStatus
from fanpipe.contracts.errors import ProcessFailure, RunInterruptedError
from fanpipe.contracts.events import PhaseCompleted, PhaseError, PhaseStarted, RunPhase, RunSummary
from fanpipe.contracts.results import RunResult
from fanpipe.contracts.topology import TopologyPlan
from fanpipe.core.config import FanpipeSettings
from fanpipe.core.events import EventBusProtocol, NullEventBus
from fanpipe.core.logging import get_logger
from fanpipe.core.workspace import PipeWorkspace
from fanpipe.engine.collaborators import collaborator_env
from fanpipe.engine.fanin import FanInCollector
from fanpipe.engine.fanout import FanOutDistributor
from fanpipe.engine.supervisor import Supervisor
from fanpipe.engine.topology import plan_topology
from fanpipe.engine.workers import WorkerPool

logger = get_logger(__name__)


class Orchestrator:
    """Runs a command across parallel workers wired to an optional source and sink.

    Example:
        settings = load_settings()
        result = Orchestrator(settings).run(
            "tr a-z A-Z",
            query="SELECT name FROM users",
            table="users_upper",
        )
    """

    def __init__(self, settings: FanpipeSettings, *, event_bus: EventBusProtocol | None = None) -> None:
        self._settings = settings
        self._events: EventBusProtocol = event_bus if event_bus is not None else NullEventBus()

    def plan(self, *, query: str | None = None, table: str | None = None) -> TopologyPlan:
        """Topology a run with these endpoints would use."""
        return plan_topology(
            has_source=query is not None,
            has_sink=table is not None,
            num_processes=self._settings.num_processes,
            num_parallel_unloads=self._settings.num_parallel_unloads,
            num_parallel_loads=self._settings.num_parallel_loads,
        )

    @contextmanager
    def _shutdown_handler_context(self) -> Iterator[threading.Event]:
        """Install SIGINT/SIGTERM handlers that set a shutdown event.

        On first signal: sets the event, restores default SIGINT handler
        (so a second Ctrl-C raises KeyboardInterrupt).

        When called from a non-main thread, signal registration is skipped;
        Python raises ValueError if signal.signal() is called outside the main
        thread. The returned Event still works; it just won't be triggered by
        OS signals.
        """
        shutdown_event = threading.Event()

        if threading.current_thread() is not threading.main_thread():
            yield shutdown_event
            return

        original_sigint = signal.getsignal(signal.SIGINT)
        original_sigterm = signal.getsignal(signal.SIGTERM)

        def _handler(signum: int, frame: Any) -> None:
            shutdown_event.set()
            signal.signal(signal.SIGINT, signal.default_int_handler)

        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
        try:
            yield shutdown_event
        finally:
            signal.signal(signal.SIGINT, original_sigint)
            signal.signal(signal.SIGTERM, original_sigterm)

    def run(
        self,
        command: str,
        *,
        query: str | None = None,
        table: str | None = None,
        shutdown_event: threading.Event | None = None,
    ) -> RunResult:
        """Execute one run and wait for every process.

        Args:
            command: Shell command text each worker runs
            query: Source SQL query; rows are streamed into worker stdin
            table: Sink relation; worker stdout is loaded into it
            shutdown_event: Pre-created shutdown event for embedding and
                tests. When provided, signal handlers are not installed.

        Returns:
            RunResult with status SUCCEEDED

        Raises:
            ValueError: Empty command, or a source/sink without database.url
            NoWritablePipeLocationError: No directory accepted a FIFO
            SpawnError: A process could not be started
            UnloadFailure | WorkerFailure | LoadFailure: First failing process
            RunInterruptedError: SIGINT/SIGTERM received while running
        """
        if not command.strip():
            raise ValueError("command must not be empty")
        if (query is not None or table is not None) and not self._settings.database.url:
            raise ValueError("database.url is required when a source query or sink table is given")

        run_id = uuid.uuid4().hex[:12]
        plan = self.plan(query=query, table=table)
        start = time.perf_counter()

        shutdown_ctx = nullcontext(shutdown_event) if shutdown_event is not None else self._shutdown_handler_context()
        with structlog.contextvars.bound_contextvars(run_id=run_id), shutdown_ctx as active_event:
            logger.info("run_started", mode=plan.mode.value, num_processes=plan.num_processes)
            supervisor = Supervisor(
                poll_interval=self._settings.supervision.poll_interval_seconds,
                kill_grace=self._settings.supervision.kill_grace_seconds,
                shutdown_event=active_event,
            )
            try:
                workspace_path = self._execute(supervisor, plan, command, query=query, table=table)
            except (ProcessFailure, RunInterruptedError) as e:
                status = RunStatus.INTERRUPTED if isinstance(e, RunInterruptedError) else RunStatus.FAILED
                self._emit_summary(run_id, plan, supervisor, status, start, exit_code=e.exit_code)
                raise

            duration = time.perf_counter() - start
            logger.info("run_succeeded", duration_seconds=round(duration, 3))
            self._emit_summary(run_id, plan, supervisor, RunStatus.SUCCEEDED, start, exit_code=0)

        return RunResult(
            run_id=run_id,
            mode=plan.mode,
            status=RunStatus.SUCCEEDED,
            num_processes=plan.num_processes,
            workspace=workspace_path,
            duration_seconds=duration,
            processes_by_role=supervisor.counts(),
        )

    def _execute(
        self,
        supervisor: Supervisor,
        plan: TopologyPlan,
        command: str,
        *,
        query: str | None,
        table: str | None,
    ) -> Path:
        settings = self._settings

        phase_start = time.perf_counter()
        self._events.emit(PhaseStarted(phase=RunPhase.WORKSPACE))
        try:
            workspace = PipeWorkspace.create(settings.pipe_dir_candidates())
        except Exception as e:
            self._events.emit(PhaseError(phase=RunPhase.WORKSPACE, error=e))
            raise
        self._events.emit(PhaseCompleted(phase=RunPhase.WORKSPACE, duration_seconds=time.perf_counter() - phase_start))

        with workspace:
            phase_start = time.perf_counter()
            self._events.emit(PhaseStarted(phase=RunPhase.TOPOLOGY, target=plan.mode.value))
            try:
                for name in plan.pipe_names:
                    workspace.make_pipe(name)
            except Exception as e:
                self._events.emit(PhaseError(phase=RunPhase.TOPOLOGY, error=e))
                raise
            logger.debug("pipes_created", count=len(plan.pipe_names), workspace=str(workspace.path))
            self._events.emit(PhaseCompleted(phase=RunPhase.TOPOLOGY, duration_seconds=time.perf_counter() - phase_start))

            try:
                phase_start = time.perf_counter()
                self._events.emit(PhaseStarted(phase=RunPhase.SPAWN, target=f"{plan.num_processes} workers"))
                try:
                    self._spawn(supervisor, plan, workspace, command, query=query, table=table)
                except Exception as e:
                    self._events.emit(PhaseError(phase=RunPhase.SPAWN, error=e))
                    raise
                self._events.emit(PhaseCompleted(phase=RunPhase.SPAWN, duration_seconds=time.perf_counter() - phase_start))

                phase_start = time.perf_counter()
                self._events.emit(PhaseStarted(phase=RunPhase.SUPERVISE))
                try:
                    supervisor.wait_all()
                except Exception as e:
                    self._events.emit(PhaseError(phase=RunPhase.SUPERVISE, error=e))
                    raise
                self._events.emit(PhaseCompleted(phase=RunPhase.SUPERVISE, duration_seconds=time.perf_counter() - phase_start))
            finally:
                supervisor.close()

            return workspace.path

    def _spawn(
        self,
        supervisor: Supervisor,
        plan: TopologyPlan,
        workspace: PipeWorkspace,
        command: str,
        *,
        query: str | None,
        table: str | None,
    ) -> None:
        """Spawn from the sink-most processes toward the source-most."""
        settings = self._settings
        env = collaborator_env(settings.database.url)

        WorkerPool(supervisor).spawn(plan, workspace.path, command)
        if table is not None:
            FanInCollector(supervisor, settings.collaborators, env=env).spawn(plan, workspace.path, table, settings.format)
        if query is not None:
            FanOutDistributor(supervisor, settings.collaborators, env=env).spawn(plan, workspace.path, query, settings.format)

    def _emit_summary(
        self,
        run_id: str,
        plan: TopologyPlan,
        supervisor: Supervisor,
        status: RunStatus,
        start: float,
        *,
        exit_code: int,
    ) -> None:
        self._events.emit(
            RunSummary(
                run_id=run_id,
                mode=plan.mode,
                status=status,
                num_processes=plan.num_processes,
                processes_supervised=sum(supervisor.counts().values()),
                duration_seconds=time.perf_counter() - start,
                exit_code=exit_code,
            )
        )
