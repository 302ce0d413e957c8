# src/fanpipe/engine/supervisor.py
"""Process supervision for a run.

Every spawned process is tracked in one of three role groups. Waiting sweeps
the groups in ``SUPERVISION_ORDER`` (unload, command, load) and, inside a
group, in spawn order. A sweep never blocks on a single process: a worker
blocked forever on a FIFO whose writer died must not stop the supervisor from
noticing the dead writer.

On the first non-zero exit found, every tracked process group receives
SIGTERM and the matching ``ProcessFailure`` is raised. Exits caused by that
broadcast are never reported.
"""

from __future__ import annotations

import os
import signal
import subprocess
import threading
import time
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field

from fanpipe.contracts.enums import SUPERVISION_ORDER, ProcessRole, RunStatus
from fanpipe.contracts.errors import FAILURE_BY_ROLE, RunInterruptedError, SpawnError
from fanpipe.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class TrackedProcess:
    """A spawned process and its identity within the run."""

    role: ProcessRole
    name: str
    popen: subprocess.Popen[bytes]
    index: int | None = None

    @property
    def pid(self) -> int:
        return self.popen.pid

    def poll(self) -> int | None:
        return self.popen.poll()


@dataclass
class ProcessGroup:
    """Processes sharing a role, in spawn order."""

    role: ProcessRole
    members: list[TrackedProcess] = field(default_factory=list)


def signal_process_group(popen: subprocess.Popen[bytes], signum: int) -> bool:
    """Send ``signum`` to the process group led by ``popen``.

    Every process is spawned as a session leader, so its pid is its group id
    and the signal also reaches anything it started. Processes already reaped
    are skipped; their pid may have been reused.

    Returns:
        True if a signal was delivered
    """
    if popen.poll() is not None:
        return False
    try:
        os.killpg(popen.pid, signum)
    except (ProcessLookupError, PermissionError):
        return False
    return True


class Supervisor:
    """Tracks spawned processes by role and waits for them deadlock-safely.

    State machine: RUNNING -> SUCCEEDED | FAILED | INTERRUPTED.

    Example:
        supervisor = Supervisor()
        supervisor.track(ProcessRole.COMMAND, "worker-1", popen, index=1)
        try:
            supervisor.wait_all()
        finally:
            supervisor.close()
    """

    def __init__(
        self,
        *,
        poll_interval: float = 0.05,
        kill_grace: float = 5.0,
        shutdown_event: threading.Event | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._poll_interval = poll_interval
        self._kill_grace = kill_grace
        self._shutdown_event = shutdown_event if shutdown_event is not None else threading.Event()
        self._clock = clock
        self._groups: dict[ProcessRole, ProcessGroup] = {}
        self._status = RunStatus.RUNNING
        self._terminated_at: float | None = None

    @property
    def status(self) -> RunStatus:
        return self._status

    @property
    def terminated(self) -> bool:
        """Whether the termination broadcast has been sent."""
        return self._terminated_at is not None

    def track(
        self,
        role: ProcessRole,
        name: str,
        popen: subprocess.Popen[bytes],
        *,
        index: int | None = None,
    ) -> TrackedProcess:
        """Add a running process to its role group."""
        tracked = TrackedProcess(role=role, name=name, popen=popen, index=index)
        self._groups.setdefault(role, ProcessGroup(role=role)).members.append(tracked)
        logger.debug("process_tracked", role=role.value, name=name, pid=popen.pid)
        return tracked

    def spawn(
        self,
        role: ProcessRole,
        name: str,
        argv: Sequence[str],
        *,
        index: int | None = None,
        env: Mapping[str, str] | None = None,
        stdin: int | None = None,
        stdout: int | None = None,
    ) -> TrackedProcess:
        """Start a process in its own session and track it immediately.

        Tracking happens before returning, so a later spawn failure still
        leaves every earlier sibling reachable by ``close()``.

        Raises:
            SpawnError: If the process could not be started
        """
        try:
            popen = subprocess.Popen(
                list(argv),
                env=dict(env) if env is not None else None,
                stdin=stdin,
                stdout=stdout,
                start_new_session=True,
            )
        except (OSError, ValueError) as e:
            logger.error("process_spawn_failed", role=role.value, name=name, error=str(e))
            raise SpawnError(role, name, str(e)) from e
        return self.track(role, name, popen, index=index)

    def groups(self, order: Sequence[ProcessRole] = SUPERVISION_ORDER) -> list[ProcessGroup]:
        """Non-empty groups in ``order``. Roles without members are absent."""
        return [self._groups[role] for role in order if role in self._groups and self._groups[role].members]

    def counts(self) -> dict[ProcessRole, int]:
        """Number of tracked processes per role."""
        return {group.role: len(group.members) for group in self.groups()}

    def _iter_processes(self, order: Sequence[ProcessRole] = SUPERVISION_ORDER) -> Iterator[TrackedProcess]:
        for group in self.groups(order):
            yield from group.members

    def wait_all(self, order: Sequence[ProcessRole] = SUPERVISION_ORDER) -> None:
        """Wait until every tracked process exits zero, or fail on the first that doesn't.

        Args:
            order: Role priority for detection; defaults to unload, command, load

        Raises:
            UnloadFailure | WorkerFailure | LoadFailure: First non-zero exit in
                sweep order. All processes have been signalled to terminate.
            RunInterruptedError: The shutdown event was set.
        """
        while True:
            if self._shutdown_event.is_set():
                self._status = RunStatus.INTERRUPTED
                logger.warning("run_interrupted", processes=sum(self.counts().values()))
                self.terminate_all()
                raise RunInterruptedError("Interrupted by signal; all processes terminated")

            pending = False
            for proc in self._iter_processes(order):
                returncode = proc.poll()
                if returncode is None:
                    pending = True
                    continue
                if returncode != 0:
                    self._status = RunStatus.FAILED
                    logger.error(
                        "process_failed",
                        role=proc.role.value,
                        name=proc.name,
                        pid=proc.pid,
                        exit_status=returncode,
                    )
                    self.terminate_all()
                    raise FAILURE_BY_ROLE[proc.role](
                        proc.role,
                        proc.name,
                        proc.pid,
                        returncode,
                        index=proc.index,
                    )

            if not pending:
                self._status = RunStatus.SUCCEEDED
                return
            self._shutdown_event.wait(self._poll_interval)

    def terminate_all(self) -> None:
        """Broadcast SIGTERM to every tracked process group.

        Only the first call sends signals; processes that already exited are
        skipped.
        """
        if self._terminated_at is not None:
            return
        self._terminated_at = self._clock()
        signalled = 0
        for proc in self._iter_processes():
            if signal_process_group(proc.popen, signal.SIGTERM):
                signalled += 1
        logger.info("processes_terminated", signalled=signalled)

    def reap(self) -> None:
        """Wait for every tracked process to exit.

        After a termination broadcast, processes that outlive the grace
        period are killed so reaping always finishes.
        """
        for proc in self._iter_processes():
            if self._terminated_at is None:
                proc.popen.wait()
                continue
            remaining = max(0.0, self._terminated_at + self._kill_grace - self._clock())
            try:
                proc.popen.wait(timeout=remaining)
            except subprocess.TimeoutExpired:
                logger.warning("process_killed", role=proc.role.value, name=proc.name, pid=proc.pid)
                signal_process_group(proc.popen, signal.SIGKILL)
                proc.popen.wait()

    def close(self) -> None:
        """Terminate anything still running, then reap everything.

        Safe on every exit path: after success nothing is alive and this is
        only a final wait.
        """
        if any(proc.poll() is None for proc in self._iter_processes()):
            self.terminate_all()
        self.reap()
