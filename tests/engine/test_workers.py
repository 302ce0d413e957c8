"""Tests for the worker pool."""

from pathlib import Path

import pytest

from fanpipe.contracts.enums import ProcessRole
from fanpipe.contracts.topology import WorkerSpec
from fanpipe.engine.supervisor import Supervisor
from fanpipe.engine.topology import plan_topology
from fanpipe.engine.workers import WorkerPool, worker_script
from tests.helpers import posix_only


class TestWorkerScript:
    def test_no_pipes_runs_command_verbatim(self) -> None:
        assert worker_script(WorkerSpec(index=1), "wc -l") == "wc -l"

    def test_both_pipes(self) -> None:
        spec = WorkerSpec(index=1, input_pipe=Path("/w/in 1"), output_pipe=Path("/w/out-1"))

        assert worker_script(spec, "sort") == "exec <'/w/in 1' >/w/out-1\nsort"

    def test_output_only(self) -> None:
        spec = WorkerSpec(index=2, output_pipe=Path("/w/out-2"))

        assert worker_script(spec, "echo hi") == "exec >/w/out-2\necho hi"


@posix_only
class TestWorkerPool:
    """Spawning workers with distinct ordinals."""

    def test_standalone_workers_see_ordinals(self, tmp_path: Path) -> None:
        out = tmp_path / "out"
        out.mkdir()
        supervisor = Supervisor(poll_interval=0.01)
        plan = plan_topology(has_source=False, has_sink=False, num_processes=5)

        try:
            workers = WorkerPool(supervisor).spawn(
                plan, tmp_path, f'echo "$FANPIPE_WORKER_ID $FANPIPE_WORKER_COUNT" > {out}/"$FANPIPE_WORKER_ID"'
            )
            supervisor.wait_all()
        finally:
            supervisor.close()

        assert [w.index for w in workers] == [1, 2, 3, 4, 5]
        assert all(w.role is ProcessRole.COMMAND for w in workers)
        contents = sorted((p.name, p.read_text()) for p in out.iterdir())
        assert contents == [(str(i), f"{i} 5\n") for i in range(1, 6)]

    def test_command_text_is_shell_interpreted(self, tmp_path: Path) -> None:
        target = tmp_path / "result"
        supervisor = Supervisor(poll_interval=0.01)
        plan = plan_topology(has_source=False, has_sink=False, num_processes=1)

        try:
            WorkerPool(supervisor).spawn(plan, tmp_path, f"for x in a b; do printf %s $x; done > {target}")
            supervisor.wait_all()
        finally:
            supervisor.close()

        assert target.read_text() == "ab"

    def test_base_env_replaces_inherited_environment(self, tmp_path: Path) -> None:
        target = tmp_path / "env"
        supervisor = Supervisor(poll_interval=0.01)
        plan = plan_topology(has_source=False, has_sink=False, num_processes=1)

        try:
            WorkerPool(supervisor, base_env={"PATH": "/usr/bin:/bin", "MARKER": "set"}).spawn(
                plan, tmp_path, f'echo "$MARKER" > {target}'
            )
            supervisor.wait_all()
        finally:
            supervisor.close()

        assert target.read_text() == "set\n"

    def test_missing_shell_raises_spawn_error(self, tmp_path: Path) -> None:
        from fanpipe.contracts.errors import SpawnError

        supervisor = Supervisor(poll_interval=0.01)
        plan = plan_topology(has_source=False, has_sink=False, num_processes=2)

        try:
            with pytest.raises(SpawnError, match="worker-1"):
                WorkerPool(supervisor, shell="/nonexistent/sh").spawn(plan, tmp_path, "true")
        finally:
            supervisor.close()
