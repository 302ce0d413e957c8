"""Tests for topology planning."""

from pathlib import Path

import pytest

from fanpipe.contracts.enums import ExecutionMode
from fanpipe.engine.topology import plan_topology


class TestPlanTopology:
    """Mode selection and pipe naming."""

    def test_bidirectional(self) -> None:
        plan = plan_topology(has_source=True, has_sink=True, num_processes=2, num_parallel_unloads=3, num_parallel_loads=1)

        assert plan.mode is ExecutionMode.BIDIRECTIONAL
        assert plan.worker_inputs == ("worker-in-1", "worker-in-2")
        assert plan.worker_outputs == ("worker-out-1", "worker-out-2")
        assert plan.unload_pipes == ("unload-1", "unload-2", "unload-3")
        assert plan.load_pipes == ("load-1",)
        assert len(plan.pipe_names) == 8

    def test_source_only(self) -> None:
        plan = plan_topology(has_source=True, has_sink=False, num_processes=3)

        assert plan.mode is ExecutionMode.SOURCE_ONLY
        assert len(plan.worker_inputs) == 3
        assert plan.worker_outputs == ()
        assert plan.unload_pipes == ("unload-1",)
        assert plan.load_pipes == ()

    def test_sink_only(self) -> None:
        plan = plan_topology(has_source=False, has_sink=True, num_processes=3, num_parallel_loads=2)

        assert plan.mode is ExecutionMode.SINK_ONLY
        assert plan.worker_inputs == ()
        assert len(plan.worker_outputs) == 3
        assert plan.unload_pipes == ()
        assert plan.load_pipes == ("load-1", "load-2")

    def test_standalone_needs_no_pipes(self) -> None:
        plan = plan_topology(has_source=False, has_sink=False, num_processes=4, num_parallel_unloads=5)

        assert plan.mode is ExecutionMode.STANDALONE
        assert plan.pipe_names == ()

    @pytest.mark.parametrize(
        "counts",
        [
            {"num_processes": 0},
            {"num_processes": 2, "num_parallel_unloads": 0},
            {"num_processes": 2, "num_parallel_loads": -1},
        ],
    )
    def test_counts_below_one_rejected(self, counts: dict[str, int]) -> None:
        with pytest.raises(ValueError, match="must be >= 1"):
            plan_topology(has_source=True, has_sink=True, **counts)


class TestWorkerSpecs:
    """Binding worker slots to pipe paths."""

    def test_bidirectional_specs(self, tmp_path: Path) -> None:
        plan = plan_topology(has_source=True, has_sink=True, num_processes=2)

        specs = plan.worker_specs(tmp_path)

        assert [s.index for s in specs] == [1, 2]
        assert specs[1].input_pipe == tmp_path / "worker-in-2"
        assert specs[1].output_pipe == tmp_path / "worker-out-2"

    def test_standalone_specs_inherit_streams(self, tmp_path: Path) -> None:
        specs = plan_topology(has_source=False, has_sink=False, num_processes=3).worker_specs(tmp_path)

        assert [s.index for s in specs] == [1, 2, 3]
        assert all(s.input_pipe is None and s.output_pipe is None for s in specs)
