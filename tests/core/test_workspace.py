"""Tests for the named-pipe workspace."""

import stat
from pathlib import Path

import pytest

from fanpipe.contracts.errors import NoWritablePipeLocationError
from fanpipe.core.config import FanpipeSettings
from fanpipe.core.workspace import PipeWorkspace
from tests.helpers import leftover_workspaces, posix_only

pytestmark = posix_only


class TestCreate:
    """Probing candidate locations."""

    def test_creates_private_directory_in_first_candidate(self, tmp_path: Path) -> None:
        workspace = PipeWorkspace.create([tmp_path])
        try:
            assert workspace.path.parent == tmp_path
            assert workspace.path.name.startswith("fanpipe-")
            assert workspace.path.is_dir()
            assert list(workspace.path.iterdir()) == []
            assert stat.S_IMODE(workspace.path.stat().st_mode) == 0o700
        finally:
            workspace.destroy()

    def test_distinct_runs_get_distinct_directories(self, tmp_path: Path) -> None:
        with PipeWorkspace.create([tmp_path]) as first, PipeWorkspace.create([tmp_path]) as second:
            assert first.path != second.path

    def test_falls_through_unusable_candidate(self, tmp_path: Path) -> None:
        not_a_dir = tmp_path / "file"
        not_a_dir.write_text("")
        usable = tmp_path / "usable"
        usable.mkdir()

        with PipeWorkspace.create([not_a_dir, usable]) as workspace:
            assert workspace.path.parent == usable

    def test_falls_through_configured_dir_to_home(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        home = tmp_path / "home"
        home.mkdir()
        monkeypatch.setenv("HOME", str(home))
        configured = tmp_path / "configured"
        configured.write_text("")  # a file cannot hold pipes

        settings = FanpipeSettings(pipe_dir=configured)

        with PipeWorkspace.create(settings.pipe_dir_candidates()) as workspace:
            assert workspace.path.parent == home

    def test_all_candidates_rejected(self, tmp_path: Path) -> None:
        missing = tmp_path / "missing"
        not_a_dir = tmp_path / "file"
        not_a_dir.write_text("")

        with pytest.raises(NoWritablePipeLocationError) as exc_info:
            PipeWorkspace.create([missing, not_a_dir])

        assert [path for path, _ in exc_info.value.attempts] == [missing, not_a_dir]
        assert str(missing) in str(exc_info.value)

    def test_no_candidates(self) -> None:
        with pytest.raises(NoWritablePipeLocationError, match="no candidates"):
            PipeWorkspace.create([])


class TestPipes:
    """FIFO creation inside the workspace."""

    def test_make_pipe_creates_fifo(self, tmp_path: Path) -> None:
        with PipeWorkspace.create([tmp_path]) as workspace:
            pipe = workspace.make_pipe("worker-in-1")

            assert pipe.parent == workspace.path
            assert stat.S_ISFIFO(pipe.stat().st_mode)
            assert workspace.pipes == (pipe,)

    @pytest.mark.parametrize("name", ["", ".", "..", "a/b"])
    def test_invalid_names_rejected(self, tmp_path: Path, name: str) -> None:
        with PipeWorkspace.create([tmp_path]) as workspace, pytest.raises(ValueError):
            workspace.make_pipe(name)

    def test_duplicate_name_rejected(self, tmp_path: Path) -> None:
        with PipeWorkspace.create([tmp_path]) as workspace:
            workspace.make_pipe("load-1")
            with pytest.raises(FileExistsError):
                workspace.make_pipe("load-1")

    def test_make_pipe_after_destroy(self, tmp_path: Path) -> None:
        workspace = PipeWorkspace.create([tmp_path])
        workspace.destroy()
        with pytest.raises(RuntimeError):
            workspace.make_pipe("late")


class TestDestroy:
    """Removal on every exit path."""

    def test_context_manager_removes_directory_and_pipes(self, tmp_path: Path) -> None:
        with PipeWorkspace.create([tmp_path]) as workspace:
            workspace.make_pipe("a")
            workspace.make_pipe("b")

        assert not workspace.path.exists()
        assert leftover_workspaces(tmp_path) == []

    def test_removed_when_block_raises(self, tmp_path: Path) -> None:
        with pytest.raises(RuntimeError), PipeWorkspace.create([tmp_path]) as workspace:
            workspace.make_pipe("a")
            raise RuntimeError("boom")

        assert leftover_workspaces(tmp_path) == []

    def test_destroy_is_idempotent(self, tmp_path: Path) -> None:
        workspace = PipeWorkspace.create([tmp_path])
        workspace.destroy()
        workspace.destroy()
        assert not workspace.path.exists()

    def test_directory_already_gone(self, tmp_path: Path) -> None:
        workspace = PipeWorkspace.create([tmp_path])
        workspace.path.rmdir()
        workspace.destroy()
