# src/fanpipe/core/workspace.py
"""Private directory holding a run's named pipes.

The workspace is probed into existence on the first candidate directory that
accepts a FIFO, owned exclusively by one run, and removed when the run's
``with`` block exits, however it exits.
"""

from __future__ import annotations

import os
import shutil
import stat
import sys
import tempfile
from collections.abc import Iterable
from pathlib import Path
from types import TracebackType

from fanpipe.contracts.errors import CleanupFailure, NoWritablePipeLocationError
from fanpipe.core.logging import get_logger

logger = get_logger(__name__)

_DIR_PREFIX = "fanpipe-"
_PROBE_NAME = ".probe"


class PipeWorkspace:
    """Exclusively-owned directory of FIFOs for one run.

    Use ``PipeWorkspace.create()`` rather than the constructor; it probes the
    candidate locations and guarantees the directory is fresh.

    Example:
        with PipeWorkspace.create([configured, Path.home()]) as workspace:
            pipe = workspace.make_pipe("in-1")
            ...
        # directory and every pipe are gone here
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._pipes: list[Path] = []
        self._destroyed = False

    @classmethod
    def create(cls, candidates: Iterable[Path]) -> PipeWorkspace:
        """Create a workspace under the first usable candidate directory.

        For each candidate a uniquely named subdirectory is created and a FIFO
        is made inside it as a probe. Candidates that reject either step are
        skipped after removing whatever was created.

        Args:
            candidates: Directories to try, in order of preference

        Raises:
            NoWritablePipeLocationError: If no candidate accepted a FIFO
        """
        attempts: list[tuple[Path, str]] = []
        for candidate in candidates:
            candidate = Path(candidate).expanduser()
            try:
                path = Path(tempfile.mkdtemp(prefix=_DIR_PREFIX, dir=candidate))
            except OSError as e:
                attempts.append((candidate, e.strerror or str(e)))
                logger.debug("pipe_location_rejected", candidate=str(candidate), reason=str(e))
                continue

            probe = path / _PROBE_NAME
            try:
                os.mkfifo(probe, 0o600)
                probe.unlink()
            except OSError as e:
                attempts.append((candidate, e.strerror or str(e)))
                logger.debug("pipe_location_rejected", candidate=str(candidate), reason=str(e))
                shutil.rmtree(path, ignore_errors=True)
                continue

            logger.debug("pipe_workspace_created", path=str(path))
            return cls(path)

        raise NoWritablePipeLocationError(attempts)

    @property
    def path(self) -> Path:
        """Workspace directory."""
        return self._path

    @property
    def pipes(self) -> tuple[Path, ...]:
        """Pipes created through ``make_pipe``, in creation order."""
        return tuple(self._pipes)

    def make_pipe(self, name: str) -> Path:
        """Create a FIFO named ``name`` inside the workspace.

        Raises:
            ValueError: If name is not a plain file name
            FileExistsError: If a pipe of that name already exists
        """
        if not name or os.sep in name or name in (".", ".."):
            raise ValueError(f"Invalid pipe name: {name!r}")
        if self._destroyed:
            raise RuntimeError(f"Workspace {self._path} has been destroyed")
        pipe = self._path / name
        os.mkfifo(pipe, 0o600)
        self._pipes.append(pipe)
        return pipe

    def destroy(self) -> None:
        """Remove the workspace directory and everything in it.

        Idempotent. Removal errors are logged, never raised.
        """
        if self._destroyed:
            return
        self._destroyed = True
        try:
            _remove_tree(self._path)
        except CleanupFailure as e:
            logger.warning("pipe_workspace_cleanup_failed", path=str(self._path), error=str(e))
        else:
            logger.debug("pipe_workspace_removed", path=str(self._path))

    def __enter__(self) -> PipeWorkspace:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.destroy()

    def __repr__(self) -> str:
        return f"<PipeWorkspace {self._path} pipes={len(self._pipes)}>"


def _remove_tree(path: Path) -> None:
    """Recursively remove ``path``, raising CleanupFailure with every error."""
    if not path.exists():
        return
    if not stat.S_ISDIR(path.lstat().st_mode):
        raise CleanupFailure(f"{path} is not a directory")

    errors: list[str] = []
    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=lambda func, failed, exc: errors.append(f"{failed}: {exc}"))
    else:
        shutil.rmtree(path, onerror=lambda func, failed, exc_info: errors.append(f"{failed}: {exc_info[1]}"))
    if errors:
        raise CleanupFailure("; ".join(errors))
