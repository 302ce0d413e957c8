# tests/helpers.py
"""Helpers shared by process-level tests."""

import os
import sys
from collections.abc import Iterable
from pathlib import Path

import pytest
from sqlalchemy import Engine, text

posix_only = pytest.mark.skipif(
    sys.platform == "win32" or not hasattr(os, "mkfifo"),
    reason="requires named pipes and process groups",
)


def leftover_workspaces(directory: Path) -> list[Path]:
    """Workspace directories still present under ``directory``."""
    return sorted(directory.glob("fanpipe-*"))


def create_table(engine: Engine, ddl: str, rows: Iterable[dict] = (), insert: str | None = None) -> None:
    """Run ``ddl`` and optionally insert ``rows`` with the ``insert`` statement."""
    with engine.begin() as conn:
        conn.execute(text(ddl))
        rows = list(rows)
        if rows and insert is not None:
            conn.execute(text(insert), rows)


def fetch_all(engine: Engine, sql: str) -> list[tuple]:
    with engine.connect() as conn:
        return [tuple(row) for row in conn.execute(text(sql))]
