# tests/conftest.py
"""Shared test fixtures.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=debug pytest tests/property/

Engine and end-to-end tests spawn real processes connected by real named
pipes, so they only run on POSIX systems. Default collaborators are started
as ``python -m fanpipe ...`` and need the package installed.
"""

import os
from collections.abc import Iterator
from pathlib import Path

import pytest
from hypothesis import Phase, Verbosity, settings
from sqlalchemy import Engine, create_engine

from fanpipe.core.config import FanpipeSettings, SupervisionSettings


@pytest.fixture(autouse=True)
def _isolate_fanpipe_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep FANPIPE_* variables from the developer's shell out of tests."""
    for key in list(os.environ):
        if key.startswith("FANPIPE_"):
            monkeypatch.delenv(key)


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """SQLite database file private to the test."""
    return f"sqlite:///{tmp_path / 'fanpipe.db'}"


@pytest.fixture
def engine(database_url: str) -> Iterator[Engine]:
    db = create_engine(database_url)
    yield db
    db.dispose()


@pytest.fixture
def pipe_dir(tmp_path: Path) -> Path:
    path = tmp_path / "pipes"
    path.mkdir()
    return path


@pytest.fixture
def make_settings(pipe_dir: Path):
    """Factory for run settings with fast supervision timing."""

    def _make(**overrides) -> FanpipeSettings:
        values = {
            "num_processes": 3,
            "pipe_dir": pipe_dir,
            "supervision": SupervisionSettings(poll_interval_seconds=0.01, kill_grace_seconds=2.0),
        }
        values.update(overrides)
        return FanpipeSettings(**values)

    return _make


# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
