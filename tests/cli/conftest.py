# tests/cli/conftest.py
"""CLI test fixtures."""

import pytest

from fanpipe.core.logging import configure_logging


@pytest.fixture(autouse=True)
def _restore_logging():
    """The CLI binds logging to CliRunner's stderr, which closes after invoke."""
    yield
    configure_logging()
