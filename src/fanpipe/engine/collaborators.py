"""Argv and environment for the unloader, loader and multiplexer.

Collaborators are separate programs reached through a fixed argv contract, so
any tool honouring it can replace the built-in ``fanpipe unload|load|mux``.
Option values use the ``--opt=value`` form and pipes follow ``--`` so that
queries or paths starting with a dash are never read as options.
"""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from pathlib import Path

from fanpipe.contracts.enums import WireFormat

DATABASE_URL_ENV = "FANPIPE_DATABASE__URL"

# Collaborators must not write into inherited worker stdout.
STDERR_FD = 2


def unloader_argv(prefix: Sequence[str], query: str, fmt: WireFormat, outputs: Sequence[Path]) -> list[str]:
    """``unload(query, format, outputPipePaths[])``."""
    return [*prefix, f"--query={query}", f"--format={fmt.value}", "--", *(str(p) for p in outputs)]


def loader_argv(prefix: Sequence[str], table: str, fmt: WireFormat, inputs: Sequence[Path]) -> list[str]:
    """``load(relationName, inputPipePaths[])``."""
    return [*prefix, f"--table={table}", f"--format={fmt.value}", "--", *(str(p) for p in inputs)]


def multiplexer_argv(
    prefix: Sequence[str],
    fmt: WireFormat,
    inputs: Sequence[Path],
    outputs: Sequence[Path],
) -> list[str]:
    """``redistribute(inputPaths[], outputPaths[])``."""
    argv = [*prefix, f"--format={fmt.value}"]
    argv.extend(f"--input={p}" for p in inputs)
    argv.extend(f"--output={p}" for p in outputs)
    return argv


def collaborator_env(database_url: str | None, base: Mapping[str, str] | None = None) -> dict[str, str]:
    """Environment for collaborator processes.

    The database URL travels through the environment rather than argv so it
    never shows up in process listings.
    """
    env = dict(os.environ if base is None else base)
    if database_url is not None:
        env[DATABASE_URL_ENV] = database_url
    return env
