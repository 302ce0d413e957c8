# src/fanpipe/cli.py
"""fanpipe Command Line Interface.

Entry point for the fanpipe CLI tool. ``fanpipe run`` orchestrates a run;
``fanpipe unload``, ``fanpipe load`` and ``fanpipe mux`` are the default
collaborator programs the orchestrator spawns.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from fanpipe import __version__
from fanpipe.contracts.enums import WireFormat
from fanpipe.contracts.errors import (
    FanpipeError,
    NoWritablePipeLocationError,
    ProcessFailure,
    RunInterruptedError,
    SpawnError,
)
from fanpipe.core.config import FanpipeSettings, load_settings

if TYPE_CHECKING:
    from sqlalchemy import Engine

__all__ = [
    "app",
    "load_settings",  # Re-exported from config for convenience
]

EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2

app = typer.Typer(
    name="fanpipe",
    help="fanpipe: run a command in parallel between a SQL source and a table sink.",
    no_args_is_help=True,
)


class OutputFormat(StrEnum):
    CONSOLE = "console"
    JSON = "json"


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"fanpipe version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from .env file.

    Args:
        env_file: Explicit path to .env file. If None, searches for .env
                 in current directory and parent directories.

    Returns:
        True if .env was found and loaded, False otherwise.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(
                f"Error: .env file not found: {env_file}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(EXIT_CONFIG_ERROR)
        return load_dotenv(env_file, override=False)

    # Existing environment variables win over .env
    return load_dotenv(override=False)


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
        exists=False,  # Existence is checked in _load_dotenv for a clearer message
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """fanpipe: run a command in parallel between a SQL source and a table sink."""
    # Logging first, so nothing a subcommand does goes unformatted
    from fanpipe.core.logging import configure_logging

    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "INFO")

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho(
            "Warning: --env-file ignored because --no-dotenv is set.",
            fg=typer.colors.YELLOW,
            err=True,
        )


def _load_settings_or_exit(settings_path: Path | None, overrides: dict[str, Any]) -> FanpipeSettings:
    """Load settings, translating every configuration problem into exit code 2."""
    try:
        return load_settings(settings_path, overrides=overrides)
    except (YamlParserError, YamlScannerError) as e:
        typer.echo(f"YAML syntax error in {settings_path}: {e.problem}", err=True)
        raise typer.Exit(EXIT_CONFIG_ERROR) from None
    except FileNotFoundError:
        typer.echo(f"Error: Settings file not found: {settings_path}", err=True)
        raise typer.Exit(EXIT_CONFIG_ERROR) from None
    except ValidationError as e:
        typer.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(EXIT_CONFIG_ERROR) from None


@app.command()
def run(
    command: str = typer.Option(
        ...,
        "--command",
        "-c",
        help="Shell command each worker runs.",
    ),
    query: str | None = typer.Option(
        None,
        "--query",
        "-q",
        help="Source SQL query; its rows are streamed into worker stdin.",
    ),
    table: str | None = typer.Option(
        None,
        "--table",
        "-t",
        help="Sink table; worker stdout is loaded into it.",
    ),
    processes: int | None = typer.Option(
        None,
        "--processes",
        "-n",
        help="Number of parallel workers (default: CPUs minus one).",
    ),
    unloads: int | None = typer.Option(
        None,
        "--unloads",
        help="Intermediate pipes between unloader and fan-out multiplexer.",
    ),
    loads: int | None = typer.Option(
        None,
        "--loads",
        help="Intermediate pipes between fan-in multiplexer and loader.",
    ),
    pipe_dir: Path | None = typer.Option(
        None,
        "--pipe-dir",
        help="Preferred directory for named pipes (default: current directory).",
    ),
    wire_format: WireFormat | None = typer.Option(
        None,
        "--format",
        help="Record encoding on every pipe.",
    ),
    database_url: str | None = typer.Option(
        None,
        "--database-url",
        help="SQLAlchemy database URL for the source and sink.",
    ),
    settings: Path | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Show the topology that would run without starting anything.",
    ),
    output_format: OutputFormat = typer.Option(
        OutputFormat.CONSOLE,
        "--output",
        "-o",
        help="Progress output: 'console' (human-readable) or 'json' (structured JSON).",
    ),
) -> None:
    """Run COMMAND in parallel workers, optionally fed by QUERY and drained into TABLE.

    Worker ordinals are exported as FANPIPE_WORKER_ID (1-based) alongside
    FANPIPE_WORKER_COUNT.
    """
    from fanpipe.cli_formatters import create_console_formatters, create_json_formatters, subscribe_formatters
    from fanpipe.core.events import EventBus
    from fanpipe.engine.orchestrator import Orchestrator

    overrides: dict[str, Any] = {
        "num_processes": processes,
        "num_parallel_unloads": unloads,
        "num_parallel_loads": loads,
        "pipe_dir": pipe_dir,
        "format": wire_format,
        "database": {"url": database_url},
    }
    config = _load_settings_or_exit(settings.expanduser() if settings else None, overrides)

    event_bus = EventBus()
    formatters = create_json_formatters() if output_format is OutputFormat.JSON else create_console_formatters()
    subscribe_formatters(event_bus, formatters)
    orchestrator = Orchestrator(config, event_bus=event_bus)

    if dry_run:
        try:
            plan = orchestrator.plan(query=query, table=table)
        except ValueError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(EXIT_CONFIG_ERROR) from None
        typer.echo("Dry run mode - would execute:")
        typer.echo(f"  Mode: {plan.mode.value}")
        typer.echo(f"  Workers: {plan.num_processes}")
        typer.echo(f"  Format: {config.format.value}")
        typer.echo(f"  Pipes: {len(plan.pipe_names)}")
        for candidate in config.pipe_dir_candidates():
            typer.echo(f"  Pipe location candidate: {candidate}")
        return

    try:
        orchestrator.run(command, query=query, table=table)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(EXIT_CONFIG_ERROR) from None
    except (NoWritablePipeLocationError, SpawnError) as e:
        typer.echo(f"fanpipe: {e}", err=True)
        raise typer.Exit(EXIT_FAILURE) from None
    except ProcessFailure as e:
        typer.echo(f"fanpipe: {e}", err=True)
        raise typer.Exit(e.exit_code) from None
    except RunInterruptedError as e:
        typer.echo(f"fanpipe: {e}", err=True)
        raise typer.Exit(e.exit_code) from None
    except KeyboardInterrupt:
        # Second Ctrl-C while the first one is still shutting the run down
        typer.echo("fanpipe: interrupted", err=True)
        raise typer.Exit(RunInterruptedError.exit_code) from None


# === Default collaborators ===


def _collaborator_settings_or_exit(database_url: str | None) -> FanpipeSettings:
    """Settings for unload/load; ``--database-url`` wins over the environment."""
    config = _load_settings_or_exit(None, {"database": {"url": database_url}})
    if not config.database.url:
        typer.echo("Error: no database URL (set FANPIPE_DATABASE__URL or pass --database-url)", err=True)
        raise typer.Exit(EXIT_CONFIG_ERROR)
    return config


def _create_engine(config: FanpipeSettings) -> Engine:
    from sqlalchemy import create_engine

    assert config.database.url is not None
    return create_engine(config.database.url, echo=config.database.echo)


@app.command()
def unload(
    query: str = typer.Option(..., "--query", "-q", help="SQL query to unload."),
    pipes: list[Path] = typer.Argument(..., help="Output pipes."),
    wire_format: WireFormat = typer.Option(WireFormat.CSV, "--format", help="Record encoding."),
    database_url: str | None = typer.Option(None, "--database-url", help="SQLAlchemy database URL."),
) -> None:
    """Stream the rows of QUERY into PIPES."""
    from sqlalchemy.exc import SQLAlchemyError

    from fanpipe.plugins.unloader import unload as unload_rows

    engine = _create_engine(_collaborator_settings_or_exit(database_url))
    try:
        unload_rows(engine, query, wire_format, pipes)
    except (FanpipeError, SQLAlchemyError) as e:
        typer.echo(f"fanpipe unload: {e}", err=True)
        raise typer.Exit(EXIT_FAILURE) from None
    finally:
        engine.dispose()


@app.command()
def load(
    table: str = typer.Option(..., "--table", "-t", help="Target table (optionally schema-qualified)."),
    pipes: list[Path] = typer.Argument(..., help="Input pipes."),
    wire_format: WireFormat = typer.Option(WireFormat.CSV, "--format", help="Record encoding."),
    database_url: str | None = typer.Option(None, "--database-url", help="SQLAlchemy database URL."),
    batch_size: int | None = typer.Option(None, "--batch-size", min=1, help="Rows per INSERT batch."),
) -> None:
    """Insert every record arriving on PIPES into TABLE."""
    from sqlalchemy.exc import SQLAlchemyError

    from fanpipe.plugins.loader import load as load_rows

    config = _collaborator_settings_or_exit(database_url)
    engine = _create_engine(config)
    try:
        load_rows(engine, table, wire_format, pipes, batch_size=batch_size or config.loader.batch_size)
    except (FanpipeError, SQLAlchemyError) as e:
        typer.echo(f"fanpipe load: {e}", err=True)
        raise typer.Exit(EXIT_FAILURE) from None
    finally:
        engine.dispose()


@app.command()
def mux(
    inputs: list[Path] = typer.Option(..., "--input", "-i", help="Input pipe (repeatable)."),
    outputs: list[Path] = typer.Option(..., "--output", "-o", help="Output pipe (repeatable)."),
    wire_format: WireFormat = typer.Option(WireFormat.CSV, "--format", help="Record encoding."),
) -> None:
    """Redistribute records from every input across the outputs."""
    from fanpipe.plugins.multiplexer import redistribute

    try:
        redistribute(inputs, outputs, wire_format)
    except FanpipeError as e:
        typer.echo(f"fanpipe mux: {e}", err=True)
        raise typer.Exit(EXIT_FAILURE) from None


if __name__ == "__main__":
    app()
