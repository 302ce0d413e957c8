# src/fanpipe/cli_formatters.py
"""CLI event formatter factories for run output.

Provides factory functions that return event handler maps for console
(human-readable) and JSON (structured) output formats. Each factory
returns a dict mapping event types to handler callables, suitable for
subscribing to an EventBus.

Everything is written to stderr: in source-only and standalone runs the
workers share the orchestrator's stdout.
"""

from __future__ import annotations

import json
from collections.abc import Callable

import typer

from fanpipe.contracts.events import (
    PhaseCompleted,
    PhaseError,
    PhaseStarted,
    RunSummary,
)
from fanpipe.core.events import EventBusProtocol


def _format_duration(seconds: float) -> str:
    return f"{seconds:.2f}s" if seconds < 60 else f"{seconds / 60:.1f}m"


def create_console_formatters() -> dict[type, Callable[..., None]]:
    """Create console formatters for human-readable CLI output."""

    def _format_phase_started(event: PhaseStarted) -> None:
        target_info = f" → {event.target}" if event.target else ""
        typer.echo(f"[{event.phase.value.upper()}] Starting{target_info}...", err=True)

    def _format_phase_completed(event: PhaseCompleted) -> None:
        typer.echo(f"[{event.phase.value.upper()}] ✓ Completed in {_format_duration(event.duration_seconds)}", err=True)

    def _format_phase_error(event: PhaseError) -> None:
        target_info = f" ({event.target})" if event.target else ""
        typer.echo(f"[{event.phase.value.upper()}] ✗ Error{target_info}: {event.error_message}", err=True)

    def _format_run_summary(event: RunSummary) -> None:
        status_symbols = {
            "succeeded": "✓",
            "failed": "✗",
            "interrupted": "⚠",
            "running": "…",
        }
        symbol = status_symbols[event.status.value]
        typer.echo(
            f"\n{symbol} Run {event.status.value.upper()}: "
            f"{event.mode.value} | "
            f"{event.num_processes} worker(s) | "
            f"{event.processes_supervised} process(es) supervised | "
            f"{_format_duration(event.duration_seconds)} total",
            err=True,
        )

    return {
        PhaseStarted: _format_phase_started,
        PhaseCompleted: _format_phase_completed,
        PhaseError: _format_phase_error,
        RunSummary: _format_run_summary,
    }


def create_json_formatters() -> dict[type, Callable[..., None]]:
    """Create JSON formatters for structured CLI output."""

    def _format_phase_started_json(event: PhaseStarted) -> None:
        typer.echo(
            json.dumps(
                {
                    "event": "phase_started",
                    "phase": event.phase.value,
                    "target": event.target,
                }
            ),
            err=True,
        )

    def _format_phase_completed_json(event: PhaseCompleted) -> None:
        typer.echo(
            json.dumps(
                {
                    "event": "phase_completed",
                    "phase": event.phase.value,
                    "duration_seconds": event.duration_seconds,
                }
            ),
            err=True,
        )

    def _format_phase_error_json(event: PhaseError) -> None:
        typer.echo(
            json.dumps(
                {
                    "event": "phase_error",
                    "phase": event.phase.value,
                    "error": event.error_message,
                    "target": event.target,
                }
            ),
            err=True,
        )

    def _format_run_summary_json(event: RunSummary) -> None:
        typer.echo(
            json.dumps(
                {
                    "event": "run_completed",
                    "run_id": event.run_id,
                    "mode": event.mode.value,
                    "status": event.status.value,
                    "num_processes": event.num_processes,
                    "processes_supervised": event.processes_supervised,
                    "duration_seconds": event.duration_seconds,
                    "exit_code": event.exit_code,
                }
            ),
            err=True,
        )

    return {
        PhaseStarted: _format_phase_started_json,
        PhaseCompleted: _format_phase_completed_json,
        PhaseError: _format_phase_error_json,
        RunSummary: _format_run_summary_json,
    }


def subscribe_formatters(
    event_bus: EventBusProtocol,
    formatters: dict[type, Callable[..., None]],
) -> None:
    """Subscribe all formatters to the event bus.

    Args:
        event_bus: The event bus to subscribe handlers to.
        formatters: Mapping from event type to handler callable.
    """
    for event_type, handler in formatters.items():
        event_bus.subscribe(event_type, handler)
