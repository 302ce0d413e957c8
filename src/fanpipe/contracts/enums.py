"""Status codes, modes and roles shared across subsystem boundaries."""

from enum import StrEnum


class ExecutionMode(StrEnum):
    """How worker stdin/stdout are wired for a run.

    Derived from whether a source query and a sink relation were supplied.
    Use ``ExecutionMode.from_endpoints()``; a mode is never chosen directly.
    """

    BIDIRECTIONAL = "bidirectional"
    SOURCE_ONLY = "source_only"
    SINK_ONLY = "sink_only"
    STANDALONE = "standalone"

    @classmethod
    def from_endpoints(cls, *, has_source: bool, has_sink: bool) -> "ExecutionMode":
        """Select the mode for a given source/sink combination."""
        if has_source and has_sink:
            return cls.BIDIRECTIONAL
        if has_source:
            return cls.SOURCE_ONLY
        if has_sink:
            return cls.SINK_ONLY
        return cls.STANDALONE

    @property
    def has_source(self) -> bool:
        """Whether workers read their stdin from a pipe."""
        return self in (ExecutionMode.BIDIRECTIONAL, ExecutionMode.SOURCE_ONLY)

    @property
    def has_sink(self) -> bool:
        """Whether workers write their stdout to a pipe."""
        return self in (ExecutionMode.BIDIRECTIONAL, ExecutionMode.SINK_ONLY)


class ProcessRole(StrEnum):
    """Supervision group a spawned process belongs to.

    Values:
        UNLOAD: Unloader and fan-out multiplexer
        COMMAND: User command workers
        LOAD: Fan-in multiplexer and loader
    """

    UNLOAD = "unload"
    COMMAND = "command"
    LOAD = "load"


# Upstream-most first. A dead unloader leaves workers blocked on a pipe that
# never closes, so it must be checked before anything downstream of it.
SUPERVISION_ORDER: tuple[ProcessRole, ...] = (
    ProcessRole.UNLOAD,
    ProcessRole.COMMAND,
    ProcessRole.LOAD,
)


class WireFormat(StrEnum):
    """Record encoding used on every pipe between unloader, workers and loader.

    Values:
        CSV: RFC 4180 rows, quoted fields may span lines, empty field is NULL
        TSV: PostgreSQL text format, ``\\N`` is NULL, backslash escapes
        JSONL: One JSON object per line keyed by column name
    """

    CSV = "csv"
    TSV = "tsv"
    JSONL = "jsonl"


class RunStatus(StrEnum):
    """Status of an orchestrator run."""

    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    INTERRUPTED = "interrupted"
