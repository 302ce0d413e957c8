# src/fanpipe/core/config.py
"""
Configuration schema and loading for fanpipe runs.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

import os
import re
import sys
import tempfile
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from fanpipe.contracts.enums import WireFormat


def available_processors() -> int:
    """Number of CPUs this process may run on.

    Honors CPU affinity masks (containers, taskset) where the platform
    exposes them.
    """
    try:
        return len(os.sched_getaffinity(0))
    except AttributeError:
        return os.cpu_count() or 1


def default_num_processes() -> int:
    """Default worker count: available processors minus one, at least one."""
    return max(1, available_processors() - 1)


def _fanpipe_command(subcommand: str) -> list[str]:
    return [sys.executable, "-m", "fanpipe", subcommand]


class DatabaseSettings(BaseModel):
    """Database connection configuration."""

    model_config = {"frozen": True}

    url: str | None = Field(default=None, description="SQLAlchemy database URL")
    echo: bool = Field(default=False, description="Echo SQL statements")


class CollaboratorSettings(BaseModel):
    """Argv prefixes for the external unloader, loader and multiplexer.

    Contract arguments are appended to each prefix:
        unloader:    --query=Q --format=F -- PIPE...
        loader:      --table=T --format=F -- PIPE...
        multiplexer: --format=F --input=P... --output=P...
    """

    model_config = {"frozen": True}

    unloader: list[str] = Field(default_factory=lambda: _fanpipe_command("unload"))
    loader: list[str] = Field(default_factory=lambda: _fanpipe_command("load"))
    multiplexer: list[str] = Field(default_factory=lambda: _fanpipe_command("mux"))

    @field_validator("unloader", "loader", "multiplexer")
    @classmethod
    def validate_not_empty(cls, v: list[str]) -> list[str]:
        """A collaborator needs at least a program name."""
        if not v:
            raise ValueError("collaborator command must not be empty")
        return v


class SupervisionSettings(BaseModel):
    """Supervisor timing."""

    model_config = {"frozen": True}

    poll_interval_seconds: float = Field(
        default=0.05,
        gt=0,
        description="Delay between exit-status sweeps",
    )
    kill_grace_seconds: float = Field(
        default=5.0,
        ge=0,
        description="How long terminated processes get before SIGKILL",
    )


class LoaderSettings(BaseModel):
    """Default loader behaviour."""

    model_config = {"frozen": True}

    batch_size: int = Field(default=1000, gt=0, description="Rows per INSERT batch")


class FanpipeSettings(BaseModel):
    """Top-level fanpipe configuration.

    Populated once at entry from file, environment and CLI overrides,
    then frozen.
    """

    model_config = {"frozen": True}

    num_processes: int = Field(
        default_factory=default_num_processes,
        gt=0,
        description="Parallel worker count",
    )
    num_parallel_unloads: int = Field(
        default=1,
        gt=0,
        description="Intermediate pipes between unloader and fan-out multiplexer",
    )
    num_parallel_loads: int = Field(
        default=1,
        gt=0,
        description="Intermediate pipes between fan-in multiplexer and loader",
    )
    pipe_dir: Path = Field(
        default_factory=Path.cwd,
        description="Preferred directory for the named-pipe workspace",
    )
    format: WireFormat = Field(
        default=WireFormat.CSV,
        description="Wire encoding between unloader, workers and loader",
    )
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    collaborators: CollaboratorSettings = Field(default_factory=CollaboratorSettings)
    supervision: SupervisionSettings = Field(default_factory=SupervisionSettings)
    loader: LoaderSettings = Field(default_factory=LoaderSettings)

    def pipe_dir_candidates(self) -> list[Path]:
        """Workspace locations to probe, in order: configured, home, temp."""
        return [self.pipe_dir, Path.home(), Path(tempfile.gettempdir())]


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Args:
        config: Configuration dict (may contain nested structures)

    Returns:
        New dict with environment variables expanded
    """

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            env_value = os.environ.get(match.group(1))
            if env_value is not None:
                return env_value
            if match.group(2) is not None:
                return match.group(2)
            # No env var and no default - keep original (validation will likely fail)
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def _lower_keys(value: Any) -> Any:
    """Lowercase mapping keys at every level (Dynaconf uppercases them)."""
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_lower_keys(item) for item in value]
    return value


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Merge ``overrides`` into ``base``; nested dicts merge, None values are skipped."""
    merged = dict(base)
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        elif isinstance(value, dict):
            merged[key] = _deep_merge({}, value)
        else:
            merged[key] = value
    return merged


def load_settings(
    config_path: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> FanpipeSettings:
    """Load settings with environment variable and CLI overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Explicit overrides (CLI options) - highest priority
    2. Environment variables (FANPIPE_*)
    3. Config file (YAML), when given
    4. Defaults from Pydantic schema - lowest priority

    Environment variable format: FANPIPE_DATABASE__URL for nested keys.

    Args:
        config_path: Optional path to a YAML configuration file
        overrides: Values that win over file and environment. None values
            are ignored so unset CLI options fall through.

    Returns:
        Validated FanpipeSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config_path is given but doesn't exist
    """
    from dynaconf import Dynaconf

    settings_files: list[str] = []
    if config_path is not None:
        # Dynaconf silently accepts missing files
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        settings_files.append(str(config_path))

    dynaconf_settings = Dynaconf(
        envvar_prefix="FANPIPE",
        settings_files=settings_files,
        environments=False,
        load_dotenv=False,  # The CLI loads .env itself
        merge_enabled=True,
    )

    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = _lower_keys({k: v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys})
    raw_config = _expand_env_vars(raw_config)
    if overrides:
        raw_config = _deep_merge(raw_config, overrides)

    return FanpipeSettings(**raw_config)
