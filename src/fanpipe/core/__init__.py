"""Core infrastructure: configuration, logging, events and the pipe workspace."""

from fanpipe.core.config import FanpipeSettings, load_settings
from fanpipe.core.events import EventBus, EventBusProtocol, NullEventBus
from fanpipe.core.logging import configure_logging, get_logger
from fanpipe.core.workspace import PipeWorkspace

__all__ = [
    "EventBus",
    "EventBusProtocol",
    "FanpipeSettings",
    "NullEventBus",
    "PipeWorkspace",
    "configure_logging",
    "get_logger",
    "load_settings",
]
