"""Event bus between the orchestrator and whatever presents a run.

The orchestrator emits ``PhaseStarted``/``PhaseCompleted``/``PhaseError``
for the workspace, topology, spawn and supervise phases, then one
``RunSummary``. ``fanpipe run`` subscribes console or JSON formatters;
library callers get ``NullEventBus`` and the engine stays silent.

Dispatch is synchronous on the orchestrator's thread, at phase boundaries
only. Nothing is emitted while the supervisor sweeps.
"""

from collections.abc import Callable
from typing import Any, Protocol, TypeVar

T = TypeVar("T")


class EventBusProtocol(Protocol):
    """Protocol satisfied by both EventBus and NullEventBus."""

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        """Subscribe a handler to an event type."""
        ...

    def emit(self, event: T) -> None:
        """Emit an event to all subscribers."""
        ...


class EventBus:
    """Type-keyed synchronous event bus.

    Handlers are called in subscription order. A handler exception
    propagates into the orchestrator and aborts the run like any other
    engine error, with the workspace still removed on the way out.

    Example:
        bus = EventBus()
        subscribe_formatters(bus, create_console_formatters())
        Orchestrator(settings, event_bus=bus).run("sort")
    """

    def __init__(self) -> None:
        self._subscribers: dict[type, list[Callable[[Any], None]]] = {}

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        """Subscribe a handler to an event type.

        Args:
            event_type: The event class to subscribe to
            handler: Callable that receives the event instance
        """
        self._subscribers.setdefault(event_type, []).append(handler)

    def emit(self, event: T) -> None:
        """Emit an event to all subscribers of its exact type.

        Events with no subscribers are ignored.
        """
        for handler in self._subscribers.get(type(event), []):
            handler(event)


class NullEventBus:
    """Event bus for runs without a presenter (the orchestrator default)."""

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        """Handlers are discarded."""

    def emit(self, event: T) -> None:
        """Events are dropped."""
