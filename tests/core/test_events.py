"""Tests for EventBus infrastructure."""

from fanpipe.contracts.events import PhaseCompleted, PhaseError, PhaseStarted, RunPhase
from fanpipe.core.events import EventBus, NullEventBus


class TestEventBus:
    """Tests for EventBus implementation."""

    def test_subscribe_and_emit(self) -> None:
        bus = EventBus()
        received: list[PhaseStarted] = []

        bus.subscribe(PhaseStarted, received.append)
        bus.emit(PhaseStarted(phase=RunPhase.SPAWN, target="3 workers"))

        assert received == [PhaseStarted(phase=RunPhase.SPAWN, target="3 workers")]

    def test_handlers_called_in_subscription_order(self) -> None:
        bus = EventBus()
        calls: list[str] = []

        bus.subscribe(PhaseStarted, lambda e: calls.append("first"))
        bus.subscribe(PhaseStarted, lambda e: calls.append("second"))
        bus.emit(PhaseStarted(phase=RunPhase.WORKSPACE))

        assert calls == ["first", "second"]

    def test_only_exact_type_receives(self) -> None:
        bus = EventBus()
        started: list[PhaseStarted] = []

        bus.subscribe(PhaseStarted, started.append)
        bus.emit(PhaseCompleted(phase=RunPhase.SPAWN, duration_seconds=0.1))

        assert started == []

    def test_phase_error_message(self) -> None:
        event = PhaseError(phase=RunPhase.TOPOLOGY, error=ValueError("bad pipe"))
        assert event.error_message == "bad pipe"


class TestNullEventBus:
    """NullEventBus drops everything."""

    def test_handlers_never_called(self) -> None:
        bus = NullEventBus()
        received: list[PhaseStarted] = []

        bus.subscribe(PhaseStarted, received.append)
        bus.emit(PhaseStarted(phase=RunPhase.SUPERVISE))

        assert received == []
