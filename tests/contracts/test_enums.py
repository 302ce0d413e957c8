"""Tests for the contract enums."""

import pytest

from fanpipe.contracts.enums import SUPERVISION_ORDER, ExecutionMode, ProcessRole


class TestEnums:
    def test_supervision_order_is_upstream_first(self) -> None:
        assert SUPERVISION_ORDER == (ProcessRole.UNLOAD, ProcessRole.COMMAND, ProcessRole.LOAD)

    @pytest.mark.parametrize(
        ("has_source", "has_sink", "mode"),
        [
            (True, True, ExecutionMode.BIDIRECTIONAL),
            (True, False, ExecutionMode.SOURCE_ONLY),
            (False, True, ExecutionMode.SINK_ONLY),
            (False, False, ExecutionMode.STANDALONE),
        ],
    )
    def test_mode_from_endpoints(self, has_source: bool, has_sink: bool, mode: ExecutionMode) -> None:
        selected = ExecutionMode.from_endpoints(has_source=has_source, has_sink=has_sink)

        assert selected is mode
        assert selected.has_source is has_source
        assert selected.has_sink is has_sink
