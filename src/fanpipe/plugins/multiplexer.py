"""Default N:M record multiplexer.

Moves whole records from any number of input pipes to any number of output
pipes. Records are framed but never decoded, so the multiplexer is cheap and
agnostic to column layout.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from fanpipe.contracts.enums import WireFormat
from fanpipe.core.logging import get_logger
from fanpipe.plugins.streams import RecordCollector, RecordRouter

logger = get_logger(__name__)


def redistribute(inputs: Sequence[Path], outputs: Sequence[Path], fmt: WireFormat) -> int:
    """Copy every record from ``inputs`` to exactly one of ``outputs``.

    Returns once all inputs reached EOF and every output has been closed.

    Returns:
        Number of records moved

    Raises:
        EndpointError: Any input or output failed
    """
    router = RecordRouter(outputs).start()
    moved = 0
    for record in RecordCollector(inputs, fmt).start():
        router.put(record)
        moved += 1
    router.close()
    logger.info("records_redistributed", records=moved, inputs=len(inputs), outputs=len(outputs))
    return moved
