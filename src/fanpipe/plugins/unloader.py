"""Default unloader: runs a query and spreads its rows over output pipes."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from sqlalchemy import Engine, text

from fanpipe.contracts.enums import WireFormat
from fanpipe.core.logging import get_logger
from fanpipe.plugins.formats import encode_row
from fanpipe.plugins.streams import RecordRouter

logger = get_logger(__name__)


def unload(engine: Engine, query: str, fmt: WireFormat, pipes: Sequence[Path]) -> int:
    """Stream the rows of ``query`` into ``pipes``, one record per row.

    The query runs before any pipe is opened, so an invalid query fails
    without ever connecting to a reader. Rows carry no header; consumers
    see data records only.

    Returns:
        Number of rows written

    Raises:
        sqlalchemy.exc.SQLAlchemyError: Query failed
        EndpointError: An output pipe failed
    """
    with engine.connect() as conn:
        result = conn.execution_options(stream_results=True).execute(text(query))
        columns = list(result.keys())
        logger.debug("query_started", columns=len(columns), pipes=len(pipes))

        router = RecordRouter(pipes).start()
        rows = 0
        for row in result:
            router.put(encode_row(tuple(row), columns, fmt))
            rows += 1
        router.close()

    logger.info("rows_unloaded", rows=rows, pipes=len(pipes), format=fmt.value)
    return rows
