"""Default loader: persists records from input pipes into a table.

The target table must already exist; its columns are reflected and records
map to them by position (CSV, TSV) or by key (JSONL). Text fields are
converted to the column's Python type before insertion. Everything is
written in one transaction, so a failed load leaves the table untouched.
"""

from __future__ import annotations

import datetime
import decimal
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from sqlalchemy import Column, Engine, MetaData, Table

from fanpipe.contracts.enums import WireFormat
from fanpipe.contracts.errors import RecordFormatError
from fanpipe.core.logging import get_logger
from fanpipe.plugins.formats import decode_record, is_blank
from fanpipe.plugins.streams import RecordCollector

logger = get_logger(__name__)

_TRUE = frozenset({"t", "true", "y", "yes", "on", "1"})
_FALSE = frozenset({"f", "false", "n", "no", "off", "0"})


def _parse_bool(text: str) -> bool:
    lowered = text.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"not a boolean: {text!r}")


def _parse_bytes(text: str) -> bytes:
    if text.startswith("\\x"):
        return bytes.fromhex(text[2:])
    return text.encode("utf-8")


_PARSERS: dict[type, Callable[[str], Any]] = {
    int: int,
    float: float,
    decimal.Decimal: decimal.Decimal,
    bool: _parse_bool,
    datetime.datetime: datetime.datetime.fromisoformat,
    datetime.date: datetime.date.fromisoformat,
    datetime.time: datetime.time.fromisoformat,
    bytes: _parse_bytes,
}


def _column_parser(column: Column[Any]) -> Callable[[str], Any] | None:
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return None
    return _PARSERS.get(python_type)


def reflect_table(engine: Engine, name: str) -> Table:
    """Reflect ``name``, which may be qualified as ``schema.table``."""
    schema, _, table_name = name.rpartition(".")
    return Table(table_name, MetaData(), autoload_with=engine, schema=schema or None)


class _RowCoercer:
    def __init__(self, table: Table) -> None:
        self._parsers = {column.name: _column_parser(column) for column in table.columns}

    def __call__(self, row: dict[str, Any]) -> dict[str, Any]:
        coerced = {}
        for key, value in row.items():
            parser = self._parsers.get(key)
            if parser is not None and isinstance(value, str):
                try:
                    value = parser(value)
                except (ValueError, ArithmeticError) as e:
                    raise RecordFormatError(f"Column {key!r}: cannot convert {value!r}: {e}") from e
            coerced[key] = value
        return coerced


def load(engine: Engine, table: str, fmt: WireFormat, pipes: Sequence[Path], batch_size: int = 1000) -> int:
    """Insert every record arriving on ``pipes`` into ``table``.

    Blank records are skipped. JSONL records may omit columns; a batch is
    flushed whenever the set of keys changes so every INSERT is uniform.

    Returns:
        Number of rows inserted

    Raises:
        sqlalchemy.exc.NoSuchTableError: Table does not exist
        RecordFormatError: A record does not fit the table
        EndpointError: An input pipe failed
    """
    target = reflect_table(engine, table)
    columns = [column.name for column in target.columns]
    coerce = _RowCoercer(target)
    insert = target.insert()

    rows = 0
    batch: list[dict[str, Any]] = []
    batch_keys: frozenset[str] | None = None

    with engine.begin() as conn:

        def flush() -> None:
            nonlocal batch
            if batch:
                conn.execute(insert, batch)
                batch = []

        for record in RecordCollector(pipes, fmt).start():
            if is_blank(record):
                continue
            row = coerce(decode_record(record, columns, fmt))
            keys = frozenset(row)
            if keys != batch_keys:
                flush()
                batch_keys = keys
            batch.append(row)
            rows += 1
            if len(batch) >= batch_size:
                flush()
        flush()

    logger.info("rows_loaded", rows=rows, table=table, pipes=len(pipes), format=fmt.value)
    return rows
