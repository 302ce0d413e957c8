# src/fanpipe/plugins/formats.py
"""Record framing and encoding for the wire formats.

Framing (``iter_records``) works on raw bytes so the multiplexer can move
records without decoding them. Every record it yields ends with a newline:
a final unterminated line gets one, otherwise two records from different
producers could be glued together on a shared output.

CSV records may span several lines when a quoted field contains a newline.
A record is complete once it holds an even number of quote characters,
since RFC 4180 escapes a quote by doubling it.
"""

from __future__ import annotations

import csv
import io
import json
import re
from collections.abc import Iterator, Sequence
from typing import Any, BinaryIO

from fanpipe.contracts.enums import WireFormat
from fanpipe.contracts.errors import RecordFormatError

_QUOTE = ord('"')
_TSV_NULL = "\\N"
_TSV_ESCAPES = {"\\": "\\\\", "\t": "\\t", "\n": "\\n", "\r": "\\r"}
_TSV_UNESCAPES = {"b": "\b", "f": "\f", "n": "\n", "r": "\r", "t": "\t", "v": "\v", "\\": "\\"}
_TSV_ESCAPE_PATTERN = re.compile(r"\\(.)", re.DOTALL)


def iter_records(stream: BinaryIO, fmt: WireFormat) -> Iterator[bytes]:
    """Yield complete, newline-terminated records from a binary stream."""
    if fmt is WireFormat.CSV:
        yield from _iter_csv_records(stream)
        return
    for line in stream:
        yield line if line.endswith(b"\n") else line + b"\n"


def _iter_csv_records(stream: BinaryIO) -> Iterator[bytes]:
    pending: list[bytes] = []
    quotes = 0
    for line in stream:
        pending.append(line)
        quotes += line.count(_QUOTE)
        if quotes % 2 == 0:
            record = b"".join(pending)
            pending = []
            quotes = 0
            yield record if record.endswith(b"\n") else record + b"\n"
    if pending:
        # Unbalanced quote at EOF; pass it through and let the decoder complain.
        record = b"".join(pending)
        yield record if record.endswith(b"\n") else record + b"\n"


def is_blank(record: bytes) -> bool:
    """Whether a record carries no fields at all."""
    return record.strip(b"\r\n") == b""


def _to_text(value: Any) -> str:
    if isinstance(value, bytes | bytearray | memoryview):
        return "\\x" + bytes(value).hex()
    return str(value)


def encode_row(values: Sequence[Any], columns: Sequence[str], fmt: WireFormat) -> bytes:
    """Encode one database row as a single record.

    NULL is an empty field in CSV, ``\\N`` in TSV and ``null`` in JSONL.
    """
    if fmt is WireFormat.JSONL:
        return (json.dumps(dict(zip(columns, values, strict=True)), default=_to_text) + "\n").encode("utf-8")

    if fmt is WireFormat.TSV:
        fields = [_TSV_NULL if v is None else _escape_tsv(_to_text(v)) for v in values]
        return ("\t".join(fields) + "\n").encode("utf-8")

    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="\n").writerow(["" if v is None else _to_text(v) for v in values])
    return buffer.getvalue().encode("utf-8")


def _escape_tsv(text: str) -> str:
    return "".join(_TSV_ESCAPES.get(ch, ch) for ch in text)


def _unescape_tsv(text: str) -> str:
    return _TSV_ESCAPE_PATTERN.sub(lambda m: _TSV_UNESCAPES.get(m.group(1), m.group(1)), text)


def decode_record(record: bytes, columns: Sequence[str], fmt: WireFormat) -> dict[str, Any]:
    """Decode one record into a column -> value mapping.

    CSV and TSV fields map to ``columns`` by position and must match its
    length. JSONL objects may omit columns but must not name unknown ones.

    Raises:
        RecordFormatError: Malformed record, wrong field count or unknown keys
    """
    try:
        text = record.decode("utf-8")
    except UnicodeDecodeError as e:
        raise RecordFormatError(f"Record is not valid UTF-8: {e}") from e

    if fmt is WireFormat.JSONL:
        try:
            obj = json.loads(text)
        except json.JSONDecodeError as e:
            raise RecordFormatError(f"Invalid JSON record: {e}") from e
        if not isinstance(obj, dict):
            raise RecordFormatError(f"JSON record must be an object, got {type(obj).__name__}")
        unknown = sorted(set(obj) - set(columns))
        if unknown:
            raise RecordFormatError(f"Unknown column(s) in record: {unknown}")
        return obj

    if fmt is WireFormat.TSV:
        raw_fields = text.rstrip("\r\n").split("\t")
        fields: list[Any] = [None if f == _TSV_NULL else _unescape_tsv(f) for f in raw_fields]
    else:
        try:
            parsed = next(csv.reader(io.StringIO(text, newline="")))
        except (csv.Error, StopIteration) as e:
            raise RecordFormatError(f"Invalid CSV record: {e}") from e
        fields = [None if f == "" else f for f in parsed]

    if len(fields) != len(columns):
        raise RecordFormatError(f"Expected {len(columns)} field(s), got {len(fields)}")
    return dict(zip(columns, fields, strict=True))
