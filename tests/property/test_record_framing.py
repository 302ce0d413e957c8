# tests/property/test_record_framing.py
"""Property tests for record framing.

Records written by the unloader must come out of ``iter_records`` one for
one, whatever the field contents, or the multiplexer would split or merge
rows on their way to the workers.
"""

import io

from hypothesis import given
from hypothesis import strategies as st

from fanpipe.contracts.enums import WireFormat
from fanpipe.plugins.formats import decode_record, encode_row, iter_records
from tests.property.settings import QUICK_SETTINGS, STANDARD_SETTINGS

# NUL and bare carriage returns are not expected inside database text.
field_text = st.text(alphabet=st.characters(blacklist_characters="\x00\r"), min_size=1, max_size=20)
fields = st.one_of(st.none(), field_text)
rows = st.integers(min_value=1, max_value=4).flatmap(
    lambda width: st.lists(st.lists(fields, min_size=width, max_size=width), max_size=20)
)


@given(rows=rows, fmt=st.sampled_from([WireFormat.CSV, WireFormat.TSV, WireFormat.JSONL]))
@STANDARD_SETTINGS
def test_framing_recovers_every_row(rows: list[list[str | None]], fmt: WireFormat) -> None:
    width = len(rows[0]) if rows else 1
    columns = [f"c{i}" for i in range(width)]
    stream = io.BytesIO(b"".join(encode_row(row, columns, fmt) for row in rows))

    framed = list(iter_records(stream, fmt))

    assert len(framed) == len(rows)
    assert [decode_record(record, columns, fmt) for record in framed] == [
        dict(zip(columns, row, strict=True)) for row in rows
    ]


@given(rows=rows)
@QUICK_SETTINGS
def test_csv_framing_is_lossless(rows: list[list[str | None]]) -> None:
    """Framing only splits the stream; it never drops or adds bytes."""
    width = len(rows[0]) if rows else 1
    columns = [f"c{i}" for i in range(width)]
    data = b"".join(encode_row(row, columns, WireFormat.CSV) for row in rows)

    whole = list(iter_records(io.BytesIO(data), WireFormat.CSV))

    assert b"".join(whole) == data
    assert all(record.endswith(b"\n") for record in whole)
