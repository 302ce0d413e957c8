"""Default collaborators: unloader, loader and multiplexer.

These back the ``fanpipe unload``, ``fanpipe load`` and ``fanpipe mux``
subcommands. Any program honouring the same argv contract can replace them
through ``collaborators.*`` settings.
"""

from fanpipe.plugins.formats import decode_record, encode_row, iter_records
from fanpipe.plugins.loader import load
from fanpipe.plugins.multiplexer import redistribute
from fanpipe.plugins.streams import EndpointError, RecordCollector, RecordRouter
from fanpipe.plugins.unloader import unload

__all__ = [
    "EndpointError",
    "RecordCollector",
    "RecordRouter",
    "decode_record",
    "encode_row",
    "iter_records",
    "load",
    "redistribute",
    "unload",
]
