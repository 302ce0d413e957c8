# src/fanpipe/plugins/streams.py
"""Threaded endpoints for many named pipes at once.

Opening a FIFO blocks until the other side opens it too, and the peers on
the other end open their pipes in no particular order. Each pipe therefore
gets its own thread, so every endpoint is opened concurrently and a slow
peer on one pipe never delays the others.

Every endpoint is opened and closed exactly once, including outputs that
end up receiving no records: a reader on a pipe that is never opened would
wait forever.
"""

from __future__ import annotations

import queue
import threading
from collections.abc import Iterator, Sequence
from pathlib import Path

from fanpipe.contracts.enums import WireFormat
from fanpipe.contracts.errors import FanpipeError
from fanpipe.core.logging import get_logger
from fanpipe.plugins.formats import iter_records

logger = get_logger(__name__)

_DONE = object()
_WAKEUP_SECONDS = 0.1


class EndpointError(FanpipeError):
    """Reading or writing one of the pipe endpoints failed."""

    def __init__(self, path: Path, cause: BaseException) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Pipe endpoint {path} failed: {cause}")


class RecordRouter:
    """Distributes records over several output pipes on demand.

    All writer threads pull from one bounded queue, so whichever output is
    drained fastest receives the most records. Records are never split.

    A reader that closes its pipe early only retires that output: the record
    its writer was holding goes back on the queue for the remaining outputs.
    The router fails once every output has closed while records are pending.

    Example:
        router = RecordRouter([Path("a"), Path("b")])
        router.start()
        for record in records:
            router.put(record)
        router.close()
    """

    def __init__(self, outputs: Sequence[Path], *, queue_size: int = 64) -> None:
        if not outputs:
            raise ValueError("RecordRouter needs at least one output")
        self._outputs = list(outputs)
        self._queue: queue.Queue[object] = queue.Queue(maxsize=queue_size)
        self._threads: list[threading.Thread] = []
        self._failed = threading.Event()
        self._error: EndpointError | None = None
        self._lock = threading.Lock()
        # Signalled whenever the last pending record is written or the router fails
        self._drained = threading.Condition(self._lock)
        self._pending = 0
        self._live = len(self._outputs)
        self.records_written = 0

    def start(self) -> RecordRouter:
        for path in self._outputs:
            thread = threading.Thread(target=self._write_loop, args=(path,), name=f"writer-{path.name}", daemon=True)
            thread.start()
            self._threads.append(thread)
        return self

    def _write_loop(self, path: Path) -> None:
        record: object = None
        try:
            # Unbuffered, so a record counts as written only once the pipe took it
            with path.open("wb", buffering=0) as out:
                while True:
                    record = self._queue.get()
                    if record is _DONE:
                        return
                    view = memoryview(record)  # type: ignore[arg-type]
                    while view:
                        view = view[out.write(view) :]
                    record = None
                    with self._drained:
                        self.records_written += 1
                        self._pending -= 1
                        if self._pending == 0:
                            self._drained.notify_all()
        except BrokenPipeError as e:
            self._retire(path, record, e)
        except OSError as e:
            logger.error("pipe_write_failed", pipe=str(path), error=str(e))
            self._fail(EndpointError(path, e))

    def _retire(self, path: Path, record: object, cause: BrokenPipeError) -> None:
        """Stop writing to ``path`` after its reader went away."""
        with self._lock:
            self._live -= 1
            live = self._live
        if live == 0:
            logger.error("all_outputs_closed", pipe=str(path), error=str(cause))
            self._fail(EndpointError(path, cause))
            return
        logger.warning("pipe_reader_closed", pipe=str(path), remaining_outputs=live)
        # A failed router stops its producer, so the record is dropped
        while record is not None and not self._failed.is_set():
            try:
                self._queue.put(record, timeout=_WAKEUP_SECONDS)
                return
            except queue.Full:
                continue

    def _fail(self, error: EndpointError) -> None:
        with self._drained:
            if self._error is None:
                self._error = error
            self._failed.set()
            self._drained.notify_all()

    def _raise_if_failed(self) -> None:
        if self._failed.is_set():
            assert self._error is not None
            raise self._error

    def _enqueue(self, item: object) -> None:
        while True:
            self._raise_if_failed()
            try:
                self._queue.put(item, timeout=_WAKEUP_SECONDS)
                return
            except queue.Full:
                continue

    def put(self, record: bytes) -> None:
        """Queue one record, blocking while every writer is busy.

        Raises:
            EndpointError: A writer thread failed, or every output closed
        """
        with self._lock:
            self._pending += 1
        self._enqueue(record)

    def close(self) -> None:
        """Wait until every record is written, then close the outputs.

        Raises:
            EndpointError: A writer thread failed, or every output closed
                while records were pending
        """
        with self._drained:
            while self._pending and not self._failed.is_set():
                self._drained.wait(_WAKEUP_SECONDS)
            live = self._live
        self._raise_if_failed()
        # Nothing is in flight any more, so no writer can retire from here on
        for _ in range(live):
            self._enqueue(_DONE)
        for thread in self._threads:
            while thread.is_alive():
                thread.join(_WAKEUP_SECONDS)
                self._raise_if_failed()
        self._raise_if_failed()


class RecordCollector:
    """Merges records from several input pipes into one iterator.

    Records from the same input keep their relative order. Iteration ends
    once every input has reached EOF.
    """

    def __init__(self, inputs: Sequence[Path], fmt: WireFormat, *, queue_size: int = 64) -> None:
        if not inputs:
            raise ValueError("RecordCollector needs at least one input")
        self._inputs = list(inputs)
        self._fmt = fmt
        self._queue: queue.Queue[object] = queue.Queue(maxsize=queue_size)
        self._threads: list[threading.Thread] = []

    def start(self) -> RecordCollector:
        for path in self._inputs:
            thread = threading.Thread(target=self._read_loop, args=(path,), name=f"reader-{path.name}", daemon=True)
            thread.start()
            self._threads.append(thread)
        return self

    def _read_loop(self, path: Path) -> None:
        try:
            with path.open("rb") as stream:
                for record in iter_records(stream, self._fmt):
                    self._queue.put(record)
        except OSError as e:
            logger.error("pipe_read_failed", pipe=str(path), error=str(e))
            self._queue.put(EndpointError(path, e))
            return
        self._queue.put(_DONE)

    def __iter__(self) -> Iterator[bytes]:
        """Yield records until every input is exhausted.

        Raises:
            EndpointError: A reader thread failed
        """
        if not self._threads:
            self.start()
        remaining = len(self._threads)
        while remaining:
            item = self._queue.get()
            if item is _DONE:
                remaining -= 1
                continue
            if isinstance(item, EndpointError):
                raise item
            yield item  # type: ignore[misc]
