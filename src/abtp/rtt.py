from __future__ import annotations

import csv
import logging
import queue
import threading
from typing import Optional, Tuple

from .constants import RTT_HEADER

logger = logging.getLogger(__name__)


class RttRecorder:
    """Append ``(size_bytes, rtt_seconds)`` samples to a CSV file off-thread.

    Instances are passed directly as the per-frame hook of a transfer. The
    transfer loop is the only producer; ``close()`` signals the writer thread
    to flush and exit. A write failure in the worker is re-raised by
    ``close()``.
    """

    def __init__(self, path: str):
        self.path = path
        self._fp = open(path, "w", newline="")
        self._error: Exception | None = None
        self._queue: "queue.Queue[Optional[Tuple[int, float]]]" = queue.Queue()
        self._thread = threading.Thread(target=self._drain, name=f"rtt-writer[{path}]", daemon=True)
        self._thread.start()

    def __call__(self, size: int, elapsed: float) -> None:
        self._queue.put((size, elapsed))

    def _drain(self) -> None:
        writer = csv.writer(self._fp)
        rows = 0
        self._write(writer, RTT_HEADER)
        for size, elapsed in iter(self._queue.get, None):
            if self._write(writer, (size, f"{elapsed:f}")):
                rows += 1
        if self._error is None:
            try:
                self._fp.flush()
            except Exception as exc:
                self._fail(exc)
        logger.debug("wrote %d rtt samples to %s", rows, self.path)

    def _write(self, writer, row) -> bool:
        # After a failure the rest of the queue is drained without writing.
        if self._error is not None:
            return False
        try:
            writer.writerow(row)
        except Exception as exc:
            self._fail(exc)
            return False
        return True

    def _fail(self, exc: Exception) -> None:
        self._error = exc
        logger.error("rtt writer for %s failed: %s", self.path, exc)

    def close(self) -> None:
        if self._fp.closed:
            return
        self._queue.put(None)
        self._thread.join()
        self._fp.close()
        if self._error is not None:
            raise self._error

    def __enter__(self) -> "RttRecorder":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
