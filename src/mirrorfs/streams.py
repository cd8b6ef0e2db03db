#!/usr/bin/env python3
"""Readable stream filled asynchronously by a worker thread."""

import io
import logging
import queue
import threading
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

_EOF = object()


class ReadStream(io.RawIOBase):
    """Binary stream handed to the caller before its content is available.

    A producer thread resolves the path and downloads the content afterwards, pushing
    chunks with ``feed`` and ending with ``finish`` or ``fail``. Failures
    never escape from the call that created the stream; they are delivered
    through the error channel instead:

    - callbacks registered with ``on_error``
    - the ``error`` attribute
    - ``read`` raising the error once buffered data is exhausted

    The caller must read or close the stream; a full buffer blocks the
    producer thread until it does.
    """

    MAX_BUFFERED_CHUNKS = 64

    def __init__(self, name: str = ''):
        super().__init__()
        self.name = name
        self.error: Optional[BaseException] = None
        self._chunks: queue.Queue = queue.Queue(maxsize=self.MAX_BUFFERED_CHUNKS)
        self._buffer = b''
        self._eof = False
        self._done = threading.Event()
        self._lock = threading.Lock()
        self._error_callbacks: List[Callable[[BaseException], None]] = []
        self._end_callbacks: List[Callable[[], None]] = []

    # Producer side

    def _put(self, item) -> bool:
        while not self.closed:
            try:
                self._chunks.put(item, timeout=0.5)
                return True
            except queue.Full:
                continue
        return False

    def feed(self, chunk: bytes) -> bool:
        """Queue a chunk of content.

        Returns:
            False if the consumer closed the stream (stop producing)
        """
        return self._put(chunk)

    def finish(self) -> None:
        """Mark the end of content."""
        self._put(_EOF)
        with self._lock:
            self._done.set()
            callbacks = list(self._end_callbacks)
        for callback in callbacks:
            self._run_callback(callback)

    def fail(self, error: BaseException) -> None:
        """Deliver an error through the stream's error channel."""
        with self._lock:
            self.error = error
            self._done.set()
            callbacks = list(self._error_callbacks)
        logger.debug(f"Stream {self.name} failed: {error}")
        self._put(_EOF)
        for callback in callbacks:
            self._run_callback(callback, error)

    def stop(self) -> None:
        """Mark the producer as stopped after the reader closed the stream.

        Settles ``wait`` without running end or error callbacks.
        """
        self._done.set()

    @staticmethod
    def _run_callback(callback: Callable, *args) -> None:
        try:
            callback(*args)
        except Exception:
            logger.exception("Stream callback raised")

    # Consumer side

    def on_error(self, callback: Callable[[BaseException], None]) -> 'ReadStream':
        """Register an error callback (called at once if already failed)."""
        with self._lock:
            error = self.error
            if error is None:
                self._error_callbacks.append(callback)
        if error is not None:
            self._run_callback(callback, error)
        return self

    def on_end(self, callback: Callable[[], None]) -> 'ReadStream':
        """Register a callback for successful completion of the download."""
        with self._lock:
            finished = self._done.is_set() and self.error is None
            if not finished:
                self._end_callbacks.append(callback)
        if finished:
            self._run_callback(callback)
        return self

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait until the producer finished or failed.

        Returns:
            True if the stream settled within the timeout
        """
        return self._done.wait(timeout)

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed stream")

        while not self._buffer and not self._eof:
            item = self._chunks.get()
            if item is _EOF:
                self._eof = True
            else:
                self._buffer = item

        if not self._buffer:
            if self.error is not None:
                raise self.error
            return 0

        n = min(len(b), len(self._buffer))
        b[:n] = self._buffer[:n]
        self._buffer = self._buffer[n:]
        return n
