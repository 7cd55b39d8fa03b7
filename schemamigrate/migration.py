"""A single migration as it is scheduled and run against a database."""

from __future__ import annotations

import threading
import time
from typing import BinaryIO

DEFAULT_BUFFER_SIZE = 100000


class _BodyPipe:
    """Bytes handed from :meth:`Migration.buffer` to whoever runs the migration.

    Writes never block; reads block until enough data has arrived or the
    writer has closed the pipe. Once the reading side is closed, pending
    data is dropped and further writes fail.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._data = bytearray()
        self._closed = False
        self._reader_closed = False
        self._error: BaseException | None = None

    def write(self, chunk: bytes) -> int:
        with self._cond:
            if self._reader_closed:
                raise BrokenPipeError("read side of migration body closed")
            if self._closed:
                raise ValueError("write to closed migration body")
            self._data += chunk
            self._cond.notify_all()
        return len(chunk)

    def finish(self, error: BaseException | None = None) -> None:
        with self._cond:
            self._closed = True
            self._error = error
            self._cond.notify_all()

    def read(self, size: int = -1) -> bytes:
        with self._cond:
            if self._reader_closed:
                raise ValueError("read from closed migration body")
            while not self._closed and (size < 0 or len(self._data) < size):
                self._cond.wait()
            if not self._data and self._error is not None:
                raise self._error
            count = len(self._data) if size < 0 else min(size, len(self._data))
            chunk = bytes(self._data[:count])
            del self._data[:count]
            return chunk

    def close(self) -> None:
        """Close the reading side, discarding anything not yet read."""
        with self._cond:
            self._reader_closed = True
            self._data.clear()
            self._cond.notify_all()


class Migration:
    """A migration read from a source, ready to be applied.

    A migration without a body is a nil migration: applying it only sets
    the version. ``target_version`` is -1 for the nil version. Times are
    :func:`time.monotonic` readings.
    """

    def __init__(
        self,
        body: BinaryIO | None,
        identifier: str,
        version: int,
        target_version: int,
    ) -> None:
        now = time.monotonic()
        self.identifier = identifier
        self.version = version
        self.target_version = target_version
        self.body = body
        self.buffered_body: _BodyPipe | None = None
        self.buffer_size = 0
        self.scheduled = now
        self.started_buffering: float | None = None
        self.finished_buffering: float | None = None
        self.finished_reading: float | None = None
        self.bytes_read = 0

        if body is None:
            if not identifier:
                self.identifier = "<empty>"
            self.started_buffering = now
            self.finished_buffering = now
            self.finished_reading = now
        else:
            self.buffer_size = DEFAULT_BUFFER_SIZE
            self.buffered_body = _BodyPipe()

    def __str__(self) -> str:
        return f"{self.identifier} [{self.version}=>{self.target_version}]"

    def log_string(self) -> str:
        """Describe the migration for humans."""
        direction = "d" if self.target_version < self.version else "u"
        return f"{self.version}/{direction} {self.identifier}"

    def buffer(self) -> None:
        """Copy the body into :attr:`buffered_body`, then close the body.

        Reading from :attr:`buffered_body` may happen concurrently in
        another thread; it blocks until data is available.
        """
        if self.body is None or self.buffered_body is None:
            return
        pipe = self.buffered_body
        self.started_buffering = time.monotonic()
        try:
            chunk_size = max(self.buffer_size, 1)
            first = self.body.read(chunk_size) or b""
            self.finished_buffering = time.monotonic()
            total = pipe.write(first)
            while True:
                chunk = self.body.read(chunk_size)
                if not chunk:
                    break
                total += pipe.write(chunk)
        except BaseException as exc:
            pipe.finish(exc)
            raise
        self.finished_reading = time.monotonic()
        self.bytes_read = total
        pipe.finish()
        self.body.close()