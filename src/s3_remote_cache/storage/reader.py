"""
Random-access readers and stream adapters.

``RemoteReaderAt`` turns the store's "get from offset" capability into a
sized random-access reader; ``SectionReader`` turns any random-access reader
into a seekable, sized file-like stream suitable for streaming uploads.
"""
from __future__ import annotations

import io
import logging
import threading
from typing import BinaryIO, Callable, Optional

from .base import ReaderAt
from .errors import CacheError, OperationCancelled, StoreError

__all__ = ["RemoteReaderAt", "SectionReader", "CHUNK_SIZE"]

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1 MiB


class RemoteReaderAt:
    """
    Random-access reader over a ranged-GET opener.

    Keeps a single open body together with its current position. Sequential
    reads continue on the same body; a read at any other offset closes it and
    reopens the object at the requested offset.
    """

    def __init__(self, open_at: Callable[[int], BinaryIO], size: int):
        self._open_at = open_at
        self._size = size
        self._body: Optional[BinaryIO] = None
        self._position = 0
        self._lock = threading.Lock()

    @property
    def size(self) -> int:
        return self._size

    def read_at(self, offset: int, n: int) -> bytes:
        if offset < 0:
            raise ValueError(f"negative offset: {offset}")
        if offset >= self._size or n <= 0:
            return b""
        n = min(n, self._size - offset)

        with self._lock:
            if self._body is None or self._position != offset:
                self._reopen(offset)

            chunks = []
            remaining = n
            while remaining > 0:
                chunk = self._body.read(remaining)
                if not chunk:
                    break
                chunks.append(chunk)
                remaining -= len(chunk)
                self._position += len(chunk)

            return b"".join(chunks)

    def _reopen(self, offset: int) -> None:
        self._close_body()
        logger.debug(f"Opening remote body at offset {offset}")
        self._body = self._open_at(offset)
        self._position = offset

    def _close_body(self) -> None:
        if self._body is not None:
            try:
                self._body.close()
            finally:
                self._body = None

    def close(self) -> None:
        with self._lock:
            self._close_body()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class SectionReader(io.RawIOBase):
    """
    Seekable, sized stream over ``[offset, offset + length)`` of a ReaderAt.

    Closing the section does not close the underlying reader. When a
    cancellation event is supplied every read checks it first, so a stream
    handed to a long-running upload stops promptly once the event is set.
    Failures of the underlying reader surface as ``StoreError`` unless they
    already belong to the cache error hierarchy.
    """

    def __init__(self, reader: ReaderAt, offset: int, length: int,
                 cancel: Optional[threading.Event] = None):
        super().__init__()
        self._reader = reader
        self._base = offset
        self._length = length
        self._pos = 0
        self._cancel = cancel

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def __len__(self) -> int:
        return self._length

    def tell(self) -> int:
        return self._pos

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if whence == io.SEEK_SET:
            pos = offset
        elif whence == io.SEEK_CUR:
            pos = self._pos + offset
        elif whence == io.SEEK_END:
            pos = self._length + offset
        else:
            raise ValueError(f"invalid whence: {whence}")
        if pos < 0:
            raise ValueError(f"negative seek position: {pos}")
        self._pos = pos
        return self._pos

    def readinto(self, buffer) -> int:
        if self._cancel is not None and self._cancel.is_set():
            raise OperationCancelled("read cancelled")
        remaining = self._length - self._pos
        if remaining <= 0:
            return 0
        want = min(len(buffer), remaining)
        try:
            data = self._reader.read_at(self._base + self._pos, want)
        except CacheError:
            raise
        except Exception as e:
            raise StoreError(f"error reading layer blob from provider: {e}", operation="read") from e
        got = len(data)
        buffer[:got] = data
        self._pos += got
        return got
