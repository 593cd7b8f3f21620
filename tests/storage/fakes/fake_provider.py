"""
Fake content provider for testing.

Serves blob bytes from memory, counts reader opens and tracks closes so tests
can assert that the provider is only read on the upload path and that every
reader is released.
"""
from __future__ import annotations

import hashlib
import threading
from typing import Dict, Optional

from s3_remote_cache.models import Descriptor, DescriptorProviderPair
from s3_remote_cache.storage.errors import ObjectNotFound
from s3_remote_cache.storage.media_types import (
    CREATED_AT_ANNOTATION, OCI_LAYER_GZIP, UNCOMPRESSED_ANNOTATION
)

__all__ = ["FakeProvider", "BytesReaderAt", "digest_of"]


def digest_of(data: bytes) -> str:
    return f"sha256:{hashlib.sha256(data).hexdigest()}"


class BytesReaderAt:
    """ReaderAt over an in-memory buffer."""

    def __init__(self, data: bytes, on_close=None):
        self._data = data
        self._on_close = on_close
        self.closed = False

    @property
    def size(self) -> int:
        return len(self._data)

    def read_at(self, offset: int, n: int) -> bytes:
        return self._data[offset:offset + n]

    def close(self) -> None:
        self.closed = True
        if self._on_close is not None:
            self._on_close()


class FakeProvider:
    """
    In-memory provider keyed by digest.

    This is a test double; not for production use.
    """

    def __init__(self) -> None:
        self.blobs: Dict[str, bytes] = {}
        self.opens: Dict[str, int] = {}
        self.open_readers = 0
        self.fail_with: Optional[BaseException] = None
        self._lock = threading.Lock()

    def add(self, data: bytes, *, media_type: str = OCI_LAYER_GZIP,
            diff_id: Optional[str] = None, created_at: Optional[str] = "2024-01-02T03:04:05Z",
            annotations: Optional[Dict[str, str]] = None) -> DescriptorProviderPair:
        """Register a blob and return its descriptor/provider pair."""
        digest = digest_of(data)
        self.blobs[digest] = data
        if annotations is None:
            annotations = {UNCOMPRESSED_ANNOTATION: diff_id or digest_of(b"uncompressed:" + data)}
            if created_at is not None:
                annotations[CREATED_AT_ANNOTATION] = created_at
        descriptor = Descriptor(media_type=media_type, digest=digest, size=len(data), annotations=annotations)
        return DescriptorProviderPair(descriptor=descriptor, provider=self)

    def reader_at(self, descriptor: Descriptor) -> BytesReaderAt:
        if self.fail_with is not None:
            raise self.fail_with
        data = self.blobs.get(descriptor.digest)
        if data is None:
            raise ObjectNotFound(f"no blob {descriptor.digest}")
        with self._lock:
            self.opens[descriptor.digest] = self.opens.get(descriptor.digest, 0) + 1
            self.open_readers += 1
        return BytesReaderAt(data, on_close=self._released)

    def _released(self) -> None:
        with self._lock:
            self.open_readers -= 1
