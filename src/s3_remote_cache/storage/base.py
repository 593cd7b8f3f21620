"""
Storage interfaces for the S3 remote cache.

These protocols define the boundary between the freshness/upload engine and
storage implementations, enabling clean dependency injection and testing with
fakes.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO, List, Mapping, Optional, Protocol, runtime_checkable

from ..models import Descriptor


@dataclass(frozen=True)
class ObjectState:
    """
    Existence and age of a store object, derived on each freshness check.

    Invariants:
    - exists=False implies last_modified and size are None
    - never persisted; recomputed on every export
    """
    exists: bool
    last_modified: Optional[datetime] = None
    size: Optional[int] = None


@dataclass(frozen=True)
class CompletedPart:
    """A copied part of a multipart upload, ready for completion."""
    part_number: int
    etag: str


__all__ = ["ObjectState", "CompletedPart", "ReaderAt", "Provider", "ObjectStore"]


@runtime_checkable
class ReaderAt(Protocol):
    """Sized random-access byte source."""

    @property
    def size(self) -> int:
        """Total size of the content in bytes."""
        ...

    def read_at(self, offset: int, n: int) -> bytes:
        """
        Read up to ``n`` bytes starting at ``offset``.

        Returns fewer bytes only at end of content; returns b"" at or past
        the end.
        """
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class Provider(Protocol):
    """Single capability: open a random-access reader for a descriptor."""

    def reader_at(self, descriptor: Descriptor) -> ReaderAt:
        """
        Open a reader for the blob described by ``descriptor``.

        Raises:
            ObjectNotFound: If the content is not available
            StoreError: For other I/O errors
        """
        ...


@runtime_checkable
class ObjectStore(Protocol):
    """
    Object store capabilities consumed by the freshness and touch engines.

    Implementations map SDK failures onto the ``storage.errors`` hierarchy:
    absence is always ``ObjectNotFound``, everything else ``StoreError``.
    """

    def blob_key(self, digest: str) -> str:
        """Content-addressed key for a blob digest."""
        ...

    def manifest_key(self, name: str) -> str:
        """Key of the manifest stored under a logical cache name."""
        ...

    def head(self, key: str) -> ObjectState:
        """
        Existence, last-modified time and size of an object.

        Returns ObjectState(exists=False) when the object is absent.
        """
        ...

    def get(self, key: str, offset: int = 0) -> BinaryIO:
        """
        Open a streaming body starting at ``offset``.

        Raises:
            ObjectNotFound: If the object does not exist
        """
        ...

    def put(self, key: str, body: BinaryIO) -> None:
        """Stream ``body`` to ``key``, replacing any existing object."""
        ...

    def copy_in_place(self, key: str, metadata: Mapping[str, str]) -> None:
        """Copy an object onto itself replacing its metadata."""
        ...

    def create_multipart_upload(self, key: str) -> str:
        """Start a multipart upload and return its upload id."""
        ...

    def upload_part_copy(self, key: str, upload_id: str, part_number: int, copy_range: str) -> str:
        """Copy a byte range of ``key`` into a part; returns the part ETag."""
        ...

    def complete_multipart_upload(self, key: str, upload_id: str, parts: List[CompletedPart]) -> None:
        ...

    def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        ...

