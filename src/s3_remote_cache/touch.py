"""
Touch/copy planner.

Refreshes an object's last-modified timestamp without re-uploading its bytes,
so that store-side expiry rules keyed on age never evict a blob that is still
in use. Objects below the single-copy ceiling are copied onto themselves with
replaced metadata; larger objects are rewritten through a multipart copy of
consecutive byte ranges.

Note: the single-copy path assumes that a metadata-replacing copy updates the
object's last-modified time. This holds for AWS S3 and the common compatible
stores; verify it before pointing the cache at a different store.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from .storage.base import CompletedPart, ObjectStore
from .storage.errors import OperationCancelled
from .storage.media_types import MAX_COPY_OBJECT_SIZE, UPDATED_AT_METADATA

__all__ = ["CopyPart", "build_copy_source_range", "plan_copy_parts", "touch"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CopyPart:
    """One part of a multipart copy: inclusive byte range ``[start, end]``."""
    part_number: int
    start: int
    end: int

    @property
    def copy_range(self) -> str:
        return f"bytes={self.start}-{self.end}"


def _range_end(start: int, object_size: int, ceiling: int) -> int:
    return min(start + ceiling - 1, object_size - 1)


def build_copy_source_range(start: int, object_size: int, ceiling: int = MAX_COPY_OBJECT_SIZE) -> str:
    """
    HTTP range header for the part starting at ``start``.

    The range is inclusive and clipped to the last byte of the object.

    Examples:
        >>> build_copy_source_range(0, 10, ceiling=4)
        'bytes=0-3'
        >>> build_copy_source_range(9, 10, ceiling=4)
        'bytes=9-9'
    """
    return f"bytes={start}-{_range_end(start, object_size, ceiling)}"


def plan_copy_parts(object_size: int, ceiling: int = MAX_COPY_OBJECT_SIZE) -> List[CopyPart]:
    """
    Partition ``[0, object_size)`` into consecutive parts of at most ``ceiling`` bytes.

    Part numbers start at 1 and increase with the byte offset.
    """
    if ceiling <= 0:
        raise ValueError(f"ceiling must be positive, got {ceiling}")
    parts = []
    part_number = 1
    start = 0
    while start < object_size:
        parts.append(CopyPart(part_number, start, _range_end(start, object_size, ceiling)))
        part_number += 1
        start += ceiling
    return parts


def touch(store: ObjectStore, key: str, size: int, *,
          ceiling: int = MAX_COPY_OBJECT_SIZE,
          cancel: Optional[threading.Event] = None) -> None:
    """
    Refresh the last-modified time of ``key`` without changing its content.

    Args:
        store: Object store
        key: Object key
        size: Object size in bytes, as reported by head()
        ceiling: Single-copy size limit of the store
        cancel: Optional event checked between parts of a multipart copy

    Raises:
        StoreError: If any copy call fails (a started multipart upload is
            aborted first)
        OperationCancelled: If ``cancel`` is set during a multipart copy
    """
    # CopyObject does not support objects of ceiling size or larger
    if size < ceiling:
        logger.debug(f"Touching {key} with a single copy ({size} bytes)")
        store.copy_in_place(key, {UPDATED_AT_METADATA: datetime.now(timezone.utc).isoformat()})
        return

    parts = plan_copy_parts(size, ceiling)
    logger.debug(f"Touching {key} with a multipart copy of {len(parts)} parts ({size} bytes)")

    upload_id = store.create_multipart_upload(key)
    try:
        completed = []
        for part in parts:
            if cancel is not None and cancel.is_set():
                raise OperationCancelled(f"touch of {key} cancelled")
            etag = store.upload_part_copy(key, upload_id, part.part_number, part.copy_range)
            completed.append(CompletedPart(part_number=part.part_number, etag=etag))
        store.complete_multipart_upload(key, upload_id, completed)
    except BaseException:
        _abort_quietly(store, key, upload_id)
        raise


def _abort_quietly(store: ObjectStore, key: str, upload_id: str) -> None:
    try:
        store.abort_multipart_upload(key, upload_id)
    except Exception as e:
        logger.warning(f"Failed to abort multipart upload {upload_id} for {key}: {e}")
