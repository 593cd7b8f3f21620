"""
Freshness engine.

Decides, per content key, whether a blob must be uploaded, touched, or left
alone:

- absent           -> stream the blob from its provider and upload it
- present, fresh   -> nothing to do
- present, stale   -> touch it (server-side copy, no provider read)
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from .models import DescriptorProviderPair
from .progress import ProgressReporter, one_off
from .storage.base import ObjectStore
from .storage.errors import CacheError, StoreError
from .storage.reader import SectionReader
from .touch import touch

__all__ = ["FreshnessOutcome", "ensure_fresh", "upload_blob"]

logger = logging.getLogger(__name__)


class FreshnessOutcome(str, Enum):
    """What ensure_fresh did for a key."""
    UPLOADED = "uploaded"
    TOUCHED = "touched"
    FRESH = "fresh"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_fresh(store: ObjectStore, key: str, pair: DescriptorProviderPair, *,
                 touch_refresh: timedelta,
                 progress: Optional[ProgressReporter] = None,
                 cancel: Optional[threading.Event] = None,
                 now: Callable[[], datetime] = _utcnow) -> FreshnessOutcome:
    """
    Make sure the blob described by ``pair`` exists under ``key`` and is not stale.

    Args:
        store: Object store
        key: Content key of the blob
        pair: Descriptor and provider of the blob content
        touch_refresh: Age after which an existing blob is touched
        progress: Optional progress reporter (upload path only)
        cancel: Optional cancellation event observed by the upload stream
        now: Clock, injectable for tests

    Returns:
        The action taken

    Raises:
        StoreError: If the existence check, upload or touch fails
        OperationCancelled: If ``cancel`` is set while uploading or touching
    """
    try:
        state = store.head(key)
    except StoreError as e:
        raise type(e)(f"failed to check file presence in cache: {e}", operation=e.operation, key=key) from e

    if not state.exists:
        upload_blob(store, key, pair, progress=progress, cancel=cancel)
        return FreshnessOutcome.UPLOADED

    age = now() - state.last_modified if state.last_modified is not None else None
    if age is not None and age <= touch_refresh:
        logger.debug(f"{key} is fresh (age {age})")
        return FreshnessOutcome.FRESH

    logger.info(f"Touching {key} (age {age})")
    size = state.size if state.size is not None else pair.descriptor.size
    try:
        touch(store, key, size, cancel=cancel)
    except StoreError as e:
        raise type(e)(f"failed to touch file: {e}", operation=e.operation, key=key) from e
    return FreshnessOutcome.TOUCHED


def upload_blob(store: ObjectStore, key: str, pair: DescriptorProviderPair, *,
                progress: Optional[ProgressReporter] = None,
                cancel: Optional[threading.Event] = None) -> None:
    """
    Stream a blob from its provider to ``key``.

    The full descriptor range is read through a sized, seekable section
    stream; the provider reader is always closed.
    """
    descriptor = pair.descriptor
    with one_off(progress, f"writing layer {descriptor.digest}"):
        try:
            reader = pair.provider.reader_at(descriptor)
        except CacheError:
            raise
        except Exception as e:
            raise StoreError(f"error reading layer blob from provider: {e}", operation="read", key=key) from e

        try:
            stream = SectionReader(reader, 0, reader.size, cancel=cancel)
            try:
                store.put(key, stream)
            except StoreError as e:
                raise type(e)(f"error writing layer blob: {e}", operation=e.operation, key=key) from e
            except CacheError:
                raise
            except Exception as e:
                raise StoreError(f"error writing layer blob: {e}", operation="put", key=key) from e
        finally:
            reader.close()
    logger.info(f"Uploaded {descriptor.digest} ({descriptor.size} bytes) to {key}")
