"""
Parallel upload coordinator.

Materializes every layer of a manifest in the object store with a fixed pool
of worker threads draining one closed queue of layer indices. The first
failing worker cancels its siblings and its error is the one surfaced.
Annotations are collected per layer slot, so the resulting layer order never
depends on which worker finished first, and are written back into the
manifest only once every layer succeeded.
"""
from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from typing import List, Mapping, Optional

from .freshness import ensure_fresh
from .manifest import layer_annotations_from_descriptor
from .models import CacheConfig, DescriptorProviderPair, LayerAnnotations
from .progress import ProgressReporter
from .settings import DEFAULT_TOUCH_REFRESH, DEFAULT_UPLOAD_PARALLELISM
from .storage.base import ObjectStore
from .storage.errors import CacheError, OperationCancelled

__all__ = ["materialize_all"]

logger = logging.getLogger(__name__)

_DONE = None


class _FirstError:
    """Records the first error raised by any worker and cancels the group."""

    def __init__(self, cancel: threading.Event):
        self._cancel = cancel
        self._lock = threading.Lock()
        self.error: Optional[BaseException] = None

    def record(self, error: BaseException) -> None:
        with self._lock:
            if self.error is None:
                self.error = error
        self._cancel.set()


def materialize_all(store: ObjectStore, config: CacheConfig,
                    descriptors: Mapping[str, DescriptorProviderPair], *,
                    touch_refresh: timedelta = DEFAULT_TOUCH_REFRESH,
                    parallelism: int = DEFAULT_UPLOAD_PARALLELISM,
                    progress: Optional[ProgressReporter] = None,
                    cancel: Optional[threading.Event] = None) -> CacheConfig:
    """
    Ensure every layer blob of ``config`` is present and fresh in the store.

    Each layer's annotations are replaced with the provenance derived from
    its descriptor. The replacement happens only after every blob is
    confirmed present; on failure ``config`` is left untouched.

    Args:
        store: Object store
        config: Manifest whose layers are materialized (annotated in place on success)
        descriptors: Blob digest -> descriptor/provider pair
        touch_refresh: Age after which an existing blob is touched
        parallelism: Number of worker threads (>= 1)
        progress: Optional per-blob progress reporter
        cancel: Optional caller-owned cancellation event; setting it stops
            the workers, and a worker failure sets it

    Returns:
        ``config`` with every layer annotated

    Raises:
        ValueError: If parallelism < 1
        CacheError: The first error raised by any worker
        OperationCancelled: If the caller cancelled before all work completed
    """
    if parallelism < 1:
        raise ValueError(f"parallelism must be >= 1, got {parallelism}")

    annotated: List[Optional[LayerAnnotations]] = [None] * len(config.layers)
    group_cancel = threading.Event()
    first_error = _FirstError(group_cancel)

    tasks: "queue.Queue[Optional[int]]" = queue.Queue()
    for index in range(len(config.layers)):
        tasks.put(index)
    for _ in range(parallelism):
        tasks.put(_DONE)

    def cancelled() -> bool:
        return group_cancel.is_set() or (cancel is not None and cancel.is_set())

    def process(index: int) -> None:
        layer = config.layers[index]
        pair = descriptors.get(layer.blob)
        if pair is None:
            raise CacheError(f"missing blob {layer.blob}")
        annotations = layer_annotations_from_descriptor(pair.descriptor)

        key = store.blob_key(pair.descriptor.digest)
        outcome = ensure_fresh(
            store, key, pair,
            touch_refresh=touch_refresh,
            progress=progress,
            cancel=_EitherEvent(group_cancel, cancel),
        )
        logger.debug(f"Layer {index} ({layer.blob}): {outcome.value}")
        annotated[index] = annotations

    def worker() -> None:
        while True:
            index = tasks.get()
            if index is _DONE or cancelled():
                return
            try:
                process(index)
            except BaseException as e:
                first_error.record(e)
                return

    logger.debug(f"Materializing {len(config.layers)} layers with {parallelism} workers")
    with ThreadPoolExecutor(max_workers=parallelism, thread_name_prefix="cache-upload") as pool:
        futures = [pool.submit(worker) for _ in range(parallelism)]
    for future in futures:
        future.result()

    if first_error.error is not None:
        raise first_error.error
    if cancel is not None and cancel.is_set():
        raise OperationCancelled("export cancelled")

    for layer, annotations in zip(config.layers, annotated):
        layer.annotations = annotations
    return config


class _EitherEvent:
    """Read-only view that is set when either of two events is set."""

    def __init__(self, first: threading.Event, second: Optional[threading.Event]):
        self._first = first
        self._second = second

    def is_set(self) -> bool:
        return self._first.is_set() or (self._second is not None and self._second.is_set())
