"""
Cache exporter.

Finalizes an export pass: marshals the build system's cache graph into a
manifest plus blob descriptors, materializes every blob in the store, and
only then writes the manifest under each configured name.
"""
from __future__ import annotations

import io
import logging
import threading
from typing import Dict, Optional, Protocol, Tuple

from .manifest import encode_manifest
from .models import CacheConfig, DescriptorProviderPair
from .progress import ProgressReporter
from .settings import Settings
from .storage.base import ObjectStore
from .storage.errors import StoreError
from .uploader import materialize_all

__all__ = ["CacheGraph", "CacheExporter"]

logger = logging.getLogger(__name__)


class CacheGraph(Protocol):
    """
    The build system's cache-key graph, as seen by the exporter.

    ``marshal`` flattens the graph into a manifest whose layers reference
    blobs by digest, together with a descriptor/provider pair for every
    referenced blob.
    """

    def marshal(self) -> Tuple[CacheConfig, Dict[str, DescriptorProviderPair]]:
        ...


class CacheExporter:
    """Exports a cache graph to the object store."""

    name = "exporting cache to Amazon S3"

    def __init__(self, store: ObjectStore, settings: Settings, graph: CacheGraph, *,
                 progress: Optional[ProgressReporter] = None) -> None:
        self._store = store
        self._settings = settings
        self._graph = graph
        self._progress = progress

    def finalize(self, cancel: Optional[threading.Event] = None) -> CacheConfig:
        """
        Upload or refresh every blob, then write the manifest under every name.

        No manifest is written when any blob fails.

        Args:
            cancel: Optional cancellation event (e.g. set by a deadline)

        Returns:
            The manifest as written

        Raises:
            CacheError: First blob failure, or a manifest write failure
        """
        config, descriptors = self._graph.marshal()

        materialize_all(
            self._store,
            config,
            descriptors,
            touch_refresh=self._settings.touch_refresh,
            parallelism=self._settings.upload_parallelism,
            progress=self._progress,
            cancel=cancel,
        )

        payload = encode_manifest(config)
        for name in self._settings.names:
            key = self._store.manifest_key(name)
            try:
                self._store.put(key, io.BytesIO(payload))
            except StoreError as e:
                raise type(e)(f"error writing manifest: {name}: {e}", operation=e.operation, key=key) from e
            logger.info(f"Wrote cache manifest {name} ({len(config.layers)} layers) to {key}")

        return config
