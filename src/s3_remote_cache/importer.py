"""
Cache importer.

Loads the manifest stored under the first configured name and rebuilds the
descriptor/provider pair of every layer. The provider of each pair is the
object store itself, so blob bytes are only fetched when the build system
actually reads them.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, TypeVar

from .manifest import decode_manifest, to_descriptor_provider_pair
from .models import CacheConfig, DescriptorProviderPair
from .settings import Settings
from .storage.base import ObjectStore, Provider
from .storage.errors import ObjectNotFound

__all__ = ["CacheChain", "CacheImporter", "load_manifest"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheChain:
    """
    Imported cache: the manifest plus a resolvable pair for every layer blob.

    Handed to the build system's key/result storage constructor.
    """
    config: CacheConfig = field(default_factory=CacheConfig)
    layers: Dict[str, DescriptorProviderPair] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> CacheChain:
        """Chain of a cold cache (no manifest stored yet)."""
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.config.layers and not self.config.records


def load_manifest(store: ObjectStore, name: str) -> Optional[CacheConfig]:
    """
    Read and strictly decode the manifest stored under ``name``.

    Returns:
        The manifest, or None when no manifest exists under the name

    Raises:
        CorruptManifestError: If the stored document cannot be decoded
        StoreError: For other store errors
    """
    key = store.manifest_key(name)
    try:
        body = store.get(key)
    except ObjectNotFound:
        logger.debug(f"No cache manifest at {key}")
        return None
    try:
        payload = body.read()
    finally:
        body.close()
    return decode_manifest(payload)


class CacheImporter:
    """Imports a cache chain from the object store."""

    def __init__(self, store: ObjectStore, settings: Settings, provider: Optional[Provider] = None) -> None:
        """
        Args:
            store: Object store holding the manifest
            settings: Settings; only the first configured name is read
            provider: Provider bound to every imported layer (defaults to
                ``store`` when it implements ``reader_at``)
        """
        self._store = store
        self._settings = settings
        self._provider = provider if provider is not None else store

    def load(self) -> CacheChain:
        """
        Load the cache chain of the first configured name.

        A missing manifest is a cold cache and yields an empty chain.

        Raises:
            CorruptManifestError: If the manifest cannot be decoded
            CorruptCacheError: If a layer lacks required annotations
            StoreError: For other store errors
        """
        name = self._settings.names[0]
        config = load_manifest(self._store, name)
        if config is None:
            logger.info(f"No cache manifest named {name}, starting from an empty cache")
            return CacheChain.empty()

        layers: Dict[str, DescriptorProviderPair] = {}
        for layer in config.layers:
            layers[layer.blob] = to_descriptor_provider_pair(layer, self._provider)

        logger.info(f"Loaded cache manifest {name} with {len(config.layers)} layers")
        return CacheChain(config=config, layers=layers)

    def resolve(self, storage_factory: Callable[[CacheChain], T]) -> T:
        """Load the chain and hand it to the build system's key storage constructor."""
        return storage_factory(self.load())
