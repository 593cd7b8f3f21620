"""
Operations Facade - Application service layer.

Provides a clean interface between CLI and the exporter/importer APIs,
centralizing command orchestration and configuration while keeping CLI
commands thin and testable.
"""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from ..exporter import CacheExporter
from ..importer import CacheChain, CacheImporter
from ..models import CacheConfig, Descriptor
from ..progress import LoggingProgress
from ..providers.local import FileCacheGraph
from ..settings import Settings
from ..storage.base import ObjectState
from ..storage.errors import ObjectNotFound
from ..storage.reader import CHUNK_SIZE
from ..storage.s3_gateway import S3Gateway
from ..touch import touch as _touch


@dataclass(frozen=True)
class OpsConfig:
    """
    Configuration for Operations facade.

    Centralizes output policy so it is not scattered across commands.
    """
    verbose: bool = False         # Show detailed output


class Operations:
    """
    Application service facade for CLI operations.

    One method per CLI verb. The facade is stateless except for injected
    config, settings and store; exceptions bubble up for central mapping in
    ``run_and_exit``.
    """

    def __init__(self, config: OpsConfig, settings: Settings, store: Optional[S3Gateway] = None):
        """
        Initialize Operations facade.

        Args:
            config: Output configuration
            settings: Validated settings
            store: Object store gateway (created from settings if None)
        """
        self.cfg = config
        self.settings = settings
        self.store = store if store is not None else S3Gateway(settings)

    def _with_names(self, names: Optional[Sequence[str]]) -> Settings:
        if not names:
            return self.settings
        return dataclasses.replace(self.settings, names=tuple(names))

    def inspect(self, name: Optional[str] = None) -> CacheChain:
        """
        Load a cache manifest.

        Args:
            name: Manifest name (defaults to the first configured name)

        Returns:
            Imported cache chain (empty if no manifest exists)
        """
        settings = self._with_names([name] if name else None)
        return CacheImporter(self.store, settings).load()

    def push(self, files: List[Path], *, names: Optional[Sequence[str]] = None) -> CacheConfig:
        """
        Export local files as cache layers and write the manifest.

        Args:
            files: Files to export, one layer each, in chain order
            names: Manifest names (defaults to the configured names)

        Returns:
            The manifest as written
        """
        settings = self._with_names(names)
        exporter = CacheExporter(self.store, settings, FileCacheGraph(files), progress=LoggingProgress())
        return exporter.finalize()

    def fetch(self, digest: str, size: int, out_path: Path) -> int:
        """
        Stream a blob to a local file through the random-access reader.

        Returns:
            Number of bytes written
        """
        descriptor = Descriptor(digest=digest, size=size)
        out_path = Path(out_path)
        out_path.parent.mkdir(parents=True, exist_ok=True)

        written = 0
        with self.store.reader_at(descriptor) as reader, open(out_path, "wb") as out:
            while written < reader.size:
                chunk = reader.read_at(written, CHUNK_SIZE)
                if not chunk:
                    break
                out.write(chunk)
                written += len(chunk)
        return written

    def touch(self, digest: str) -> ObjectState:
        """
        Refresh a blob's last-modified time regardless of its age.

        Returns:
            Object state observed before the touch

        Raises:
            ObjectNotFound: If the blob does not exist
        """
        key = self.store.blob_key(digest)
        state = self.store.head(key)
        if not state.exists:
            raise ObjectNotFound(f"Blob not found: {digest}", operation="head", key=key)
        _touch(self.store, key, state.size or 0)
        return state
