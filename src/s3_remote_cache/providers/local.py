"""
Local file content sources.

``LocalFileProvider`` serves blobs from local files keyed by digest, and
``FileCacheGraph`` turns a list of files into a linear chain of cache layers.
Together they let the CLI export arbitrary files through the same exporter
path the build system uses.
"""
from __future__ import annotations

import hashlib
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Tuple

from ..models import CacheConfig, CacheLayer, Descriptor, DescriptorProviderPair, format_rfc3339
from ..storage.errors import ObjectNotFound
from ..storage.media_types import CREATED_AT_ANNOTATION, OCI_LAYER, UNCOMPRESSED_ANNOTATION
from ..storage.reader import CHUNK_SIZE

__all__ = ["FileReaderAt", "LocalFileProvider", "FileCacheGraph", "sha256_file"]


def sha256_file(path: Path) -> str:
    """Digest (``sha256:<hex>``) of a file's content, streamed in chunks."""
    hash_obj = hashlib.sha256()
    with open(path, "rb") as f:
        while True:
            chunk = f.read(CHUNK_SIZE)
            if not chunk:
                break
            hash_obj.update(chunk)
    return f"sha256:{hash_obj.hexdigest()}"


class FileReaderAt:
    """Random-access reader over a local file."""

    def __init__(self, path: Path):
        self._file = open(path, "rb")
        self._size = os.fstat(self._file.fileno()).st_size

    @property
    def size(self) -> int:
        return self._size

    def read_at(self, offset: int, n: int) -> bytes:
        if offset >= self._size or n <= 0:
            return b""
        self._file.seek(offset)
        return self._file.read(n)

    def close(self) -> None:
        self._file.close()


class LocalFileProvider:
    """Provider serving blobs from local files registered by digest."""

    def __init__(self, paths: Dict[str, Path] | None = None):
        self._paths: Dict[str, Path] = dict(paths or {})

    def add(self, digest: str, path: Path) -> None:
        self._paths[digest] = Path(path)

    def reader_at(self, descriptor: Descriptor) -> FileReaderAt:
        path = self._paths.get(descriptor.digest)
        if path is None or not path.is_file():
            raise ObjectNotFound(f"no local file for {descriptor.digest}", operation="read", key=descriptor.digest)
        return FileReaderAt(path)


class FileCacheGraph:
    """
    Cache graph made of local files, one uncompressed layer per file.

    Layers form a linear chain in the given order (each file's parent is the
    previous file). Files are treated as uncompressed, so each layer's
    uncompressed digest equals its blob digest.
    """

    def __init__(self, files: Iterable[Path], media_type: str = OCI_LAYER):
        self._files: List[Path] = [Path(f) for f in files]
        self._media_type = media_type

    def marshal(self) -> Tuple[CacheConfig, Dict[str, DescriptorProviderPair]]:
        provider = LocalFileProvider()
        layers: List[CacheLayer] = []
        descriptors: Dict[str, DescriptorProviderPair] = {}

        for index, path in enumerate(self._files):
            if not path.is_file():
                raise FileNotFoundError(f"Not a file: {path}")
            digest = sha256_file(path)
            stat = path.stat()
            created_at = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)

            provider.add(digest, path)
            descriptor = Descriptor(
                media_type=self._media_type,
                digest=digest,
                size=stat.st_size,
                annotations={
                    UNCOMPRESSED_ANNOTATION: digest,
                    CREATED_AT_ANNOTATION: format_rfc3339(created_at),
                },
            )
            descriptors[digest] = DescriptorProviderPair(descriptor=descriptor, provider=provider)
            layers.append(CacheLayer(blob=digest, parent=index - 1))

        return CacheConfig(layers=layers), descriptors
