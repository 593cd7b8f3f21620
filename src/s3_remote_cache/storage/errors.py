"""
Remote cache error classes.

Provides a clear taxonomy of errors that can occur during cache export and
import. SDK exceptions are mapped onto this hierarchy at the gateway boundary
so callers never have to inspect botocore error codes or message strings.
"""
from __future__ import annotations


class CacheError(Exception):
    """Base class for all remote cache errors."""
    pass


class ConfigError(CacheError, ValueError):
    """
    Invalid or missing configuration.

    Raised before any network call when:
    - bucket or region is missing
    - upload_parallelism is not a positive integer
    """
    pass


class StoreError(CacheError):
    """
    Object store operation failed.

    Raised for transport and service errors (credentials, throttling,
    network failures). Not retried at this layer.
    """

    def __init__(self, message: str, *, operation: str | None = None, key: str | None = None):
        super().__init__(message)
        self.operation = operation
        self.key = key


class ObjectNotFound(StoreError):
    """
    Object does not exist in the store.

    Raised when:
    - HEAD/GET returns 404 / NoSuchKey / NotFound

    Absence is a legitimate state: the freshness path turns it into an
    upload and the manifest loader into an empty cache.
    """
    pass


class CorruptCacheError(CacheError):
    """
    Cache data failed validation.

    Raised when:
    - a layer or descriptor lacks the uncompressed-digest annotation
    - a digest or creation timestamp cannot be parsed
    """
    pass


class CorruptManifestError(CorruptCacheError):
    """
    Manifest document could not be decoded.

    Raised when:
    - the payload is not a JSON object
    - non-whitespace data follows the top-level object
    - the document does not match the manifest schema
    """
    pass


class OperationCancelled(CacheError):
    """Work was abandoned because a sibling task failed or the caller cancelled."""
    pass


__all__ = [
    "CacheError",
    "ConfigError",
    "StoreError",
    "ObjectNotFound",
    "CorruptCacheError",
    "CorruptManifestError",
    "OperationCancelled",
]
