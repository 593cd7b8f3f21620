"""
Manifest codec.

Encodes and decodes the cache manifest document and maps between manifest
layer records and descriptor/provider pairs. Decoding is strict: the payload
must be exactly one JSON object, optionally surrounded by whitespace, so a
truncated or concatenated manifest is rejected instead of silently accepted.
"""
from __future__ import annotations

import json
from typing import TYPE_CHECKING, Union

from pydantic import ValidationError

from .models import (
    CacheConfig,
    CacheLayer,
    Descriptor,
    DescriptorProviderPair,
    LayerAnnotations,
    format_rfc3339,
    is_digest,
    parse_rfc3339,
)
from .storage.errors import CorruptCacheError, CorruptManifestError
from .storage.media_types import CREATED_AT_ANNOTATION, UNCOMPRESSED_ANNOTATION

if TYPE_CHECKING:
    from .storage.base import Provider

__all__ = [
    "encode_manifest",
    "decode_manifest",
    "to_descriptor_provider_pair",
    "layer_annotations_from_descriptor",
]

_WHITESPACE = " \t\n\r"


def encode_manifest(config: CacheConfig) -> bytes:
    """
    Serialize a manifest to JSON bytes.

    Unset optional layer fields (``createdAt``, missing annotations) are
    omitted; records and unknown top-level fields are written back as read.
    """
    payload = config.model_dump(by_alias=True)
    payload["layers"] = [layer.model_dump(by_alias=True, exclude_none=True) for layer in config.layers]
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


def decode_manifest(data: Union[bytes, str]) -> CacheConfig:
    """
    Decode a manifest, rejecting anything but a single JSON object.

    Args:
        data: Raw manifest payload

    Returns:
        Decoded manifest

    Raises:
        CorruptManifestError: If the payload is not valid JSON, not an object,
            has non-whitespace data after the object, or violates the schema
    """
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CorruptManifestError(f"manifest is not valid UTF-8: {e}") from e
    else:
        text = data

    start = len(text) - len(text.lstrip(_WHITESPACE))
    try:
        document, end = json.JSONDecoder().raw_decode(text, start)
    except json.JSONDecodeError as e:
        raise CorruptManifestError(f"invalid manifest JSON: {e}") from e

    if text[end:].strip(_WHITESPACE):
        raise CorruptManifestError("unexpected data after JSON object")

    if not isinstance(document, dict):
        raise CorruptManifestError(f"manifest must be a JSON object, got {type(document).__name__}")

    try:
        return CacheConfig.model_validate(document)
    except ValidationError as e:
        raise CorruptManifestError(f"invalid manifest: {e}") from e


def to_descriptor_provider_pair(layer: CacheLayer, provider: "Provider") -> DescriptorProviderPair:
    """
    Rebuild the descriptor of a manifest layer and bind it to a provider.

    Raises:
        CorruptCacheError: If the layer has no annotations or no diffID
    """
    if layer.annotations is None:
        raise CorruptCacheError(f"cache layer {layer.blob} with missing annotations")
    if not layer.annotations.diff_id:
        raise CorruptCacheError(f"cache layer {layer.blob} with missing diffid")

    annotations = {UNCOMPRESSED_ANNOTATION: layer.annotations.diff_id}
    if layer.annotations.created_at is not None:
        annotations[CREATED_AT_ANNOTATION] = format_rfc3339(layer.annotations.created_at)

    descriptor = Descriptor(
        media_type=layer.annotations.media_type,
        digest=layer.blob,
        size=layer.annotations.size,
        annotations=annotations,
    )
    return DescriptorProviderPair(descriptor=descriptor, provider=provider)


def layer_annotations_from_descriptor(descriptor: Descriptor) -> LayerAnnotations:
    """
    Derive manifest layer annotations from a blob descriptor.

    Raises:
        CorruptCacheError: If the uncompressed annotation is missing or not a
            digest, or the creation timestamp cannot be parsed
    """
    if descriptor.annotations is None:
        raise CorruptCacheError(f"invalid descriptor {descriptor.digest} without annotations")

    diff_id = descriptor.annotations.get(UNCOMPRESSED_ANNOTATION)
    if diff_id is None:
        raise CorruptCacheError(f"invalid descriptor {descriptor.digest} without uncompressed annotation")
    if not is_digest(diff_id):
        raise CorruptCacheError(f"failed to parse uncompressed annotation {diff_id!r} of {descriptor.digest}")

    created_at = None
    created_at_text = descriptor.annotations.get(CREATED_AT_ANNOTATION)
    if created_at_text is not None:
        try:
            created_at = parse_rfc3339(created_at_text)
        except ValueError as e:
            raise CorruptCacheError(f"failed to parse {CREATED_AT_ANNOTATION} of {descriptor.digest}: {e}") from e

    return LayerAnnotations(
        diff_id=diff_id,
        size=descriptor.size,
        media_type=descriptor.media_type,
        created_at=created_at,
    )
