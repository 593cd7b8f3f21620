"""
Data models for cache manifests and layer descriptors.

These Pydantic models provide type safety and validation for the manifest
document shared with the build system's cache graph, and for the OCI-style
descriptors that bridge manifest layers to fetchable content.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

if TYPE_CHECKING:
    from .storage.base import Provider

__all__ = [
    "Descriptor",
    "DescriptorProviderPair",
    "LayerAnnotations",
    "CacheLayer",
    "CacheConfig",
    "is_digest",
    "parse_rfc3339",
    "format_rfc3339",
]

DIGEST_RE = re.compile(r"^[a-z0-9]+(?:[+._-][a-z0-9]+)*:[a-zA-Z0-9=_-]+$")
_SHA256_HEX_RE = re.compile(r"^[a-f0-9]{64}$")

_RFC3339_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[Tt ](\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|z|[+-]\d{2}:\d{2})$"
)


def is_digest(value: str) -> bool:
    """Check ``algorithm:encoded`` digest syntax (sha256 encodings must be 64 hex chars)."""
    if not isinstance(value, str) or not DIGEST_RE.match(value):
        return False
    algorithm, encoded = value.split(":", 1)
    if algorithm == "sha256":
        return bool(_SHA256_HEX_RE.match(encoded))
    return True


def parse_rfc3339(value: str) -> datetime:
    """
    Parse an RFC 3339 timestamp into an aware UTC datetime.

    Fractional seconds beyond microsecond precision (as emitted by Go) are
    truncated.

    Raises:
        ValueError: If the value is not a valid RFC 3339 timestamp
    """
    match = _RFC3339_RE.match(value.strip())
    if not match:
        raise ValueError(f"invalid RFC 3339 timestamp: {value!r}")
    date_part, time_part, fraction, offset = match.groups()
    if offset in ("Z", "z"):
        offset = "+00:00"
    text = f"{date_part}T{time_part}"
    if fraction:
        text += "." + fraction[:6].ljust(6, "0")
    return datetime.fromisoformat(text + offset).astimezone(timezone.utc)


def format_rfc3339(value: datetime) -> str:
    """Format a datetime as RFC 3339 in UTC with a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class Descriptor(BaseModel):
    """Content descriptor: address, size and media type of one blob."""
    model_config = ConfigDict(populate_by_name=True)

    media_type: str = Field(default="", alias="mediaType", description="Blob media type")
    digest: str = Field(..., description="Content digest (sha256:...)")
    size: int = Field(..., ge=0, description="Blob size in bytes")
    annotations: Optional[Dict[str, str]] = Field(default=None, description="Provenance annotations")

    @field_validator("digest")
    @classmethod
    def validate_digest(cls, v):
        if not is_digest(v):
            raise ValueError(f"invalid digest: {v!r}")
        return v


class LayerAnnotations(BaseModel):
    """Provenance recorded for a layer once its blob is present remotely."""
    model_config = ConfigDict(populate_by_name=True)

    media_type: str = Field(default="", alias="mediaType")
    diff_id: Optional[str] = Field(default=None, alias="diffID", description="Uncompressed content digest")
    size: int = Field(default=0, ge=0)
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    @field_validator("diff_id")
    @classmethod
    def validate_diff_id(cls, v):
        if v is None or v == "":
            return None
        if not is_digest(v):
            raise ValueError(f"invalid diffID: {v!r}")
        return v

    @field_validator("created_at", mode="before")
    @classmethod
    def validate_created_at(cls, v):
        if v is None or v == "":
            return None
        if isinstance(v, str):
            v = parse_rfc3339(v)
        if isinstance(v, datetime):
            if v.tzinfo is None:
                v = v.replace(tzinfo=timezone.utc)
            # Go zero time means "unset"
            if v.year == 1 and v.month == 1 and v.day == 1 and v.hour == 0 and v.minute == 0 and v.second == 0:
                return None
            return v.astimezone(timezone.utc)
        return v

    @field_serializer("created_at")
    def serialize_created_at(self, v: Optional[datetime]):
        return format_rfc3339(v) if v is not None else None


class CacheLayer(BaseModel):
    """One layer of the cache manifest: a blob and its provenance."""
    model_config = ConfigDict(populate_by_name=True)

    blob: str = Field(..., description="Blob digest")
    # Writers omit a zero parent index, so an absent field means 0
    parent: int = Field(default=0, description="Index of the parent layer, -1 for none")
    annotations: Optional[LayerAnnotations] = None

    @field_validator("blob")
    @classmethod
    def validate_blob(cls, v):
        if not is_digest(v):
            raise ValueError(f"invalid blob digest: {v!r}")
        return v


class CacheConfig(BaseModel):
    """
    Cache manifest document.

    ``layers`` is interpreted by this package; ``records`` (and any unknown
    top-level fields) belong to the build system's cache graph and are passed
    through untouched.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    layers: List[CacheLayer] = Field(default_factory=list)
    records: List[Dict[str, Any]] = Field(default_factory=list)


@dataclass(frozen=True)
class DescriptorProviderPair:
    """A descriptor together with a provider able to read its bytes lazily."""
    descriptor: Descriptor
    provider: "Provider"
