"""
Settings and configuration for the S3 remote cache.

Centralizes configuration values and provides validation with fail-fast behavior.
Settings are built once from an attribute map (as handed over by the build
system or the CLI) with environment fallback for bucket and region.
"""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Mapping, Optional, Tuple

from .storage.errors import ConfigError

__all__ = ["Settings", "settings_from_attrs", "parse_duration", "DEFAULT_TOUCH_REFRESH"]

logger = logging.getLogger(__name__)

ATTR_BUCKET = "bucket"
ATTR_REGION = "region"
ATTR_PREFIX = "prefix"
ATTR_MANIFESTS_PREFIX = "manifests_prefix"
ATTR_BLOBS_PREFIX = "blobs_prefix"
ATTR_NAME = "name"
ATTR_TOUCH_REFRESH = "touch_refresh"
ATTR_ENDPOINT_URL = "endpoint_url"
ATTR_ACCESS_KEY_ID = "access_key_id"
ATTR_SECRET_ACCESS_KEY = "secret_access_key"
ATTR_SESSION_TOKEN = "session_token"
ATTR_USE_PATH_STYLE = "use_path_style"
ATTR_UPLOAD_PARALLELISM = "upload_parallelism"

DEFAULT_MANIFESTS_PREFIX = "manifests/"
DEFAULT_BLOBS_PREFIX = "blobs/"
DEFAULT_NAME = "buildkit"
DEFAULT_TOUCH_REFRESH = timedelta(hours=24)
DEFAULT_UPLOAD_PARALLELISM = 4


@dataclass(frozen=True)
class Settings:
    """
    Configuration settings for the S3 cache exporter and importer.

    Store Settings:
        bucket: Destination bucket (required)
        region: Bucket region (required)
        endpoint_url: Endpoint override for S3-compatible stores (MinIO, R2, ...)
        use_path_style: Use path-style addressing (only applied with endpoint_url)
        access_key_id / secret_access_key / session_token: Static credentials;
            used only when both key id and secret are set, otherwise the
            default boto3 credential chain applies

    Layout Settings:
        prefix: Namespace prefix for every key
        manifests_prefix: Sub-prefix for manifest objects
        blobs_prefix: Sub-prefix for content-addressed blobs
        names: Logical manifest names; all are written on export, only the
            first is read on import

    Engine Settings:
        touch_refresh: Age after which an existing blob is touched
        upload_parallelism: Number of concurrent blob workers (>= 1)
    """
    bucket: str
    region: str
    prefix: str = ""
    manifests_prefix: str = DEFAULT_MANIFESTS_PREFIX
    blobs_prefix: str = DEFAULT_BLOBS_PREFIX
    names: Tuple[str, ...] = (DEFAULT_NAME,)
    touch_refresh: timedelta = DEFAULT_TOUCH_REFRESH
    endpoint_url: Optional[str] = None
    access_key_id: Optional[str] = field(default=None, repr=False)
    secret_access_key: Optional[str] = field(default=None, repr=False)
    session_token: Optional[str] = field(default=None, repr=False)
    use_path_style: bool = False
    upload_parallelism: int = DEFAULT_UPLOAD_PARALLELISM

    def __post_init__(self):
        """Validate settings on construction."""
        if not self.bucket:
            raise ConfigError("bucket ($AWS_BUCKET) not set for s3 cache")
        if not self.region:
            raise ConfigError("region ($AWS_REGION) not set for s3 cache")

        if not self.names:
            raise ConfigError("at least one manifest name is required")

        if self.upload_parallelism < 1:
            raise ConfigError("upload_parallelism must be a positive integer")

        if self.touch_refresh < timedelta(0):
            raise ConfigError(f"touch_refresh must be non-negative, got {self.touch_refresh}")

    @property
    def has_static_credentials(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key)

    def redacted(self) -> dict:
        """Settings as a plain dict with credentials masked (for display)."""
        return {
            "bucket": self.bucket,
            "region": self.region,
            "prefix": self.prefix,
            "manifests_prefix": self.manifests_prefix,
            "blobs_prefix": self.blobs_prefix,
            "names": list(self.names),
            "touch_refresh": str(self.touch_refresh),
            "endpoint_url": self.endpoint_url,
            "use_path_style": self.use_path_style,
            "upload_parallelism": self.upload_parallelism,
            "static_credentials": "set" if self.has_static_credentials else "not set",
        }


_DURATION_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: str) -> timedelta:
    """
    Parse a duration string such as ``"24h"``, ``"1h30m"`` or ``"500ms"``.

    Accepts an optional sign and a sequence of decimal numbers, each with a
    unit suffix (ns, us, ms, s, m, h). A bare ``"0"`` is accepted.

    Raises:
        ValueError: If the string is not a valid duration
    """
    text = value.strip()
    if not text:
        raise ValueError("empty duration")

    sign = 1
    if text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
        if not text:
            raise ValueError(f"invalid duration: {value!r}")

    if text == "0":
        return timedelta(0)

    seconds = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_RE.match(text, pos)
        if not match:
            raise ValueError(f"invalid duration: {value!r}")
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    return timedelta(seconds=sign * seconds)


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "t", "true"):
        return True
    if lowered in ("0", "f", "false"):
        return False
    raise ValueError(f"invalid boolean: {value!r}")


def settings_from_attrs(attrs: Mapping[str, str], env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build settings from a cache attribute map.

    Attributes:
        bucket, region (fallback: AWS_BUCKET, AWS_REGION environment variables)
        prefix, manifests_prefix, blobs_prefix
        name: semicolon-separated manifest names
        touch_refresh: duration string; invalid values keep the default.
            Negative durations count as invalid, so they keep the default
            rather than meaning "touch on every export"
        endpoint_url, access_key_id, secret_access_key, session_token
        use_path_style: boolean; invalid values keep the default
        upload_parallelism: positive integer (strict)

    Args:
        attrs: Attribute map
        env: Environment mapping (defaults to os.environ)

    Returns:
        Validated Settings

    Raises:
        ConfigError: If bucket/region are missing or upload_parallelism is invalid
    """
    if env is None:
        env = os.environ

    bucket = attrs.get(ATTR_BUCKET)
    if bucket is None:
        bucket = env.get("AWS_BUCKET")
        if bucket is None:
            raise ConfigError("bucket ($AWS_BUCKET) not set for s3 cache")

    region = attrs.get(ATTR_REGION)
    if region is None:
        region = env.get("AWS_REGION")
        if region is None:
            raise ConfigError("region ($AWS_REGION) not set for s3 cache")

    names: Tuple[str, ...] = (DEFAULT_NAME,)
    if ATTR_NAME in attrs:
        split_names = tuple(attrs[ATTR_NAME].split(";"))
        if split_names:
            names = split_names

    touch_refresh = DEFAULT_TOUCH_REFRESH
    if ATTR_TOUCH_REFRESH in attrs:
        try:
            touch_refresh = parse_duration(attrs[ATTR_TOUCH_REFRESH])
            # Rejected rather than read as "always touch"
            if touch_refresh < timedelta(0):
                raise ValueError("negative duration")
        except ValueError:
            touch_refresh = DEFAULT_TOUCH_REFRESH
            logger.warning(f"Ignoring invalid touch_refresh {attrs[ATTR_TOUCH_REFRESH]!r}, using {DEFAULT_TOUCH_REFRESH}")

    use_path_style = False
    if ATTR_USE_PATH_STYLE in attrs:
        try:
            use_path_style = _parse_bool(attrs[ATTR_USE_PATH_STYLE])
        except ValueError:
            logger.warning(f"Ignoring invalid use_path_style {attrs[ATTR_USE_PATH_STYLE]!r}")

    upload_parallelism = DEFAULT_UPLOAD_PARALLELISM
    if ATTR_UPLOAD_PARALLELISM in attrs:
        try:
            upload_parallelism = int(attrs[ATTR_UPLOAD_PARALLELISM])
        except ValueError:
            raise ConfigError("upload_parallelism must be a positive integer") from None
        if upload_parallelism <= 0:
            raise ConfigError("upload_parallelism must be a positive integer")

    return Settings(
        bucket=bucket,
        region=region,
        prefix=attrs.get(ATTR_PREFIX, ""),
        manifests_prefix=attrs.get(ATTR_MANIFESTS_PREFIX, DEFAULT_MANIFESTS_PREFIX),
        blobs_prefix=attrs.get(ATTR_BLOBS_PREFIX, DEFAULT_BLOBS_PREFIX),
        names=names,
        touch_refresh=touch_refresh,
        endpoint_url=attrs.get(ATTR_ENDPOINT_URL) or None,
        access_key_id=attrs.get(ATTR_ACCESS_KEY_ID) or None,
        secret_access_key=attrs.get(ATTR_SECRET_ACCESS_KEY) or None,
        session_token=attrs.get(ATTR_SESSION_TOKEN) or None,
        use_path_style=use_path_style,
        upload_parallelism=upload_parallelism,
    )
