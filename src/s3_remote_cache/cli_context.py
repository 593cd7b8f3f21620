"""
CLI Context for managing application dependencies.

Provides a clean way to manage CLI-level dependencies like settings and the
S3 gateway, avoiding global state and enabling proper dependency injection.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import yaml

from .settings import Settings, settings_from_attrs
from .storage.errors import ConfigError
from .storage.s3_gateway import S3Gateway


def parse_attr_pairs(pairs: List[str]) -> Dict[str, str]:
    """
    Parse repeated ``key=value`` options into an attribute map.

    Raises:
        ConfigError: If a pair has no ``=`` or an empty key
    """
    attrs: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ConfigError(f"Invalid attribute {pair!r}, expected key=value")
        attrs[key] = value
    return attrs


def load_attrs_file(path: Path) -> Dict[str, str]:
    """
    Load an attribute map from a YAML file.

    The document must be a mapping; scalar values are converted to strings
    so they go through the same parsing as command-line attributes.

    Raises:
        ConfigError: If the file cannot be read or is not a mapping
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read attributes file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Attributes file {path} must contain a mapping")

    attrs: Dict[str, str] = {}
    for key, value in data.items():
        if isinstance(value, bool):
            value = "true" if value else "false"
        elif isinstance(value, list):
            value = ";".join(str(v) for v in value)
        attrs[str(key)] = "" if value is None else str(value)
    return attrs


@dataclass
class CLIContext:
    """
    Shared context for CLI commands.

    Manages application-level dependencies (settings, gateway) that are
    initialized once and shared across a CLI command execution.
    """
    settings: Settings
    _store: Optional[S3Gateway] = None

    @classmethod
    def from_attrs(cls, attrs: Mapping[str, str], env: Optional[Mapping[str, str]] = None) -> CLIContext:
        """
        Create CLI context from an attribute map with environment fallback.

        Returns:
            CLIContext with validated settings
        """
        return cls(settings=settings_from_attrs(attrs, env))

    @classmethod
    def from_options(cls, attr_pairs: List[str], attrs_file: Optional[Path] = None) -> CLIContext:
        """
        Create CLI context from ``--attrs-file`` and ``--attr`` options.

        Attributes given on the command line override the file.
        """
        attrs: Dict[str, str] = {}
        if attrs_file is not None:
            attrs.update(load_attrs_file(attrs_file))
        attrs.update(parse_attr_pairs(attr_pairs))
        return cls.from_attrs(attrs)

    @property
    def store(self) -> S3Gateway:
        """
        Get or create the S3 gateway (lazy initialization).

        The gateway is created on first access and reused for subsequent calls.
        """
        if self._store is None:
            self._store = S3Gateway(self.settings)
        return self._store
