"""
Human-readable output formatting.

Centralizes all CLI output formatting so commands stay thin and focused.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import typer
from rich.console import Console
from rich.table import Table

from ..importer import CacheChain
from ..models import CacheConfig, format_rfc3339
from ..storage.base import ObjectState

_console = Console()


def print_settings(settings: Dict[str, Any]) -> None:
    """Print effective settings (credentials already redacted)."""
    table = Table(title="Settings")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="yellow")
    for key, value in settings.items():
        table.add_row(key, "" if value is None else str(value))
    _console.print(table)


def print_cache_config(config: CacheConfig, title: str, verbose: bool = False) -> None:
    """
    Print the layers of a cache manifest as a table.

    Args:
        config: Manifest to display
        title: Table title (usually the manifest name)
        verbose: Also show uncompressed digests and creation times
    """
    if not config.layers:
        _console.print(f"[dim]{title}: no layers[/]")
        return

    table = Table(title=title)
    table.add_column("#", justify="right")
    table.add_column("Blob", style="cyan")
    table.add_column("Parent", justify="right")
    table.add_column("Media type")
    table.add_column("Size", justify="right", style="yellow")
    if verbose:
        table.add_column("Diff ID")
        table.add_column("Created")

    for index, layer in enumerate(config.layers):
        ann = layer.annotations
        row = [
            str(index),
            layer.blob if verbose else _short(layer.blob),
            str(layer.parent),
            ann.media_type if ann else "",
            _format_bytes(ann.size) if ann else "",
        ]
        if verbose:
            row.append((ann.diff_id or "") if ann else "")
            row.append(format_rfc3339(ann.created_at) if ann and ann.created_at else "")
        table.add_row(*row)

    _console.print(table)
    if config.records:
        _console.print(f"[bold]Records:[/] {len(config.records)}")


def print_chain(chain: CacheChain, name: str, verbose: bool = False) -> None:
    """Print an imported cache chain."""
    if chain.is_empty:
        _console.print(f"[dim]No cache manifest named {name}[/]")
        return
    print_cache_config(chain.config, title=f"Manifest {name}", verbose=verbose)


def print_push_summary(config: CacheConfig, names) -> None:
    """Print push operation summary."""
    total = sum(layer.annotations.size for layer in config.layers if layer.annotations)
    _console.print(f"[green]✓[/] Exported {len(config.layers)} layers ({_format_bytes(total)})")
    _console.print(f"[bold]Manifests:[/] {', '.join(names)}")


def print_fetch_summary(digest: str, out_path: Path, written: int) -> None:
    """Print fetch operation summary."""
    typer.echo(f"Fetched {digest} to {out_path} ({_format_bytes(written)})")


def print_touch_summary(digest: str, state: ObjectState) -> None:
    """Print touch operation summary."""
    previous = format_rfc3339(state.last_modified) if state.last_modified else "unknown"
    typer.echo(f"Touched {digest} (previously modified {previous})")


def _short(digest: str) -> str:
    return digest[:19] + "…" if len(digest) > 20 else digest


def _format_bytes(size: int) -> str:
    """Format byte size in human-readable format."""
    value = float(size)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if value < 1024.0:
            return f"{value:.1f} {unit}"
        value /= 1024.0
    return f"{value:.1f} PB"
