"""
S3 Remote Cache CLI

Implements 5 CLI verbs with Operations facade integration:
- config: Show resolved settings
- inspect: Show the layers of a cache manifest
- push: Export local files as cache layers and write the manifest
- fetch: Stream a cached blob to a local file
- touch: Refresh a cached blob's last-modified time
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer

from .cli_context import CLIContext
from .operations import Operations, OpsConfig, run_and_exit
from .operations.printers import (
    print_chain, print_fetch_summary, print_push_summary, print_settings, print_touch_summary
)

app = typer.Typer(name="s3-remote-cache", help="S3 remote build cache CLI")

_ATTR_HELP = "Cache attribute as key=value (repeatable, overrides --attrs-file)"
_ATTRS_FILE_HELP = "YAML file with cache attributes"


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _operations(attr: List[str], attrs_file: Optional[Path], verbose: bool) -> Operations:
    context = CLIContext.from_options(attr, attrs_file)
    return Operations(config=OpsConfig(verbose=verbose), settings=context.settings, store=context.store)


@app.command()
def config(
    attr: List[str] = typer.Option([], "--attr", "-a", help=_ATTR_HELP),
    attrs_file: Optional[Path] = typer.Option(None, "--attrs-file", help=_ATTRS_FILE_HELP),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    """Show resolved settings (credentials redacted)."""

    def _config() -> None:
        _setup_logging(verbose)
        context = CLIContext.from_options(attr, attrs_file)
        print_settings(context.settings.redacted())

    run_and_exit(_config)


@app.command()
def inspect(
    name: Optional[str] = typer.Option(None, "--name", help="Manifest name (default: first configured name)"),
    attr: List[str] = typer.Option([], "--attr", "-a", help=_ATTR_HELP),
    attrs_file: Optional[Path] = typer.Option(None, "--attrs-file", help=_ATTRS_FILE_HELP),
    verbose: bool = typer.Option(False, "--verbose", help="Show detailed output"),
) -> None:
    """Show the layers of a cache manifest."""

    def _inspect() -> None:
        _setup_logging(verbose)
        ops = _operations(attr, attrs_file, verbose)
        chain = ops.inspect(name)
        print_chain(chain, name or ops.settings.names[0], verbose=ops.cfg.verbose)

    run_and_exit(_inspect)


@app.command()
def push(
    files: List[Path] = typer.Argument(..., help="Files to export, one layer each, in chain order"),
    name: Optional[List[str]] = typer.Option(None, "--name", help="Manifest name (repeatable, default: configured names)"),
    attr: List[str] = typer.Option([], "--attr", "-a", help=_ATTR_HELP),
    attrs_file: Optional[Path] = typer.Option(None, "--attrs-file", help=_ATTRS_FILE_HELP),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    """Export local files as cache layers and write the manifest."""

    def _push() -> None:
        _setup_logging(verbose)
        ops = _operations(attr, attrs_file, verbose)
        written = ops.push(files, names=name)
        print_push_summary(written, name or ops.settings.names)

    run_and_exit(_push)


@app.command()
def fetch(
    digest: str = typer.Argument(..., help="Blob digest (sha256:<hex>)"),
    size: int = typer.Argument(..., help="Blob size in bytes"),
    out: Path = typer.Argument(..., help="Output file"),
    attr: List[str] = typer.Option([], "--attr", "-a", help=_ATTR_HELP),
    attrs_file: Optional[Path] = typer.Option(None, "--attrs-file", help=_ATTRS_FILE_HELP),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    """Stream a cached blob to a local file."""

    def _fetch() -> None:
        _setup_logging(verbose)
        ops = _operations(attr, attrs_file, verbose)
        written = ops.fetch(digest, size, out)
        print_fetch_summary(digest, out, written)

    run_and_exit(_fetch)


@app.command()
def touch(
    digest: str = typer.Argument(..., help="Blob digest (sha256:<hex>)"),
    attr: List[str] = typer.Option([], "--attr", "-a", help=_ATTR_HELP),
    attrs_file: Optional[Path] = typer.Option(None, "--attrs-file", help=_ATTRS_FILE_HELP),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    """Refresh a cached blob's last-modified time regardless of its age."""

    def _touch() -> None:
        _setup_logging(verbose)
        ops = _operations(attr, attrs_file, verbose)
        state = ops.touch(digest)
        print_touch_summary(digest, state)

    run_and_exit(_touch)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
