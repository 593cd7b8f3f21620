"""
Error mapping and CLI utilities.

Provides centralized exception-to-exit-code mapping and CLI command wrappers
to ensure consistent error handling across all Typer commands.
"""
from __future__ import annotations

import logging
from typing import Callable, TypeVar

import typer

T = TypeVar('T')

logger = logging.getLogger(__name__)

EXIT_CODES = {
    "ObjectNotFound": 1,
    "ConfigError": 2,
    "ValueError": 2,
    "FileNotFoundError": 2,
    "StoreError": 3,
    "OperationCancelled": 3,
    "CorruptCacheError": 4,
    "CorruptManifestError": 4,
}


def exit_code_for(exc: BaseException) -> int:
    """
    Map exception to standardized exit code.

    Returns:
    - 0: Success
    - 1: Object not found (ObjectNotFound)
    - 2: Invalid configuration or arguments (ConfigError, ValueError)
    - 3: Store error or unknown error
    - 4: Corrupt cache data (CorruptCacheError, CorruptManifestError)

    The most specific class in the exception's MRO wins, so subclasses
    inherit their parent's code.

    Args:
        exc: Exception to map

    Returns:
        Exit code (1-4, with 3 as fallback for unknown exceptions)
    """
    for klass in type(exc).__mro__:
        code = EXIT_CODES.get(klass.__name__)
        if code is not None:
            return code
    return 3


def run_and_exit(func: Callable[[], T]) -> T:
    """
    Unified error wrapper for CLI commands.

    Executes the given function and maps any exceptions to appropriate
    exit codes using typer.Exit. This centralizes error handling so
    CLI commands don't need individual try/except blocks.

    Args:
        func: Function to execute

    Returns:
        Function result if successful

    Raises:
        typer.Exit: With appropriate exit code if function raises exception
    """
    try:
        return func()
    except typer.Exit:
        raise
    except Exception as e:
        logger.debug("Command failed", exc_info=True)
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=exit_code_for(e)) from e
