"""
Progress reporting for blob operations.

The build system owns progress UI; this module only defines the reporter
protocol it plugs into and a logging-backed default. Events are per blob and
never aggregated across workers.
"""
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Iterator, Optional, Protocol

__all__ = ["ProgressReporter", "LoggingProgress", "one_off"]

logger = logging.getLogger(__name__)


class ProgressReporter(Protocol):
    """Receives start/finish notifications for named one-off operations."""

    def started(self, name: str) -> None:
        ...

    def finished(self, name: str, error: Optional[BaseException] = None) -> None:
        ...


class LoggingProgress:
    """Reporter that writes progress events to the module logger."""

    def __init__(self) -> None:
        self._started: dict[str, float] = {}

    def started(self, name: str) -> None:
        self._started[name] = time.monotonic()
        logger.info(f"{name}...")

    def finished(self, name: str, error: Optional[BaseException] = None) -> None:
        began = self._started.pop(name, None)
        elapsed = f" ({time.monotonic() - began:.1f}s)" if began is not None else ""
        if error is None:
            logger.info(f"{name} done{elapsed}")
        else:
            logger.info(f"{name} failed{elapsed}: {error}")


@contextmanager
def one_off(reporter: Optional[ProgressReporter], name: str) -> Iterator[None]:
    """
    Bracket an operation with a single progress event.

    The event is marked failed and the exception re-raised when the body
    raises.
    """
    if reporter is None:
        yield
        return
    reporter.started(name)
    try:
        yield
    except BaseException as e:
        reporter.finished(name, e)
        raise
    reporter.finished(name)
