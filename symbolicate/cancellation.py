#!/usr/bin/env python3
"""
cancellation.py

Ctrl + C handling for a symbolication run.

The signal handler itself does nothing but flip a CancellationToken. The
token is checked where the run actually waits (the atos poll loop in
atos_runner.py) and between log lines, which then stop the atos process
and raise SymbolicationCancelled. No output is written after that.
"""

from __future__ import annotations

import logging
import signal
import threading
from typing import Dict, Optional, Sequence


LOG = logging.getLogger("cancellation")


class SymbolicationCancelled(Exception):
    """Raised when the user interrupted the run."""


class CancellationToken:
    """Thread-safe one-way flag: once cancelled, stays cancelled."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SymbolicationCancelled()


class CancellationController:
    """
    Context manager that routes SIGINT into a CancellationToken.

    Previous handlers are restored on exit. Python only allows installing
    signal handlers from the main thread; anywhere else the controller
    leaves the handlers untouched and the token can still be cancelled
    programmatically.
    """

    def __init__(
        self,
        token: Optional[CancellationToken] = None,
        signals: Sequence[int] = (signal.SIGINT,),
    ) -> None:
        self.token = token if token is not None else CancellationToken()
        self._signals = tuple(signals)
        self._previous: Dict[int, object] = {}

    def _handle(self, signum, frame) -> None:
        LOG.debug("Received signal %d, cancelling", signum)
        self.token.cancel()

    def __enter__(self) -> CancellationToken:
        if threading.current_thread() is not threading.main_thread():
            LOG.debug("Not on the main thread; interrupt handler not installed")
            return self.token

        for signum in self._signals:
            self._previous[signum] = signal.signal(signum, self._handle)
        return self.token

    def __exit__(self, exc_type, exc, tb) -> None:
        for signum, handler in self._previous.items():
            signal.signal(signum, handler)
        self._previous.clear()


__all__ = [
    "CancellationController",
    "CancellationToken",
    "SymbolicationCancelled",
]
