#!/usr/bin/env python3
"""
atos_runner.py

Helper module to run atos for one address at a time.

This module provides:

  - SymbolicationRequest: what to ask atos (arch, binary, load/call address).
  - AtosError: atos exited with a non-zero status.
  - AtosRunner: runs atos as a child process and returns the symbol or None.

atos is started once per frame line, strictly one process at a time. While
it runs we poll it on a short interval instead of blocking, so that a
cancelled token (Ctrl + C) is noticed promptly and the child is stopped.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Tuple

from symbolicate.cancellation import CancellationToken, SymbolicationCancelled

LOG = logging.getLogger("atos_runner")

DEFAULT_ATOS = "/usr/bin/atos"

# Seconds between liveness checks of the atos process.
POLL_INTERVAL = 0.1


@dataclass(frozen=True)
class SymbolicationRequest:
    """
    Single atos lookup.

    arch:
        Architecture slice of the binary to use, e.g. "arm64".
    binary:
        DWARF binary resolved from the dSYM arguments.
    load_address:
        Load address of the library, from the log line.
    call_address:
        Address to symbolicate, from the log line.
    """
    arch: str
    binary: Path
    load_address: str
    call_address: str


class SymbolResolver(Protocol):
    """Anything that can turn a SymbolicationRequest into a symbol."""

    def symbolicate(self, request: SymbolicationRequest) -> Optional[str]:
        ...


class AtosError(Exception):
    """atos terminated with a non-zero status not caused by cancellation."""

    def __init__(self, returncode: int, stderr: str = "") -> None:
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"atos exited with status {returncode}")

    @property
    def exit_status(self) -> int:
        """
        Status to exit the whole program with.

        subprocess reports "killed by signal N" as -N; the shell convention
        for that is 128 + N.
        """
        if self.returncode < 0:
            return 128 - self.returncode
        return self.returncode


def build_atos_command(executable: str, request: SymbolicationRequest) -> List[str]:
    return [
        executable,
        "-arch",
        request.arch,
        "-o",
        str(request.binary),
        "-l",
        request.load_address,
        request.call_address,
    ]


class AtosRunner:
    """
    Runs atos for SymbolicationRequests.

    Args:
        executable:
            atos binary to run (default: /usr/bin/atos).
        token:
            Cancellation token checked while waiting for atos.
        poll_interval:
            Seconds between liveness checks.
    """

    def __init__(
        self,
        executable: str = DEFAULT_ATOS,
        token: Optional[CancellationToken] = None,
        poll_interval: float = POLL_INTERVAL,
    ) -> None:
        self.executable = executable
        self.token = token if token is not None else CancellationToken()
        self.poll_interval = poll_interval

    def _wait(self, proc: subprocess.Popen) -> Tuple[str, str]:
        """
        Wait for proc to finish, checking the token every poll_interval.

        communicate() with a timeout keeps draining the pipes, so a chatty
        child can never block on a full pipe while we wait.
        """
        while True:
            if self.token.cancelled:
                LOG.debug("Cancelling atos (pid %d)", proc.pid)
                proc.terminate()
                try:
                    proc.communicate(timeout=1)
                except subprocess.TimeoutExpired:
                    proc.kill()
                    proc.communicate()
                raise SymbolicationCancelled()

            try:
                return proc.communicate(timeout=self.poll_interval)
            except subprocess.TimeoutExpired:
                continue

    def symbolicate(self, request: SymbolicationRequest) -> Optional[str]:
        """
        Ask atos for the symbol at request.call_address.

        Returns:
            The trimmed symbol, or None if atos printed nothing useful.

        Raises:
            SymbolicationCancelled: the token was cancelled while waiting.
            AtosError: atos exited with a non-zero status.
            OSError: atos could not be started.
        """
        self.token.raise_if_cancelled()

        cmd = build_atos_command(self.executable, request)
        LOG.debug("Running: %s", " ".join(cmd))

        proc = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
        stdout, stderr = self._wait(proc)

        # atos also receives the terminal's SIGINT and may have died from it
        # before we noticed the token; that is still a cancellation.
        self.token.raise_if_cancelled()

        if proc.returncode != 0:
            raise AtosError(proc.returncode, (stderr or "").strip())

        symbol = (stdout or "").strip()
        if not symbol:
            LOG.debug(
                "atos returned no symbol for %s in %s",
                request.call_address,
                request.binary,
            )
            return None
        return symbol


__all__ = [
    "AtosError",
    "AtosRunner",
    "DEFAULT_ATOS",
    "POLL_INTERVAL",
    "SymbolResolver",
    "SymbolicationRequest",
    "build_atos_command",
]
