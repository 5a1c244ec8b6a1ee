#!/usr/bin/env python3
"""
symbolicator.py

High-level symbolication workflow.

Responsibilities:
  - Validate the input log and output destination.
  - Resolve dSYM arguments to DWARF binaries once (dsym_resolver.py).
  - Read the log and split it into lines.
  - For each frame line (parser.py) whose library has a dSYM, ask atos
    (atos_runner.py) for the symbol and rewrite the line (rewriter.py).
  - Write the result atomically.

Lines are processed one by one in their original order; every other line
is copied as-is. A run either writes the complete output or nothing: fatal
errors and Ctrl + C both stop before the write.
"""

from __future__ import annotations

import enum
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from symbolicate.atos_runner import (
    DEFAULT_ATOS,
    AtosRunner,
    SymbolicationRequest,
    SymbolResolver,
)
from symbolicate.cancellation import CancellationToken
from symbolicate.dsym_resolver import DebugArtifact, resolve_debug_artifacts
from symbolicate.parser import collect_library_names, match_line, split_log_text
from symbolicate.rewriter import rewrite_line


LOG = logging.getLogger("symbolicator")


class Stage(enum.Enum):
    VALIDATING = "validating"
    RESOLVING_BUNDLES = "resolving-bundles"
    READING_LOG = "reading-log"
    PROCESSING_LINES = "processing-lines"
    WRITING_OUTPUT = "writing-output"
    TERMINATED = "terminated"


class SymbolicateError(Exception):
    """Fatal validation or I/O error; the run stops without output."""

    def __init__(self, message: str, stage: Optional[Stage] = None) -> None:
        super().__init__(message)
        self.stage = stage


@dataclass
class SymbolicateConfig:
    """
    Settings for a single run, as built by cli.py.

    output defaults to the input log itself (rewrite in place).
    """
    log: Path
    output: Optional[Path] = None
    arch: str = "arm64"
    dsyms: List[Path] = field(default_factory=list)
    atos: str = DEFAULT_ATOS
    verbose: bool = False

    @property
    def output_path(self) -> Path:
        return self.output if self.output is not None else self.log


# ---------------------------------------------------------------------------
# Validation and file I/O
# ---------------------------------------------------------------------------

def validate_paths(log: Path, output: Path) -> None:
    """
    Check the input log and the output folder before doing any work.
    """
    if not log.exists():
        raise SymbolicateError(f"Input file doesn't exist: {log}", Stage.VALIDATING)
    if log.is_dir():
        raise SymbolicateError(f"Input file is a directory: {log}", Stage.VALIDATING)

    output_folder = output.parent
    if not output_folder.exists():
        raise SymbolicateError(f"Output folder doesn't exist: {output_folder}", Stage.VALIDATING)
    if not output_folder.is_dir():
        raise SymbolicateError(f"Output folder isn't a directory: {output_folder}", Stage.VALIDATING)


def read_log_lines(path: Path) -> List[str]:
    """
    Read a UTF-8 log and split it on '\\n'.

    Bytes are decoded directly so that no newline translation happens.
    """
    try:
        text = path.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise SymbolicateError(f"Error while reading input file: {e}", Stage.READING_LOG) from e
    return split_log_text(text)


def write_log_atomic(
    path: Path,
    lines: Sequence[str],
    token: Optional[CancellationToken] = None,
) -> None:
    """
    Write lines joined with '\\n' to path, atomically.

    The data goes to a temporary file next to the destination first and is
    then moved over it, so an existing file is either fully replaced or
    left untouched. Permission bits of an existing destination are kept.
    A token cancelled before the final move leaves the destination alone.
    """
    data = "\n".join(lines).encode("utf-8")
    tmp_name: Optional[str] = None
    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.",
            suffix=".tmp",
            dir=str(path.parent),
        )
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        if path.exists():
            os.chmod(tmp_name, path.stat().st_mode & 0o7777)
        if token is not None:
            token.raise_if_cancelled()
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        raise SymbolicateError(f"Error while writing to the output: {e}", Stage.WRITING_OUTPUT) from e
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)


# ---------------------------------------------------------------------------
# Line processing
# ---------------------------------------------------------------------------

def _artifacts_by_name(artifacts: Sequence[DebugArtifact]) -> Dict[str, DebugArtifact]:
    """Map binary file name -> first artifact carrying that name."""
    by_name: Dict[str, DebugArtifact] = {}
    for artifact in artifacts:
        by_name.setdefault(artifact.name, artifact)
    return by_name


def symbolicate_lines(
    lines: Sequence[str],
    artifacts: Sequence[DebugArtifact],
    arch: str,
    resolver: SymbolResolver,
    token: Optional[CancellationToken] = None,
) -> List[str]:
    """
    Symbolicate all frame lines in lines.

    Args:
        lines:
            Log lines without their '\\n'.
        artifacts:
            Resolved dSYM binaries; a frame line is only looked up if its
            library name equals one of their file names.
        arch:
            Architecture passed to the resolver.
        resolver:
            SymbolResolver, normally an AtosRunner.
        token:
            Checked before every line.

    Returns:
        New list with the same number of lines, in the same order.
    """
    by_name = _artifacts_by_name(artifacts)
    out: List[str] = list(lines)

    if not by_name:
        LOG.debug("No dSYMs available; nothing to symbolicate")
        return out

    resolved = 0
    for i, line in enumerate(lines):
        if token is not None:
            token.raise_if_cancelled()

        frame = match_line(line)
        if frame is None:
            continue

        artifact = by_name.get(frame.library)
        if artifact is None:
            # No dSYM to symbolicate this line
            continue

        request = SymbolicationRequest(
            arch=arch,
            binary=artifact.binary,
            load_address=frame.load_address,
            call_address=frame.call_address,
        )
        symbol = resolver.symbolicate(request)
        if not symbol or not symbol.strip():
            continue

        out[i] = rewrite_line(frame, symbol.strip())
        resolved += 1

    LOG.debug("Symbolicated %d line(s)", resolved)
    return out


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def _enter(stage: Stage) -> None:
    LOG.debug("Stage: %s", stage.value)


def symbolicate_file(
    config: SymbolicateConfig,
    token: Optional[CancellationToken] = None,
    resolver: Optional[SymbolResolver] = None,
) -> Tuple[DebugArtifact, ...]:
    """
    Run the whole pipeline for one log file.

    Args:
        config:
            Run settings.
        token:
            Cancellation token; shared with the default AtosRunner.
        resolver:
            Optional replacement for AtosRunner.

    Returns:
        The resolved dSYM binaries that were used.

    Raises:
        SymbolicateError: validation or I/O failure.
        AtosError: atos failed.
        SymbolicationCancelled: the token was cancelled.
    """
    if token is None:
        token = CancellationToken()
    if resolver is None:
        resolver = AtosRunner(executable=config.atos, token=token)

    output = config.output_path

    _enter(Stage.VALIDATING)
    validate_paths(config.log, output)

    _enter(Stage.RESOLVING_BUNDLES)
    artifacts = resolve_debug_artifacts(config.dsyms)

    LOG.debug("Processing input file: %s", config.log)
    LOG.debug("Output: %s", output)
    LOG.debug("Architecture: %s", config.arch)
    LOG.debug(
        "dSYMs: [\n    %s\n]",
        ",\n    ".join(str(a.binary) for a in artifacts),
    )
    token.raise_if_cancelled()

    _enter(Stage.READING_LOG)
    lines = read_log_lines(config.log)

    if LOG.isEnabledFor(logging.DEBUG):
        known = {a.name for a in artifacts}
        unknown = [n for n in collect_library_names(lines) if n not in known]
        if unknown:
            LOG.debug("No dSYM for libraries: %s", ", ".join(unknown))

    _enter(Stage.PROCESSING_LINES)
    try:
        out_lines = symbolicate_lines(lines, artifacts, config.arch, resolver, token)
    except OSError as e:
        raise SymbolicateError(f"Unable to run atos: {e}", Stage.PROCESSING_LINES) from e

    token.raise_if_cancelled()

    _enter(Stage.WRITING_OUTPUT)
    write_log_atomic(output, out_lines, token)

    _enter(Stage.TERMINATED)
    return artifacts


__all__ = [
    "Stage",
    "SymbolicateConfig",
    "SymbolicateError",
    "read_log_lines",
    "symbolicate_file",
    "symbolicate_lines",
    "validate_paths",
    "write_log_atomic",
]
