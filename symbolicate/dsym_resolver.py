#!/usr/bin/env python3
"""
dsym_resolver.py

Responsible for turning the dSYM paths given on the command line into a
list of concrete DWARF binaries that atos can be pointed at.

Inputs may be:
  - a .dSYM bundle      (e.g. MyApp.app.dSYM)
  - a raw DWARF binary  (e.g. MyApp.app.dSYM/Contents/Resources/DWARF/MyApp)
  - a plain directory   containing .dSYM bundles (searched non-recursively)

The goal is to return an ordered tuple of DebugArtifact with:
  - no entries for paths that do not exist,
  - every bundle replaced by its single DWARF binary,
  - no two entries pointing at the same binary.

Every rejected input is logged and skipped; a bad dSYM never fails the run.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Set, Tuple


LOG = logging.getLogger("dsym_resolver")

DSYM_EXTENSION = ".dsym"

# Location of the DWARF binaries inside a .dSYM bundle.
DWARF_SUBDIR = Path("Contents") / "Resources" / "DWARF"


class ArtifactKind(enum.Enum):
    RAW_BINARY = "raw-binary"
    PACKAGE = "package"


@dataclass(frozen=True)
class DebugArtifact:
    """
    A debug binary usable by atos.

    Fields:
        source: Path as it was given (or found while expanding a directory).
        binary: Concrete DWARF binary path.
        kind:   Whether source was a .dSYM bundle or already a binary.
    """
    source: Path
    binary: Path
    kind: ArtifactKind

    @property
    def name(self) -> str:
        """Binary file name; this is what log lines refer to."""
        return self.binary.name


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def is_dsym_bundle(path: Path) -> bool:
    """True if the path carries the .dSYM extension (case-insensitive)."""
    return path.suffix.lower() == DSYM_EXTENSION


def _canonical_key(path: Path) -> str:
    """
    Identity of a binary for de-duplication.

    We normalize using resolve() so that different textual paths pointing
    to the same file share the same identity.
    """
    try:
        return str(path.resolve())
    except OSError:
        return str(path.absolute())


def _filter_existing(paths: Iterable[Path]) -> List[Path]:
    out: List[Path] = []
    for path in paths:
        if not path.exists():
            LOG.warning("Skipping dSYM as it doesn't exist at the given path: %s", path)
            continue
        out.append(path)
    return out


def _expand_directories(paths: Iterable[Path]) -> List[Path]:
    """
    Replace every plain directory with the .dSYM bundles directly inside it.

    Children keep the position of the directory they came from and are
    sorted by name for a stable order. Nested directories are not searched.
    """
    out: List[Path] = []
    for path in paths:
        if not path.is_dir() or is_dsym_bundle(path):
            out.append(path)
            continue

        try:
            children = sorted(p for p in path.iterdir() if is_dsym_bundle(p))
        except OSError as e:
            LOG.warning("Skipping dSYM folder that can't be listed: %s (%s)", path, e)
            continue

        if not children:
            LOG.debug("No dSYM files found in folder: %s", path)
            continue

        LOG.debug("Found %d dSYM file(s) in folder: %s", len(children), path)
        out.extend(children)
    return out


def _bundle_binary(bundle: Path) -> Optional[Path]:
    """
    Return the single DWARF binary inside a .dSYM bundle.

    Typical layout:
        MyApp.app.dSYM / Contents / Resources / DWARF / MyApp

    Returns None if the DWARF folder is missing or does not hold exactly
    one file.
    """
    dwarf_dir = bundle / DWARF_SUBDIR
    try:
        binaries = sorted(p for p in dwarf_dir.iterdir() if p.is_file())
    except OSError:
        binaries = []

    if len(binaries) != 1:
        LOG.warning(
            "Skipping dSYM as there was expected to be exactly one DWARF binary "
            "(found %d): %s",
            len(binaries),
            dwarf_dir,
        )
        return None
    return binaries[0]


def _resolve_artifact(path: Path) -> Optional[DebugArtifact]:
    if not is_dsym_bundle(path):
        # Assume the user passed the full path to a DWARF binary.
        return DebugArtifact(source=path, binary=path, kind=ArtifactKind.RAW_BINARY)

    binary = _bundle_binary(path)
    if binary is None:
        return None
    return DebugArtifact(source=path, binary=binary, kind=ArtifactKind.PACKAGE)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def resolve_debug_artifacts(paths: Iterable[Path]) -> Tuple[DebugArtifact, ...]:
    """
    Resolve user-supplied dSYM paths into concrete, de-duplicated binaries.

    Steps (each one a forward pass over the output of the previous one):
      1) Drop paths that do not exist.
      2) Expand plain directories into the .dSYM bundles they contain.
      3) Replace bundles by their single DWARF binary; drop bundles with
         zero or several binaries.
      4) Drop entries whose binary was already seen earlier.

    Returns:
        Ordered tuple of DebugArtifact; may be empty.
    """
    existing = _filter_existing(paths)
    expanded = _expand_directories(existing)

    artifacts: List[DebugArtifact] = []
    seen: Set[str] = set()

    for path in expanded:
        artifact = _resolve_artifact(path)
        if artifact is None:
            continue

        key = _canonical_key(artifact.binary)
        if key in seen:
            LOG.debug("Skipping duplicate dSYM binary: %s (from %s)", artifact.binary, path)
            continue

        seen.add(key)
        artifacts.append(artifact)

    return tuple(artifacts)


__all__ = [
    "ArtifactKind",
    "DebugArtifact",
    "DSYM_EXTENSION",
    "DWARF_SUBDIR",
    "is_dsym_bundle",
    "resolve_debug_artifacts",
]
