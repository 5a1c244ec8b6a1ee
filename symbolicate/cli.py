#!/usr/bin/env python3
"""
cli.py

Main entry point for symbolicate.

Responsibilities:
  - Provide the CLI interface
  - Normalize path arguments (quotes, '~', file:// URLs)
  - Configure logging (-v for debug output)
  - Run symbolicator.py under Ctrl + C handling and map its outcome to an
    exit status

Usage examples:

  # Symbolicate a crash log in place with every dSYM in ./dsyms/
  symbolicate crash.log ./dsyms/

  # Write the result elsewhere, using explicit dSYMs and another arch
  symbolicate --arch x86_64 --output crash.symbolicated.log \\
      crash.log MyApp.app.dSYM MyFramework.framework.dSYM
"""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import List, Optional
from urllib.parse import unquote, urlparse

from symbolicate.atos_runner import DEFAULT_ATOS, AtosError
from symbolicate.cancellation import CancellationController, SymbolicationCancelled
from symbolicate.symbolicator import SymbolicateConfig, SymbolicateError, symbolicate_file


LOG = logging.getLogger("symbolicate")


# ---------------------------------------------------------------------------
# CLI helpers
# ---------------------------------------------------------------------------

def path_argument(value: str) -> Path:
    """
    argparse type for paths.

    Accepts plain paths (surrounding double quotes are stripped, '~' is
    expanded and the path is normalized) and file:// URLs.
    """
    value = value.strip('"')

    if "://" in value:
        url = urlparse(value)
        if url.scheme != "file":
            raise argparse.ArgumentTypeError(f"Invalid URL: \"{value}\"")
        value = unquote(url.path)

    return Path(os.path.normpath(os.path.expanduser(value)))


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="symbolicate",
        description="Symbolicate a crash log using one or more dSYM files.",
    )
    p.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Verbose logging.",
    )
    p.add_argument(
        "--arch",
        default="arm64",
        help="The architecture to symbolicate (default: arm64).",
    )
    p.add_argument(
        "--output",
        type=path_argument,
        help=(
            "Path of a file to write the symbolicated log to. "
            "The file is overwritten if it already exists. "
            "If not provided, the input log is overwritten with the symbolicated log."
        ),
    )
    p.add_argument(
        "--atos",
        default=DEFAULT_ATOS,
        help=f"atos executable used to look up symbols (default: {DEFAULT_ATOS}).",
    )
    p.add_argument(
        "log",
        type=path_argument,
        help="Path of the crash log to symbolicate.",
    )
    p.add_argument(
        "dsym",
        nargs="*",
        type=path_argument,
        help=(
            "One or more dSYM files to use when symbolicating the log. "
            "Folders are searched non-recursively for dSYM files."
        ),
    )
    return p


def config_from_args(args: argparse.Namespace) -> SymbolicateConfig:
    return SymbolicateConfig(
        log=args.log,
        output=args.output,
        arch=args.arch,
        dsyms=list(args.dsym),
        atos=args.atos,
        verbose=args.verbose,
    )


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def run(config: SymbolicateConfig) -> int:
    """
    Run symbolication for config and return the process exit status.
    """
    with CancellationController() as token:
        try:
            symbolicate_file(config, token=token)
        except SymbolicationCancelled:
            LOG.info("Interrupted; no output written.")
            return 0
        except SymbolicateError as e:
            LOG.error("%s", e)
            return 1
        except AtosError as e:
            LOG.error("%s%s", e, f": {e.stderr}" if e.stderr else "")
            return e.exit_status

    return 0


def main(argv: Optional[List[str]] = None) -> None:
    args = build_argparser().parse_args(argv)
    config = config_from_args(args)

    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )

    status = run(config)
    if status != 0:
        raise SystemExit(status)


if __name__ == "__main__":
    main()
