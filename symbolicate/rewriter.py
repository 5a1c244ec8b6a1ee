#!/usr/bin/env python3
"""
rewriter.py

Rebuild a matched frame line with its resolved symbol.

Rules:

1) Everything up to and including the whitespace after the load address is
   copied verbatim from the original line, so column alignment in the log
   is preserved:
       "<index><ws><library><ws><call address><ws><load address><ws>"

2) The "+ offset" suffix is dropped; the symbol takes its place:
       "12  MyLib   0x1000   0x0000   + 48"
    -> "12  MyLib   0x1000   0x0000   -[MyLib foo]"

3) A CRLF end marker on the original line is kept.
"""

from __future__ import annotations

from symbolicate.parser import FrameLine


def frame_prefix(frame: FrameLine) -> str:
    """Return the part of the line that is kept verbatim on rewrite."""
    return (
        frame.index + frame.ws1
        + frame.library + frame.ws2
        + frame.call_address + frame.ws3
        + frame.load_address + frame.ws4
    )


def rewrite_line(frame: FrameLine, symbol: str) -> str:
    """
    Substitute a resolved symbol for the "+ offset" suffix of a frame line.

    The caller is responsible for only passing non-empty symbols; an empty
    result means "leave the line alone" and never reaches this function.
    """
    return frame_prefix(frame) + symbol + frame.eol


__all__ = [
    "frame_prefix",
    "rewrite_line",
]
