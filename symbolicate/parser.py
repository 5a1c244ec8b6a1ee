#!/usr/bin/env python3
"""
parser.py

Crash log line matcher.

Responsibilities:
  - Recognize symbolicatable frame lines of the form:
        "12  MyLib   0x1000   0x0000   + 48"
  - Extract:
      * frame index
      * library name
      * call address (0x...)
      * library load address (0x...)
      * "+ offset" suffix
    while keeping every whitespace run between the fields verbatim, so the
    line can be rebuilt byte for byte by rewriter.py.

Notes:
  - Anything that does not match the whole line is a pass-through line.
  - Matching is purely syntactic. Addresses are not range-checked and the
    library name is not looked up here; that is symbolicator.py's job.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional


# ---------------------------------------------------------------------------
# Regexes
# ---------------------------------------------------------------------------

# Frame line:
#   "12  MyLib   0x00000001000f4a2c   0x0000000100000000   + 1000492"
#
# A trailing "\r" (CRLF logs) is tolerated as the end marker and kept in
# its own group so it survives rewriting. Lines are not trimmed before
# matching: a frame line with trailing spaces is passed through unchanged.
FRAME_LINE_RE = re.compile(
    r"""
    ^
    (?P<index>[0-9]+)                 # frame index
    (?P<ws1>[ \t]+)
    (?P<library>[^ \t]+)              # library name, no whitespace
    (?P<ws2>[ \t]+)
    (?P<call_addr>0x[0-9a-fA-F]+)     # call address
    (?P<ws3>[ \t]+)
    (?P<load_addr>0x[0-9a-fA-F]+)     # library load address
    (?P<ws4>[ \t]+)
    (?P<offset>\+[ \t]+[0-9]+)        # "+ offset"
    (?P<eol>\r?)
    $
    """,
    re.VERBOSE,
)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FrameLine:
    """
    Single matched frame line, split into its segments.

    Fields:
        index:      Frame index token, e.g. '12'.
        ws1..ws4:   Whitespace runs following index, library, call_address
                    and load_address, captured verbatim.
        library:    Library name token, compared against dSYM binary names.
        call_address:
                    Address of the instruction to symbolicate, e.g. '0x1000'.
        load_address:
                    Base address the library was loaded at, e.g. '0x0000'.
        offset:     Original "+ <decimal>" suffix.
        eol:        Trailing '\\r' if the log uses CRLF line ends, else ''.
    """
    index: str
    ws1: str
    library: str
    ws2: str
    call_address: str
    ws3: str
    load_address: str
    ws4: str
    offset: str
    eol: str = ""

    @property
    def raw_line(self) -> str:
        """Original line text, rebuilt from the captured segments."""
        return (
            self.index + self.ws1
            + self.library + self.ws2
            + self.call_address + self.ws3
            + self.load_address + self.ws4
            + self.offset + self.eol
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def match_line(line: str) -> Optional[FrameLine]:
    """
    Try to parse a single line as a frame line.

    Returns:
        FrameLine if the whole line has the frame shape; otherwise None.
    """
    m = FRAME_LINE_RE.match(line)
    if not m:
        return None

    return FrameLine(
        index=m.group("index"),
        ws1=m.group("ws1"),
        library=m.group("library"),
        ws2=m.group("ws2"),
        call_address=m.group("call_addr"),
        ws3=m.group("ws3"),
        load_address=m.group("load_addr"),
        ws4=m.group("ws4"),
        offset=m.group("offset"),
        eol=m.group("eol"),
    )


def split_log_text(text: str) -> List[str]:
    """
    Split log text into lines on '\\n' only.

    No other newline translation happens, so "\\n".join() of the result is
    the original text again, including a trailing newline (which shows up
    as a final empty line).
    """
    return text.split("\n")


def collect_library_names(lines: Iterable[str]) -> List[str]:
    """
    Collect the distinct library names of all frame lines, in order of
    first appearance.

    Used for the verbose summary of which libraries the log references.
    """
    seen: List[str] = []
    for line in lines:
        frame = match_line(line)
        if frame is not None and frame.library not in seen:
            seen.append(frame.library)
    return seen


__all__ = [
    "FrameLine",
    "FRAME_LINE_RE",
    "match_line",
    "split_log_text",
    "collect_library_names",
]
