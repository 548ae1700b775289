#!/usr/bin/env python3
"""
Brace Scanner — balanced-delimiter span locator.

Finds the ``{...}`` or ``(...)`` span that follows a keyword in dictionary
text. Unterminated input is reported as absent (``None``), never raised.
"""

import re
from typing import NamedTuple, Optional, Pattern, Union

CLOSERS = {"{": "}", "(": ")"}


class Span(NamedTuple):
    """Offsets of a located block.

    ``start`` is where the opener match begins, ``open_delim`` the offset of
    the opening delimiter and ``end`` is one past the matching close.
    """
    start: int
    open_delim: int
    end: int

    def inner(self, text: str) -> str:
        return text[self.open_delim + 1:self.end - 1]


def scan_balanced(text: str, start: int, delimiter: str = "{") -> Optional[Span]:
    """Scan from the first ``delimiter`` at or after ``start`` until depth returns to 0."""
    closer = CLOSERS[delimiter]
    open_idx = text.find(delimiter, start)
    if open_idx == -1:
        return None

    depth = 0
    for i in range(open_idx, len(text)):
        ch = text[i]
        if ch == delimiter:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return Span(start, open_idx, i + 1)
    return None


def find_balanced_span(
    text: str,
    opener: Union[str, Pattern],
    delimiter: str = "{",
) -> Optional[Span]:
    """Locate the balanced span following the first match of ``opener``.

    Args:
        text: Dictionary text to search.
        opener: Regex (string or compiled) matching the keyword.
        delimiter: ``"{"`` or ``"("``.

    Returns:
        Span, or None if the opener is missing, no delimiter follows it, or
        the delimiters never balance.
    """
    pattern = re.compile(opener, re.MULTILINE) if isinstance(opener, str) else opener
    match = pattern.search(text)
    if not match:
        return None
    return scan_balanced(text, match.start(), delimiter)


def find_keyword_block(text: str, keyword: str, delimiter: str = "{") -> Optional[Span]:
    """Balanced span of ``keyword`` followed directly by ``delimiter``."""
    pattern = re.compile(rf"\b{re.escape(keyword)}\s*{re.escape(delimiter)}", re.MULTILINE)
    return find_balanced_span(text, pattern, delimiter)
