"""Quoted-reply detection and depth limiting."""

import re
from typing import List, Optional

OMISSION_MARKER = "[... quoted text omitted ...]"

_QUOTE_PREFIX = re.compile(r"^((?:\s{0,3}>)+)\s?")
_ATTRIBUTION = re.compile(
    r"^\s*(On\s.+\swrote:|Le\s.+\sa\s+écrit\s*:)\s*$",
    re.IGNORECASE,
)


def quote_depth_of(line: str) -> int:
    """Number of leading ``>`` markers on a line."""
    match = _QUOTE_PREFIX.match(line)
    if not match:
        return 0
    return match.group(1).count(">")


def _strip_quote_prefix(line: str) -> str:
    return _QUOTE_PREFIX.sub("", line, count=1)


def limit_quote_depth(body: str, max_depth: Optional[int]) -> str:
    """
    Drop quoted lines nested deeper than ``max_depth``.

    An attribution line ("On ... wrote:") counts as part of the quote it
    introduces, so it disappears together with that quote. Each run of
    dropped lines is replaced by a single omission marker.

    Args:
        body: Plain text or Markdown body
        max_depth: Deepest quote level to keep; None keeps everything

    Returns:
        Body with deep quotes elided
    """
    if max_depth is None or not body:
        return body

    lines = body.split("\n")
    kept: List[str] = []
    in_elided_block = False

    for index, line in enumerate(lines):
        depth = quote_depth_of(line)
        if _ATTRIBUTION.match(_strip_quote_prefix(line)):
            depth = max(depth, _next_quoted_depth(lines, index + 1, depth))

        if depth > max_depth:
            if not in_elided_block:
                kept.append(_marker_for(max_depth))
                in_elided_block = True
            continue

        in_elided_block = False
        kept.append(line)

    return "\n".join(kept)


def _next_quoted_depth(lines: List[str], start: int, current: int) -> int:
    """Depth of the first non-blank line after an attribution."""
    for line in lines[start:]:
        if not line.strip() or not _strip_quote_prefix(line).strip():
            continue
        depth = quote_depth_of(line)
        return depth if depth > current else current
    return current


def _marker_for(max_depth: int) -> str:
    if max_depth <= 0:
        return OMISSION_MARKER
    return "> " * max_depth + OMISSION_MARKER
