"""Plain-text projection of Markdown and the canonical word tokenizer.

Every word count in abbey (compositions, live flow counters, flow records
and journal totals) goes through :func:`word_count`, so a word means the
same thing everywhere.
"""

from __future__ import annotations

import math
import re

_HEADING = re.compile(r"^\s{0,3}#{1,6}\s*", re.MULTILINE)
_RULE = re.compile(r"^\s*(?:-{3,}|\*{3,}|_{3,})\s*$", re.MULTILINE)
_BULLET = re.compile(r"^\s*(?:[-+*]|\d+[.)])\s+", re.MULTILINE)
_LINK = re.compile(r"!?\[([^\]]*)\]\([^)]*\)")
_EMPHASIS = re.compile(r"\*\*|__|\*|_|`")

WORDS_PER_MINUTE = 200


def markdown_to_plain_text(markdown: str) -> str:
    """Strip the Markdown syntax that should not count as words."""

    text = _HEADING.sub("", markdown)
    text = _RULE.sub("", text)
    text = _BULLET.sub("", text)
    text = _LINK.sub(r"\1", text)
    return _EMPHASIS.sub("", text)


def word_count(content: str) -> int:
    """Count whitespace-delimited words in the plain-text projection of ``content``."""

    return len(markdown_to_plain_text(content).split())


def reading_time_minutes(content: str) -> int:
    """Estimated reading time, never less than one minute."""

    return max(1, math.ceil(word_count(content) / WORDS_PER_MINUTE))


def excerpt(content: str, max_chars: int) -> str:
    """Shorten ``content`` to ``max_chars`` on a word boundary, adding ``...``."""

    plain = " ".join(markdown_to_plain_text(content).split())
    if len(plain) <= max_chars:
        return plain

    truncated = plain[:max_chars]
    last_space = truncated.rfind(" ")
    if last_space > 0:
        truncated = truncated[:last_space]
    return f"{truncated}..."


__all__ = ["markdown_to_plain_text", "word_count", "reading_time_minutes", "excerpt", "WORDS_PER_MINUTE"]
