"""
Markdown to plain text reduction for excerpts.

The substitutions run in a fixed order; later patterns assume the earlier
ones already removed their markup. The output is only ever used for
excerpts, never stored as article content.
"""
import re
from typing import Optional

_STEPS = [
    # fenced code blocks
    (re.compile(r"```[\s\S]*?```"), ""),
    # inline code
    (re.compile(r"`([^`]+)`"), r"\1"),
    # headings
    (re.compile(r"^#{1,6}\s+", re.M), ""),
    # horizontal rules
    (re.compile(r"^[-*_]{3,}\s*$", re.M), ""),
    # blockquotes
    (re.compile(r"^\s*>+", re.M), ""),
    # bold, italic, strikethrough
    (re.compile(r"(\*\*|__)(.*?)\1"), r"\2"),
    (re.compile(r"(\*|_)(.*?)\1"), r"\2"),
    (re.compile(r"~~(.*?)~~"), r"\1"),
    # images keep their alt text, links their display text
    (re.compile(r"!\[([^\]]*)\]\([^)]*\)"), r"\1"),
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),
    (re.compile(r"\[([^\]]+)\]\[[^\]]*\]"), r"\1"),
    # list markers
    (re.compile(r"^\s*[-*+]\s+", re.M), ""),
    (re.compile(r"^\s*\d+\.\s+", re.M), ""),
    # table separator rows, then cell pipes
    (re.compile(r"^\s*\|?(\s*:?-{3,}:?\s*\|)+\s*(:?-{3,}:?\s*)?$", re.M), ""),
    (re.compile(r"\|"), " "),
    # whitespace
    (re.compile(r"\s+"), " "),
]

_LEADING_PUNCTUATION = re.compile(r"^[\s#>*\-+]*")

ELLIPSIS = "..."


def strip_markdown(markdown: Optional[str]) -> str:
    """Reduce Markdown source to a single line of plain text."""
    if not markdown:
        return ""
    text = markdown
    for pattern, replacement in _STEPS:
        text = pattern.sub(replacement, text)
    text = text.strip()
    return _LEADING_PUNCTUATION.sub("", text)


def make_excerpt(markdown: Optional[str], limit: int) -> str:
    """
    Build an excerpt: the stripped text cut to limit characters, with an
    ellipsis appended only when something was cut.
    """
    plain = strip_markdown(markdown)
    if len(plain) > limit:
        return plain[:limit] + ELLIPSIS
    return plain
