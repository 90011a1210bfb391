"""
Permalink derivation.
"""
import re
from typing import Iterable, Optional, Tuple

_NON_SLUG_CHARS = re.compile(r"[^\w\s-]", re.ASCII)
_SEPARATOR_RUNS = re.compile(r"[\s_-]+", re.ASCII)


def slugify(title: Optional[str]) -> str:
    """
    Derive a URL-safe permalink from a title.

    Example:
        slugify("Hello World!") returns "hello-world"
    """
    if not title:
        return ""
    slug = title.lower().strip()
    slug = _NON_SLUG_CHARS.sub("", slug)
    slug = _SEPARATOR_RUNS.sub("-", slug)
    return slug.strip("-")


def ensure_unique(
    candidate: str,
    existing: Iterable[Tuple[str, str]],
    exclude_id: Optional[str] = None
) -> str:
    """
    Make a permalink unique by linear probing.

    Args:
        candidate: Desired permalink
        existing: (article_id, permalink) pairs already in use
        exclude_id: Article whose own permalink does not count as a collision

    Returns:
        candidate, or candidate with the first free "-N" suffix appended
    """
    taken = {permalink for article_id, permalink in existing if article_id != exclude_id}
    result = candidate
    counter = 1
    while result in taken:
        result = f"{candidate}-{counter}"
        counter += 1
    return result
