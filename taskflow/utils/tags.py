"""Tag parsing helpers."""

from typing import Any, Iterable, List


def tags_from_string(tag_string: str = "") -> List[str]:
    """Split a comma-separated tag string into clean tags.

    >>> tags_from_string(" work, urgent ,, home")
    ['work', 'urgent', 'home']
    """
    return [part.strip() for part in tag_string.split(",") if part.strip()]


def clean_tags(values: Iterable[Any]) -> List[str]:
    """Trim tags and drop anything that is not a non-empty string."""
    return [value.strip() for value in values if isinstance(value, str) and value.strip()]
