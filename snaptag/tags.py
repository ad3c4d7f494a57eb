"""
tags.py — Tag sanitizing and tag-combination keys.

Tags are restricted to [A-Za-z0-9_-]. Anything else is stripped after
trimming surrounding whitespace; an empty result is never a valid tag.
"""

from __future__ import annotations

import re
from typing import Iterable

from .errors import InvalidTag

_DISALLOWED = re.compile(r"[^A-Za-z0-9_-]")
TAG_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def sanitize(raw: str) -> str:
    """Strip every character outside [A-Za-z0-9_-]. May return ''."""
    return _DISALLOWED.sub("", str(raw).strip())


def require_tag(raw: str) -> str:
    """Sanitize raw input, raising InvalidTag when nothing usable remains."""
    tag = sanitize(raw)
    if not tag:
        raise InvalidTag(f"Invalid tag name: {raw!r}")
    return tag


def is_valid_tag(tag: str) -> bool:
    return bool(TAG_PATTERN.match(tag))


def unique_tags(tags: Iterable[str]) -> list[str]:
    """De-duplicate preserving first occurrence."""
    seen = set()
    result = []
    for tag in tags:
        if tag not in seen:
            seen.add(tag)
            result.append(tag)
    return result


def combination_key(tags: Iterable[str]) -> str:
    """Order-normalized key identifying a tag combination (sorted, '-' joined)."""
    return "-".join(sorted(tags))
