from __future__ import annotations

import re

_INVALID_RE = re.compile(r"[^a-z0-9-]")
_HYPHENS_RE = re.compile(r"-+")


def sanitize(value: str) -> str:
    """Lowercase and restrict to ``[a-z0-9-]`` with single, inner hyphens."""
    slug = _INVALID_RE.sub("-", str(value).lower())
    slug = _HYPHENS_RE.sub("-", slug)
    return slug.strip("-")


def unique_slug(slug: str, taken: set[str] | list[str]) -> str:
    if slug not in taken:
        return slug
    n = 2
    while f"{slug}-{n}" in taken:
        n += 1
    return f"{slug}-{n}"
