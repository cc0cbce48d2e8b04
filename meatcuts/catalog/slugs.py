from __future__ import annotations

import re
from typing import Callable

from ..errors import InvalidInputError

_SEPARATORS = re.compile(r"[\s_]+")
_DISALLOWED = re.compile(r"[^a-z0-9-]+")
_REPEATED_HYPHENS = re.compile(r"-{2,}")


def slugify(name: str | None) -> str:
    """Lowercase ``name`` and reduce it to ``[a-z0-9-]``; may return ``""``."""
    if not name:
        return ""
    slug = _SEPARATORS.sub("-", name.strip().lower())
    slug = _DISALLOWED.sub("", slug)
    slug = _REPEATED_HYPHENS.sub("-", slug)
    return slug.strip("-")


def assign_slug(name: str | None, exists: Callable[[str], bool]) -> str:
    """
    Return a slug for ``name`` that ``exists`` reports as unused.

    Collisions get ``-1``, ``-2``, ... appended to the base slug. The caller
    scopes ``exists`` (e.g. excluding the record being renamed).
    """
    base = slugify(name)
    if not base:
        raise InvalidInputError(f"Cannot derive a slug from name {name!r}")

    candidate = base
    counter = 1
    while exists(candidate):
        candidate = f"{base}-{counter}"
        counter += 1
    return candidate
