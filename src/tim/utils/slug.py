"""Slug helpers used to derive plan filenames from titles."""

from __future__ import annotations

import hashlib
import re
from typing import Pattern

_SEPARATOR_PATTERN: Pattern[str] = re.compile(r"[^a-z0-9]+")
_HYPHEN_COLLAPSE = re.compile(r"-{2,}")

DEFAULT_MAX_LENGTH = 50


def slugify(value: str | None, *, fallback: str = "plan", max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Lowercase ``value`` and collapse everything but ``[a-z0-9]`` into hyphens."""
    slug = _normalize((value or "").strip().lower())
    if not slug:
        slug = _normalize(fallback.lower()) or "plan"
    if len(slug) > max_length:
        slug = _shorten(slug, max_length=max_length)
    return slug


def plan_slug(plan_id: int, title: str | None) -> str:
    """Return the ``<id>-<slug>`` stem used for new plan files."""
    return f"{plan_id}-{slugify(title)}"


def _shorten(slug: str, *, max_length: int) -> str:
    # Keep a stable digest suffix so truncated titles stay distinct.
    digest = hashlib.sha256(slug.encode("utf-8")).hexdigest()[:6]
    prefix_length = max(max_length - len(digest) - 1, 1)
    prefix = slug[:prefix_length].rstrip("-") or slug[:prefix_length]
    return f"{prefix}-{digest}"


def _normalize(value: str) -> str:
    slug = _SEPARATOR_PATTERN.sub("-", value)
    slug = _HYPHEN_COLLAPSE.sub("-", slug)
    return slug.strip("-")
