"""Small shared helpers."""

from .slug import plan_slug, slugify

__all__ = ["plan_slug", "slugify"]
