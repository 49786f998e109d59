from __future__ import annotations

from tim.utils import plan_slug, slugify


def test_slugify_collapses_punctuation() -> None:
    assert slugify("  Add  CLI: --format flag!  ") == "add-cli-format-flag"
    assert slugify("???") == "plan"
    assert slugify(None, fallback="Untitled") == "untitled"


def test_long_titles_keep_distinct_suffix() -> None:
    first = slugify("a" * 80 + " first")
    second = slugify("a" * 80 + " second")

    assert len(first) <= 50
    assert first != second
    assert first.startswith("aaaa")


def test_plan_slug_prefixes_id() -> None:
    assert plan_slug(12, "Review parser") == "12-review-parser"
