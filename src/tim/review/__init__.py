"""Review output parsing and report formatting."""

from .formatters import (
    FormatterOptions,
    JsonFormatter,
    MarkdownFormatter,
    OutputFormat,
    ReviewFormatter,
    TerminalFormatter,
    Verbosity,
    create_formatter,
)
from .parser import (
    create_review_result,
    generate_review_summary,
    parse_json_review_output,
    parse_review_output,
    parse_reviewer_output,
    try_parse_json_review_output,
)
from .schema import (
    ParsedReviewOutput,
    ReviewCategory,
    ReviewIssue,
    ReviewResult,
    ReviewSeverity,
    ReviewSummary,
)

__all__ = [
    "FormatterOptions",
    "JsonFormatter",
    "MarkdownFormatter",
    "OutputFormat",
    "ParsedReviewOutput",
    "ReviewCategory",
    "ReviewFormatter",
    "ReviewIssue",
    "ReviewResult",
    "ReviewSeverity",
    "ReviewSummary",
    "TerminalFormatter",
    "Verbosity",
    "create_formatter",
    "create_review_result",
    "generate_review_summary",
    "parse_json_review_output",
    "parse_review_output",
    "parse_reviewer_output",
    "try_parse_json_review_output",
]
