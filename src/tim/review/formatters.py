"""Render review results as JSON, Markdown, or terminal text."""

from __future__ import annotations

import io
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Sequence

import typer
from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from ..errors import ReviewFormatError
from .schema import SEVERITY_ORDER, ReviewIssue, ReviewResult, ReviewSeverity, ReviewSummary


class Verbosity(str, Enum):
    """How much of a review result a formatter includes."""

    MINIMAL = "minimal"
    NORMAL = "normal"
    DETAILED = "detailed"


class OutputFormat(str, Enum):
    """Formats accepted by :func:`create_formatter`."""

    JSON = "json"
    MARKDOWN = "markdown"
    TERMINAL = "terminal"


@dataclass(slots=True)
class FormatterOptions:
    """Rendering switches shared by every formatter."""

    verbosity: Verbosity = Verbosity.NORMAL
    show_files: bool = True
    show_suggestions: bool = True
    color_enabled: bool = True


def _format_timestamp(value: str) -> str:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    return parsed.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _group_by_severity(issues: Sequence[ReviewIssue]) -> Dict[ReviewSeverity, List[ReviewIssue]]:
    groups: Dict[ReviewSeverity, List[ReviewIssue]] = {severity: [] for severity in SEVERITY_ORDER}
    for issue in issues:
        groups[issue.severity].append(issue)
    return groups


def _location(issue: ReviewIssue) -> str:
    return f"{issue.file}:{issue.line}" if issue.line else str(issue.file)


def _validate_json_payload(payload: Any) -> None:
    if payload is None:
        raise ReviewFormatError("Cannot serialize null or undefined to JSON")
    try:
        json.dumps(payload)
    except ValueError as error:
        if "circular" in str(error).lower():
            raise ReviewFormatError("Cannot serialize object with circular references to JSON") from error
        raise ReviewFormatError(f"JSON serialization failed: {error}") from error
    except TypeError as error:
        raise ReviewFormatError(f"JSON serialization failed: {error}") from error

    if isinstance(payload, dict):
        if "planId" in payload and not isinstance(payload["planId"], str):
            raise ReviewFormatError("planId must be a string")
        if "issues" in payload and not isinstance(payload["issues"], list):
            raise ReviewFormatError("issues must be an array")
        if "summary" in payload and not isinstance(payload["summary"], dict):
            raise ReviewFormatError("summary must be an object")


class ReviewFormatter(ABC):
    """Interface implemented by every review formatter."""

    file_extension = ".txt"

    @abstractmethod
    def format(self, result: ReviewResult, options: FormatterOptions | None = None) -> str:
        """Render ``result`` as a string."""


class JsonFormatter(ReviewFormatter):
    """Machine-readable output for tooling integration."""

    file_extension = ".json"

    def build_payload(self, result: ReviewResult, verbosity: Verbosity) -> Dict[str, Any]:
        document = result.model_dump(mode="json", by_alias=True, exclude_none=True)
        if verbosity == Verbosity.MINIMAL:
            return {
                "planId": document["planId"],
                "summary": document["summary"],
                "issueCount": len(result.issues),
            }
        if verbosity == Verbosity.DETAILED:
            return document
        document.pop("changedFiles", None)
        document.pop("rawOutput", None)
        return document

    def format(self, result: ReviewResult, options: FormatterOptions | None = None) -> str:
        options = options or FormatterOptions()
        payload = self.build_payload(result, Verbosity(options.verbosity))
        _validate_json_payload(payload)
        return json.dumps(payload, indent=2, ensure_ascii=False)


class MarkdownFormatter(ReviewFormatter):
    """Report suitable for pull requests and documentation."""

    file_extension = ".md"

    def format(self, result: ReviewResult, options: FormatterOptions | None = None) -> str:
        options = options or FormatterOptions()
        minimal = options.verbosity == Verbosity.MINIMAL
        summary = result.summary
        sections: List[str] = [
            "# Code Review Report",
            f"**Plan:** {result.plan_id} - {result.plan_title}",
            f"**Date:** {_format_timestamp(result.review_timestamp)}",
            f"**Base Branch:** {result.base_branch}",
            "",
            "## Summary",
            f"- **Total Issues:** {summary.total_issues}",
            f"- **Files Reviewed:** {summary.files_reviewed}",
            "",
        ]

        if summary.total_issues > 0:
            sections.append("### Issues by Severity")
            for severity in SEVERITY_ORDER:
                sections.append(f"- {severity.value.capitalize()}: {summary.count_for(severity)}")
            sections.append("")
            sections.append("### Issues by Category")
            for category, count in summary.category_counts.items():
                if count > 0:
                    sections.append(f"- {category.value.capitalize()}: {count}")
            sections.append("")

        if options.show_files and not minimal:
            sections.append("## Changed Files")
            sections.extend(f"- {path}" for path in result.changed_files)
            sections.append("")

        if result.issues and not minimal:
            sections.append("## Issues Found")
            for severity, issues in _group_by_severity(result.issues).items():
                if not issues:
                    continue
                sections.append(f"### {severity.value.capitalize()} Issues")
                sections.append("")
                for index, issue in enumerate(issues, start=1):
                    sections.append(f"#### {index}. {issue.content}")
                    sections.append(f"**Category:** {issue.category.value}")
                    if issue.file:
                        sections.append(f"**File:** {_location(issue)}")
                    if issue.suggestion and options.show_suggestions:
                        sections.append(f"**Suggestion:** {issue.suggestion}")
                    sections.append("")

        if result.recommendations and not minimal:
            sections.append("## Recommendations")
            sections.extend(f"- {entry}" for entry in result.recommendations)
            sections.append("")

        if result.action_items and not minimal:
            sections.append("## Action Items")
            sections.extend(f"- [ ] {entry}" for entry in result.action_items)
            sections.append("")

        return "\n".join(sections)


_SEVERITY_STYLES: Dict[ReviewSeverity, Dict[str, Any]] = {
    ReviewSeverity.CRITICAL: {"fg": "red", "bold": True},
    ReviewSeverity.MAJOR: {"fg": "red"},
    ReviewSeverity.MINOR: {"fg": "yellow"},
    ReviewSeverity.INFO: {"fg": "blue"},
}

_SEVERITY_RICH_STYLES: Dict[ReviewSeverity, str] = {
    ReviewSeverity.CRITICAL: "bold red",
    ReviewSeverity.MAJOR: "red",
    ReviewSeverity.MINOR: "yellow",
    ReviewSeverity.INFO: "blue",
}

_SEVERITY_ICONS: Dict[ReviewSeverity, str] = {
    ReviewSeverity.CRITICAL: "🔴",
    ReviewSeverity.MAJOR: "🟡",
    ReviewSeverity.MINOR: "🟠",
    ReviewSeverity.INFO: "ℹ️",
}


def render_severity_table(summary: ReviewSummary, *, color_enabled: bool = True) -> str:
    """Render the Severity/Count box table for ``summary`` as text."""
    table = Table(box=box.SQUARE, show_lines=True, header_style="bold")
    table.add_column("Severity")
    table.add_column("Count")
    for severity in SEVERITY_ORDER:
        count = summary.count_for(severity)
        style = _SEVERITY_RICH_STYLES[severity] if count else "bright_black"
        table.add_row(severity.value.capitalize(), Text(str(count), style=style))

    buffer = io.StringIO()
    console = Console(
        file=buffer,
        force_terminal=color_enabled,
        no_color=not color_enabled,
        color_system="standard" if color_enabled else None,
        highlight=False,
        width=120,
    )
    console.print(table)
    return buffer.getvalue()


class TerminalFormatter(ReviewFormatter):
    """Console output with optional ANSI colors."""

    file_extension = ".txt"

    def format(self, result: ReviewResult, options: FormatterOptions | None = None) -> str:
        options = options or FormatterOptions()
        minimal = options.verbosity == Verbosity.MINIMAL

        def paint(text: str, **style: Any) -> str:
            return typer.style(text, **style) if options.color_enabled else text

        summary = result.summary
        sections: List[str] = [
            paint("📋 Code Review Report", fg="cyan", bold=True),
            paint(f"Plan: {result.plan_id} - {result.plan_title}", fg="bright_black"),
            paint(f"Date: {_format_timestamp(result.review_timestamp)}", fg="bright_black"),
            paint(f"Base Branch: {result.base_branch}", fg="bright_black"),
            "",
            paint("📊 Summary", fg="yellow", bold=True),
            f"Total Issues: {summary.total_issues}",
            f"Files Reviewed: {summary.files_reviewed}",
            "",
        ]

        if summary.total_issues > 0:
            sections.append(render_severity_table(summary, color_enabled=options.color_enabled))

        if result.issues and not minimal:
            sections.append(paint("🔍 Issues Found", fg="red", bold=True))
            sections.append("")
            for severity, issues in _group_by_severity(result.issues).items():
                if not issues:
                    continue
                heading = f"{_SEVERITY_ICONS[severity]} {severity.value.capitalize()} Issues"
                sections.append(paint(heading, **_SEVERITY_STYLES[severity]))
                sections.append("")
                for index, issue in enumerate(issues, start=1):
                    sections.append(f"{index}. {paint(issue.content, bold=True)}")
                    sections.append(f"   Category: {paint(issue.category.value, fg='cyan')}")
                    if issue.file:
                        sections.append(f"   File: {paint(_location(issue), fg='blue')}")
                    if (
                        options.verbosity == Verbosity.DETAILED
                        and issue.suggestion
                        and options.show_suggestions
                    ):
                        sections.append(f"   {paint('Suggestion:', fg='yellow')} {issue.suggestion}")
                    sections.append("")

        if result.recommendations and not minimal:
            sections.append(paint("💡 Recommendations", fg="blue", bold=True))
            sections.extend(f"• {entry}" for entry in result.recommendations)
            sections.append("")

        if result.action_items and not minimal:
            sections.append(paint("✅ Action Items", fg="green", bold=True))
            sections.extend(f"• {entry}" for entry in result.action_items)
            sections.append("")

        return "\n".join(sections)


_FORMATTERS: Dict[OutputFormat, type[ReviewFormatter]] = {
    OutputFormat.JSON: JsonFormatter,
    OutputFormat.MARKDOWN: MarkdownFormatter,
    OutputFormat.TERMINAL: TerminalFormatter,
}


def create_formatter(name: str | OutputFormat) -> ReviewFormatter:
    """Return a formatter instance for ``name``."""
    try:
        output_format = OutputFormat(name)
    except ValueError as error:
        raise ValueError(f"Unsupported format: {name}") from error
    return _FORMATTERS[output_format]()
