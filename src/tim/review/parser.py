"""Extract structured findings from reviewer agent output.

Reviewers return either free text or a JSON document matching
:class:`~tim.review.schema.ReviewOutput`. Free text is mined with a small set
of regular expressions: issue blocks separated by ``---`` lines when present,
otherwise bullet and marker lines. Only findings that carry an explicit
severity (a ``CRITICAL:``-style tag or a keyword match) are kept.
"""

from __future__ import annotations

import json
import logging
import posixpath
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Pattern, Sequence

from pydantic import ValidationError

from ..errors import ReviewJsonParseError
from .schema import (
    ParsedReviewOutput,
    ReviewCategory,
    ReviewIssue,
    ReviewOutput,
    ReviewResult,
    ReviewSeverity,
    ReviewSummary,
)

LOGGER = logging.getLogger(__name__)

MAX_OUTPUT_LENGTH = 10_000_000
MAX_ISSUES = 100
MAX_LINES = 100_000
MAX_LINE_LENGTH = 500
MAX_LIST_ENTRIES = 50
MAX_LIST_LINE_LENGTH = 200
MAX_PATH_LENGTH = 260
MAX_LINE_NUMBER = 100_000
RAW_INPUT_PREVIEW = 1000

MAX_PLAN_ID_LENGTH = 100
MAX_PLAN_TITLE_LENGTH = 200
MAX_BRANCH_NAME_LENGTH = 100
MAX_CHANGED_FILES = 500
MAX_RAW_OUTPUT_LENGTH = 500_000
TRUNCATION_NOTICE = "\n[Output truncated due to size limits]"

VALID_EXTENSIONS: frozenset[str] = frozenset(
    {".ts", ".tsx", ".js", ".jsx", ".py", ".java", ".cpp", ".c", ".h", ".go", ".rs", ".rb", ".php", ".cs"}
)


@dataclass(slots=True, frozen=True)
class IssuePattern:
    """Keyword pattern mapping a finding to a default severity and category."""

    pattern: Pattern[str]
    severity: ReviewSeverity
    category: ReviewCategory


ISSUE_PATTERNS: tuple[IssuePattern, ...] = (
    IssuePattern(
        re.compile(r"(?:critical|security|vulnerability|exploit|injection|xss|sql|csrf|rce)", re.I),
        ReviewSeverity.CRITICAL,
        ReviewCategory.SECURITY,
    ),
    IssuePattern(
        re.compile(r"(?:performance|slow|bottleneck|memory leak|cpu|inefficient|optimization)", re.I),
        ReviewSeverity.MAJOR,
        ReviewCategory.PERFORMANCE,
    ),
    IssuePattern(
        re.compile(r"(?:bug|error|exception|crash|fail|broken|incorrect|wrong)", re.I),
        ReviewSeverity.MAJOR,
        ReviewCategory.BUG,
    ),
    IssuePattern(
        re.compile(r"(?:test|testing|coverage|unit test|integration test|mock)", re.I),
        ReviewSeverity.MINOR,
        ReviewCategory.TESTING,
    ),
    IssuePattern(
        re.compile(r"(?:style|formatting|naming|convention|readability|maintainability)", re.I),
        ReviewSeverity.MINOR,
        ReviewCategory.STYLE,
    ),
)

_BULLET_MARKER = re.compile(r"^[-*•]\s*(.+)")
_NUMBERED_MARKER = re.compile(r"^\d+\.\s*(.+)")
_EMOJI_MARKER = re.compile("^(?:⚠️?|❌|\U0001f534|\U0001f7e1|⭐)\\s*(.+)")
_SEVERITY_MARKER = re.compile(r"^(CRITICAL|MAJOR|MINOR|INFO):\s*(.+)", re.I)

_SEVERITY_TAG = re.compile(r"^(CRITICAL|MAJOR|MINOR|INFO):", re.I)
_LEGEND_EXCLUSION = re.compile(r"^[-*•]\s*\*\*(CRITICAL|MAJOR|MINOR|INFO)\*\*\s+(issues?|concerns?)\s*:", re.I)
_VERDICT = re.compile(r"VERDICT", re.I)
_MARKDOWN_HEADING = re.compile(r"^#{1,6}\s")
_SUGGESTION_PREFIX = re.compile(r"^(Suggestion|Fix|Consider):\s*", re.I)
_SUGGESTION_STARTS: tuple[str, ...] = ("Suggestion:", "Fix:", "Consider:")

_FILE_EXT = r"(?:tsx?|jsx?|py|java|cpp|c|h|go|rs|rb|php|cs)"
_PATH_COMPONENT = r"[a-zA-Z0-9._/-]{1,100}"
FILE_LINE_PATTERN = re.compile(rf"\b(?:in|at|line)\s+({_PATH_COMPONENT}\.{_FILE_EXT}):(\d{{1,6}})\b", re.I)
FILE_ONLY_PATTERN = re.compile(rf"\b(?:in|at)\s+({_PATH_COMPONENT}\.{_FILE_EXT})\b", re.I)
FILE_KEYWORD_PATTERN = re.compile(rf"\bfile\s+({_PATH_COMPONENT}\.{_FILE_EXT})\b", re.I)

_RECOMMENDATION_BULLET = re.compile(r"^[-*•]\s*(recommend|suggestion|should|consider|improve)", re.I)
_RECOMMENDATION_START = re.compile(r"^(recommend|suggestion|should|consider|improve)", re.I)
_SECTION_HEADER = re.compile(r"^\w+:\s*$")
_ACTION_ITEM_START = re.compile(r"^(todo|action|next|fix|address|update)", re.I)
_ACTION_ITEM_SECTION = re.compile(r"^\w+\s*(items?)?\s*:\s*$")
_ACTION_BULLET = re.compile(r"^[-*•]\s*(todo|action|fix|update|address)", re.I)

_FORBIDDEN_PATH_CHARS = re.compile(r'[<>:"|?*]')
_EDGE_SLASHES = re.compile(r"^/+|/+$")


@dataclass(slots=True)
class IssueAnalysis:
    """Classification of a candidate finding."""

    severity: ReviewSeverity = ReviewSeverity.INFO
    category: ReviewCategory = ReviewCategory.OTHER
    file: Optional[str] = None
    line: Optional[int] = None
    has_severity: bool = False


def sanitize_file_path(file_path: str | None) -> Optional[str]:
    """Return a project-relative path or None when the reference is unsafe."""
    if not file_path or not isinstance(file_path, str):
        return None

    cleaned = "".join(
        char for char in file_path if not (ord(char) <= 31 or 127 <= ord(char) <= 159)
    ).strip()
    cleaned = _FORBIDDEN_PATH_CHARS.sub("", cleaned)
    # Every ".." is removed, so "a..b.py" becomes "ab.py".
    cleaned = cleaned.replace("..", "")
    cleaned = _EDGE_SLASHES.sub("", cleaned)

    if not cleaned or len(cleaned) > MAX_PATH_LENGTH:
        return None

    _, extension = posixpath.splitext(cleaned)
    if extension.lower() not in VALID_EXTENSIONS:
        return None

    normalized = posixpath.normpath(cleaned)
    if "../" in normalized or normalized.startswith("/"):
        return None
    return normalized


def _extract_location(content: str) -> tuple[Optional[str], Optional[int]]:
    match = FILE_LINE_PATTERN.search(content)
    if match:
        file = sanitize_file_path(match.group(1))
        if file is None:
            return None, None
        line = int(match.group(2))
        return file, line if 0 < line <= MAX_LINE_NUMBER else None

    for pattern in (FILE_ONLY_PATTERN, FILE_KEYWORD_PATTERN):
        match = pattern.search(content)
        if match:
            return sanitize_file_path(match.group(1)), None
    return None, None


def analyze_issue_content(content: str) -> IssueAnalysis:
    """Classify ``content`` by severity tag, keywords, and file reference."""
    analysis = IssueAnalysis()

    tag = _SEVERITY_TAG.match(content)
    if tag:
        analysis.severity = ReviewSeverity(tag.group(1).lower())
        analysis.has_severity = True

    for issue_pattern in ISSUE_PATTERNS:
        if issue_pattern.pattern.search(content):
            if not tag:
                analysis.severity = issue_pattern.severity
                analysis.has_severity = True
            analysis.category = issue_pattern.category
            break

    analysis.file, analysis.line = _extract_location(content)
    return analysis


def _trim_issue_content(content: str) -> str:
    trimmed = content.strip()
    if trimmed.startswith("Found Issues:"):
        trimmed = trimmed[trimmed.index(":") + 1 :].strip()
    return trimmed


def _match_marker(line: str) -> Optional[str]:
    """Return the candidate text for a marker line, or None when unmarked.

    Severity prefixes keep the full ``CRITICAL: ...`` text so the tag still
    drives classification.
    """
    match = _SEVERITY_MARKER.match(line)
    if match:
        return match.group(0).strip()
    for marker in (_BULLET_MARKER, _NUMBERED_MARKER, _EMOJI_MARKER):
        match = marker.match(line)
        if match:
            return match.group(1).strip()
    return None


def _strip_suggestion(line: str) -> str:
    return _SUGGESTION_PREFIX.sub("", line, count=1)


def _is_recommendation(line: str) -> bool:
    if _RECOMMENDATION_BULLET.match(line):
        return True
    return bool(_RECOMMENDATION_START.match(line)) and not _SECTION_HEADER.match(line)


def _is_action_item(line: str) -> bool:
    if _ACTION_ITEM_START.match(line) and not _ACTION_ITEM_SECTION.match(line):
        return True
    return bool(_ACTION_BULLET.match(line))


def _build_issue(issue_id: int, content: str, analysis: IssueAnalysis, suggestion: Optional[str]) -> ReviewIssue:
    return ReviewIssue(
        id=f"issue-{issue_id}",
        severity=analysis.severity,
        category=analysis.category,
        content=content,
        file=analysis.file,
        line=analysis.line,
        suggestion=suggestion or None,
    )


def _split_blocks(lines: Sequence[str], processed: set[int]) -> List[List[tuple[int, str]]]:
    blocks: List[List[tuple[int, str]]] = []
    current: List[tuple[int, str]] = []
    for index, raw_line in enumerate(lines):
        if raw_line.strip() == "---":
            processed.add(index)
            if any(line.strip() for _, line in current):
                blocks.append(current)
            current = []
            continue
        current.append((index, raw_line))
    if any(line.strip() for _, line in current):
        blocks.append(current)
    return blocks


def _parse_block(block: List[tuple[int, str]]) -> Optional[tuple[str, Optional[str]]]:
    block_lines = [line for _, line in block]
    if any(_VERDICT.search(line) for line in block_lines):
        return None

    header_idx = next(idx for idx, line in enumerate(block_lines) if line.strip())
    header = block_lines[header_idx].strip()
    header = _match_marker(header) or header
    if _MARKDOWN_HEADING.match(header):
        return None

    remaining = block_lines[header_idx + 1 :]
    content = _trim_issue_content("\n".join([header, *remaining]))
    if not content:
        return None

    suggestion = None
    for raw_line in remaining:
        stripped = raw_line.strip()
        if stripped.startswith(_SUGGESTION_STARTS):
            suggestion = _strip_suggestion(stripped)
            break
    return content, suggestion


def parse_reviewer_output(raw_output: str) -> ParsedReviewOutput:
    """Mine free-text reviewer output for issues, recommendations, and action items.

    Never raises: unclassifiable lines are dropped and oversized input is
    truncated.
    """
    if not isinstance(raw_output, str):
        raw_output = str(raw_output or "")
    if len(raw_output) > MAX_OUTPUT_LENGTH:
        LOGGER.debug("Truncating reviewer output from %d characters", len(raw_output))
        raw_output = raw_output[:MAX_OUTPUT_LENGTH]

    lines = raw_output.split("\n")[:MAX_LINES]
    issues: List[ReviewIssue] = []
    recommendations: List[str] = []
    action_items: List[str] = []
    processed: set[int] = set()
    next_id = 1

    has_separators = any(line.strip() == "---" for line in lines)
    if has_separators:
        for block in _split_blocks(lines, processed):
            if len(issues) >= MAX_ISSUES:
                break
            processed.update(index for index, _ in block)
            parsed = _parse_block(block)
            if parsed is None:
                continue
            content, suggestion = parsed
            analysis = analyze_issue_content(content)
            if not analysis.has_severity:
                continue
            issues.append(_build_issue(next_id, content, analysis, suggestion))
            next_id += 1

    in_verdict = False
    for index, raw_line in enumerate(lines):
        if len(issues) >= MAX_ISSUES:
            break
        if index in processed:
            continue

        line = raw_line.strip()
        if line == "---":
            in_verdict = False
            continue
        if not line or len(line) > MAX_LINE_LENGTH:
            continue
        if _VERDICT.search(line):
            in_verdict = True
            continue
        if in_verdict:
            if not _MARKDOWN_HEADING.match(line):
                continue
            in_verdict = False
        if _LEGEND_EXCLUSION.match(line):
            continue

        if not has_separators:
            candidate = _match_marker(line)
            content = _trim_issue_content(candidate) if candidate else ""
            if content:
                analysis = analyze_issue_content(content)
                if analysis.has_severity:
                    suggestion = None
                    if index + 1 < len(lines):
                        next_line = lines[index + 1].strip()
                        if len(next_line) < MAX_LIST_LINE_LENGTH and next_line.startswith(_SUGGESTION_STARTS):
                            suggestion = _strip_suggestion(next_line)
                    issues.append(_build_issue(next_id, content, analysis, suggestion))
                    next_id += 1

        if len(line) < MAX_LIST_LINE_LENGTH:
            if len(recommendations) < MAX_LIST_ENTRIES and _is_recommendation(line):
                recommendations.append(line)
            if len(action_items) < MAX_LIST_ENTRIES and _is_action_item(line):
                action_items.append(line)

    LOGGER.debug(
        "Parsed reviewer output: %d issue(s), %d recommendation(s), %d action item(s)",
        len(issues),
        len(recommendations),
        len(action_items),
    )
    return ParsedReviewOutput(issues=issues, recommendations=recommendations, action_items=action_items)


def _preview(raw: Any) -> str:
    text = raw if isinstance(raw, str) else json.dumps(raw, default=str)
    if len(text) > RAW_INPUT_PREVIEW:
        return text[:RAW_INPUT_PREVIEW] + "...[truncated]"
    return text


def parse_json_review_output(payload: str | Mapping[str, Any]) -> ParsedReviewOutput:
    """Validate structured reviewer output and assign sequential issue IDs."""
    if isinstance(payload, str):
        trimmed = payload.strip()
        if not trimmed:
            raise ReviewJsonParseError("Empty JSON input provided", raw_input=payload)
        try:
            data = json.loads(trimmed)
        except json.JSONDecodeError as error:
            raise ReviewJsonParseError(f"Invalid JSON syntax: {error}", raw_input=_preview(payload)) from error
    else:
        data = payload

    try:
        output = ReviewOutput.model_validate(data)
    except ValidationError as error:
        details = "; ".join(
            f"{'.'.join(str(part) for part in entry['loc'])}: {entry['msg']}" for entry in error.errors()
        )
        raise ReviewJsonParseError(
            f"JSON does not match expected schema: {details}", raw_input=_preview(payload)
        ) from error

    issues = [
        ReviewIssue(
            id=f"issue-{index}",
            severity=issue.severity,
            category=issue.category,
            content=issue.content,
            file=issue.file,
            line=issue.line,
            suggestion=issue.suggestion,
        )
        for index, issue in enumerate(output.issues, start=1)
    ]
    return ParsedReviewOutput(
        issues=issues,
        recommendations=list(output.recommendations),
        action_items=list(output.action_items),
    )


def try_parse_json_review_output(payload: str) -> Optional[ParsedReviewOutput]:
    """Like :func:`parse_json_review_output` but returns None on failure."""
    try:
        return parse_json_review_output(payload)
    except ReviewJsonParseError as error:
        LOGGER.debug("Reviewer output is not structured JSON: %s", error)
        return None


def parse_review_output(raw_output: str) -> ParsedReviewOutput:
    """Prefer structured JSON output and fall back to text mining."""
    stripped = raw_output.strip()
    if stripped.startswith("{"):
        parsed = try_parse_json_review_output(stripped)
        if parsed is not None:
            return parsed
    return parse_reviewer_output(raw_output)


def generate_review_summary(issues: Sequence[ReviewIssue], files_reviewed: int) -> ReviewSummary:
    """Count issues by severity and category."""
    summary = ReviewSummary(total_issues=len(issues), files_reviewed=files_reviewed)
    for issue in issues:
        if issue.severity == ReviewSeverity.CRITICAL:
            summary.critical_count += 1
        elif issue.severity == ReviewSeverity.MAJOR:
            summary.major_count += 1
        elif issue.severity == ReviewSeverity.MINOR:
            summary.minor_count += 1
        else:
            summary.info_count += 1
        summary.category_counts[issue.category] += 1
    return summary


def create_review_result(
    plan_id: str | int | None,
    plan_title: str | None,
    base_branch: str | None,
    changed_files: Sequence[str],
    raw_output: str,
) -> ReviewResult:
    """Build a bounded :class:`ReviewResult` from raw reviewer output."""
    safe_plan_id = (str(plan_id) if plan_id not in (None, "") else "unknown")[:MAX_PLAN_ID_LENGTH]
    safe_title = (plan_title or "Untitled Plan")[:MAX_PLAN_TITLE_LENGTH]
    safe_branch = (base_branch or "main")[:MAX_BRANCH_NAME_LENGTH]
    safe_files = list(changed_files)[:MAX_CHANGED_FILES]
    safe_raw = raw_output
    if len(safe_raw) > MAX_RAW_OUTPUT_LENGTH:
        safe_raw = safe_raw[:MAX_RAW_OUTPUT_LENGTH] + TRUNCATION_NOTICE

    parsed = parse_review_output(safe_raw)
    summary = generate_review_summary(parsed.issues, len(safe_files))
    return ReviewResult(
        plan_id=safe_plan_id,
        plan_title=safe_title,
        review_timestamp=datetime.now(timezone.utc).isoformat(),
        base_branch=safe_branch,
        changed_files=safe_files,
        summary=summary,
        issues=parsed.issues,
        raw_output=safe_raw,
        recommendations=parsed.recommendations,
        action_items=parsed.action_items,
    )
