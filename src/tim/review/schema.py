"""Typed records for parsed review output."""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ReviewSeverity(str, Enum):
    """How urgent a review finding is."""

    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"
    INFO = "info"


class ReviewCategory(str, Enum):
    """Broad classification of a review finding."""

    SECURITY = "security"
    PERFORMANCE = "performance"
    BUG = "bug"
    STYLE = "style"
    COMPLIANCE = "compliance"
    TESTING = "testing"
    OTHER = "other"


SEVERITY_ORDER: tuple[ReviewSeverity, ...] = (
    ReviewSeverity.CRITICAL,
    ReviewSeverity.MAJOR,
    ReviewSeverity.MINOR,
    ReviewSeverity.INFO,
)


class ReviewModel(BaseModel):
    """Base model using camelCase aliases for JSON payloads."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True, use_enum_values=False)


class ReviewIssue(ReviewModel):
    """Single finding extracted from reviewer output."""

    id: str
    severity: ReviewSeverity = ReviewSeverity.INFO
    category: ReviewCategory = ReviewCategory.OTHER
    content: str
    file: Optional[str] = None
    line: Optional[Union[int, str]] = None
    suggestion: Optional[str] = None


def _empty_category_counts() -> Dict[ReviewCategory, int]:
    return {category: 0 for category in ReviewCategory}


class ReviewSummary(ReviewModel):
    """Aggregate counts over a set of issues."""

    total_issues: int = Field(default=0, alias="totalIssues")
    critical_count: int = Field(default=0, alias="criticalCount")
    major_count: int = Field(default=0, alias="majorCount")
    minor_count: int = Field(default=0, alias="minorCount")
    info_count: int = Field(default=0, alias="infoCount")
    category_counts: Dict[ReviewCategory, int] = Field(
        default_factory=_empty_category_counts, alias="categoryCounts"
    )
    files_reviewed: int = Field(default=0, alias="filesReviewed")

    def count_for(self, severity: ReviewSeverity) -> int:
        return {
            ReviewSeverity.CRITICAL: self.critical_count,
            ReviewSeverity.MAJOR: self.major_count,
            ReviewSeverity.MINOR: self.minor_count,
            ReviewSeverity.INFO: self.info_count,
        }[severity]


class ReviewResult(ReviewModel):
    """Complete review report ready for formatting."""

    plan_id: str = Field(alias="planId")
    plan_title: str = Field(alias="planTitle")
    review_timestamp: str = Field(alias="reviewTimestamp")
    base_branch: str = Field(alias="baseBranch")
    changed_files: List[str] = Field(default_factory=list, alias="changedFiles")
    summary: ReviewSummary = Field(default_factory=ReviewSummary)
    issues: List[ReviewIssue] = Field(default_factory=list)
    raw_output: str = Field(default="", alias="rawOutput")
    recommendations: List[str] = Field(default_factory=list)
    action_items: List[str] = Field(default_factory=list, alias="actionItems")


class ReviewOutputIssue(BaseModel):
    """Issue shape accepted from structured executor output."""

    model_config = ConfigDict(extra="ignore")

    severity: ReviewSeverity
    category: ReviewCategory
    content: str = Field(min_length=1)
    file: Optional[str] = None
    line: Optional[Union[int, str]] = None
    suggestion: Optional[str] = None


class ReviewOutput(BaseModel):
    """Structured JSON payload an executor may return instead of prose."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    issues: List[ReviewOutputIssue] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    action_items: List[str] = Field(default_factory=list, alias="actionItems")


class ParsedReviewOutput(BaseModel):
    """Issues, recommendations, and action items extracted from one review."""

    model_config = ConfigDict(populate_by_name=True)

    issues: List[ReviewIssue] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    action_items: List[str] = Field(default_factory=list, alias="actionItems")
