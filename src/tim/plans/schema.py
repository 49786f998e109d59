"""Typed records describing plan files."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PlanStatus(str, Enum):
    """Lifecycle states for a plan."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    CANCELLED = "cancelled"
    DEFERRED = "deferred"


class PlanPriority(str, Enum):
    """Relative urgency used when choosing the next plan."""

    MAYBE = "maybe"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


PRIORITY_ORDER = {
    PlanPriority.URGENT: 4,
    PlanPriority.HIGH: 3,
    PlanPriority.MEDIUM: 2,
    PlanPriority.LOW: 1,
}


class RecordModel(BaseModel):
    """Base model that keeps unknown keys so files round-trip intact."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class PlanStep(RecordModel):
    """Single prompt-sized step of a task."""

    prompt: str = ""
    done: bool = False


class PlanTask(RecordModel):
    """Unit of work inside a plan."""

    title: str
    description: str = ""
    files: List[str] = Field(default_factory=list)
    steps: List[PlanStep] = Field(default_factory=list)
    done: bool = False


class Plan(RecordModel):
    """Plan document stored one per file."""

    id: Optional[int] = None
    title: str = ""
    goal: str = ""
    details: str = ""
    status: PlanStatus = PlanStatus.PENDING
    priority: Optional[PlanPriority] = None
    parent: Optional[int] = None
    dependencies: List[int] = Field(default_factory=list)
    tasks: List[PlanTask] = Field(default_factory=list)
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")
    filename: Optional[str] = Field(default=None, exclude=True)

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, value: object) -> object:
        return PlanStatus.PENDING if value in (None, "") else value

    @field_validator("dependencies", mode="before")
    @classmethod
    def _default_dependencies(cls, value: object) -> object:
        return [] if value is None else value

    @field_validator("tasks", mode="before")
    @classmethod
    def _default_tasks(cls, value: object) -> object:
        return [] if value is None else value

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _timestamp_to_text(cls, value: object) -> object:
        # Unquoted ISO timestamps arrive from YAML as datetime objects.
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        return value

    @property
    def display_title(self) -> str:
        return self.title or self.goal or f"Plan {self.id}"

    def to_document(self) -> dict:
        """Serialise to the on-disk mapping, dropping unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
