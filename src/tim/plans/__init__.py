"""Plan documents, storage, and dependency traversal."""

from .dependency_traversal import (
    TraversalResult,
    find_ready_dependency,
    get_direct_dependencies,
    traverse_plan_dependencies,
)
from .schema import Plan, PlanPriority, PlanStatus, PlanStep, PlanTask
from .store import (
    PlanCollection,
    find_next_plan,
    plan_filename,
    read_all_plans,
    read_plan_file,
    resolve_plan,
    write_plan_file,
)

__all__ = [
    "Plan",
    "PlanCollection",
    "PlanPriority",
    "PlanStatus",
    "PlanStep",
    "PlanTask",
    "TraversalResult",
    "find_next_plan",
    "find_ready_dependency",
    "get_direct_dependencies",
    "plan_filename",
    "read_all_plans",
    "read_plan_file",
    "resolve_plan",
    "traverse_plan_dependencies",
    "write_plan_file",
]
