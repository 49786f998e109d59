"""Breadth-first search for the next actionable plan in a dependency graph."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from ..errors import PlanDirectoryNotFoundError
from .schema import Plan, PlanStatus
from .store import dependencies_done, read_all_plans

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class TraversalResult:
    """Outcome of a dependency search."""

    plan_id: Optional[int]
    message: str

    @property
    def found(self) -> bool:
        return self.plan_id is not None


def get_direct_dependencies(plan_id: int, plans: Mapping[int, Plan]) -> List[int]:
    """Return explicit dependencies followed by child plans, excluding ``plan_id``.

    Children are plans whose ``parent`` points at ``plan_id``; they are listed
    in ascending ID order after the explicit dependencies.
    """
    plan = plans.get(plan_id)
    if plan is None:
        return []

    result: List[int] = []
    seen = {plan_id}
    for dep_id in plan.dependencies:
        if dep_id not in seen:
            seen.add(dep_id)
            result.append(dep_id)
    for child_id in sorted(pid for pid, candidate in plans.items() if candidate.parent == plan_id):
        if child_id not in seen:
            seen.add(child_id)
            result.append(child_id)
    return result


def is_ready(plan: Plan, plans: Mapping[int, Plan]) -> bool:
    """A plan is ready when in progress, or pending with tasks and done dependencies."""
    if plan.status == PlanStatus.IN_PROGRESS:
        return True
    if plan.status != PlanStatus.PENDING or not plan.tasks:
        return False
    return dependencies_done(plan, plans)


def find_ready_dependency(start_id: int, plans: Mapping[int, Plan]) -> TraversalResult:
    """Search ``plans`` level by level from ``start_id`` for a ready dependency."""
    start = plans.get(start_id)
    if start is None:
        return TraversalResult(None, f"Plan not found: {start_id}")

    visited = {start_id}
    queue: deque[int] = deque([start_id])
    while queue:
        current = queue.popleft()
        for dep_id in get_direct_dependencies(current, plans):
            if dep_id in visited:
                continue
            visited.add(dep_id)

            dep = plans.get(dep_id)
            if dep is None:
                LOGGER.debug("Plan %s references unknown plan %s", current, dep_id)
                continue
            if dep.status == PlanStatus.IN_PROGRESS:
                return _found(dep)
            if dep.status == PlanStatus.PENDING and is_ready(dep, plans):
                return _found(dep)
            # Done plans are never returned but their subtree may still hold work.
            queue.append(dep_id)

    return TraversalResult(
        None,
        f"No ready or pending dependencies found for plan {start_id} ({start.display_title})",
    )


def traverse_plan_dependencies(start_id: int, plan_directory: Path | str) -> TraversalResult:
    """Load ``plan_directory`` and find the next ready dependency of ``start_id``."""
    try:
        collection = read_all_plans(plan_directory)
    except PlanDirectoryNotFoundError:
        return TraversalResult(None, f"Directory not found: {plan_directory}")
    plans: Dict[int, Plan] = collection.plans
    return find_ready_dependency(start_id, plans)


def _found(plan: Plan) -> TraversalResult:
    LOGGER.debug("Selected plan %s (%s)", plan.id, plan.status.value)
    return TraversalResult(plan.id, f"Found ready dependency: {plan.id} - {plan.display_title}")
