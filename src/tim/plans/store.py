"""Reading, writing, and selecting plan files on disk."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

import yaml
from pydantic import ValidationError

from ..errors import PlanDirectoryNotFoundError, PlanFileError, PlanNotFoundError
from ..utils import plan_slug
from .schema import PRIORITY_ORDER, Plan, PlanPriority, PlanStatus

LOGGER = logging.getLogger(__name__)

SCHEMA_COMMENT = (
    "# yaml-language-server: $schema="
    "https://raw.githubusercontent.com/dimfeld/llmutils/main/schema/tim-plan-schema.json"
)
PLAN_SUFFIXES: tuple[str, ...] = (".plan.md", ".yml", ".yaml")

_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)(.*)\Z", re.DOTALL)


@dataclass(slots=True)
class PlanCollection:
    """All plans found under a directory, keyed by numeric ID."""

    directory: Path
    plans: Dict[int, Plan] = field(default_factory=dict)
    duplicates: List[int] = field(default_factory=list)

    @property
    def max_numeric_id(self) -> int:
        return max(self.plans, default=0)

    def get(self, plan_id: int) -> Optional[Plan]:
        return self.plans.get(plan_id)

    def __contains__(self, plan_id: object) -> bool:
        return plan_id in self.plans

    def __iter__(self) -> Iterator[Plan]:
        return iter(self.plans.values())

    def __len__(self) -> int:
        return len(self.plans)


def is_plan_file(path: Path) -> bool:
    """Return True when ``path`` has one of the recognised plan suffixes."""
    name = path.name
    return any(name.endswith(suffix) for suffix in PLAN_SUFFIXES)


def _split_frontmatter(text: str) -> tuple[str, str | None]:
    match = _FRONTMATTER_RE.match(text)
    if match is None:
        return text, None
    return match.group(1), match.group(2)


def read_plan_file(path: Path | str) -> Plan:
    """Parse a YAML or frontmatter Markdown plan file."""
    plan_path = Path(path)
    try:
        text = plan_path.read_text(encoding="utf-8")
    except OSError as error:
        raise PlanFileError(f"Unable to read plan file {plan_path}: {error}", plan_path) from error

    yaml_text, body = _split_frontmatter(text)
    try:
        data = yaml.safe_load(yaml_text) or {}
    except yaml.YAMLError as error:
        raise PlanFileError(f"Invalid YAML in {plan_path}: {error}", plan_path) from error
    if not isinstance(data, dict):
        raise PlanFileError(f"Plan file {plan_path} must contain a mapping.", plan_path)

    if body is not None and body.strip():
        existing = str(data.get("details") or "").strip()
        data["details"] = f"{existing}\n\n{body.strip()}" if existing else body.strip()

    try:
        plan = Plan.model_validate(data)
    except ValidationError as error:
        raise PlanFileError(f"Plan file {plan_path} failed validation: {error}", plan_path) from error
    plan.filename = str(plan_path)
    return plan


def write_plan_file(path: Path | str, plan: Plan) -> Path:
    """Persist ``plan`` to ``path`` using the format implied by its suffix."""
    plan_path = Path(path)
    plan_path.parent.mkdir(parents=True, exist_ok=True)
    document = plan.to_document()

    if plan_path.name.endswith(".md"):
        details = str(document.pop("details", "") or "")
        frontmatter = yaml.safe_dump(document, sort_keys=False, allow_unicode=True)
        content = f"---\n{frontmatter}---\n"
        if details.strip():
            content += f"\n{details.strip()}\n"
    else:
        content = SCHEMA_COMMENT + "\n" + yaml.safe_dump(document, sort_keys=False, allow_unicode=True)

    plan_path.write_text(content, encoding="utf-8")
    LOGGER.debug("Wrote plan %s to %s", plan.id, plan_path)
    return plan_path


def plan_filename(plan: Plan) -> str:
    """Return the conventional ``<id>-<slug>.plan.md`` filename."""
    if plan.id is None:
        raise PlanFileError("Cannot derive a filename for a plan without an ID.")
    return f"{plan_slug(plan.id, plan.title or plan.goal)}.plan.md"


def _iter_plan_files(directory: Path) -> Iterable[Path]:
    for path in sorted(directory.rglob("*")):
        if path.is_file() and is_plan_file(path):
            yield path


def read_all_plans(directory: Path | str) -> PlanCollection:
    """Load every plan under ``directory``.

    Files that fail to parse are logged and skipped; plans without an ID are
    ignored. The first file seen for a given ID wins.
    """
    root = Path(directory)
    if not root.is_dir():
        raise PlanDirectoryNotFoundError(f"Directory not found: {root}")

    collection = PlanCollection(directory=root)
    for path in _iter_plan_files(root):
        try:
            plan = read_plan_file(path)
        except PlanFileError as error:
            LOGGER.warning("Skipping plan file %s: %s", path, error)
            continue
        if plan.id is None:
            LOGGER.debug("Ignoring plan without an ID: %s", path)
            continue
        if plan.id in collection.plans:
            LOGGER.warning(
                "Duplicate plan ID %s in %s (already loaded from %s)",
                plan.id,
                path,
                collection.plans[plan.id].filename,
            )
            collection.duplicates.append(plan.id)
            continue
        collection.plans[plan.id] = plan

    LOGGER.debug("Loaded %d plan(s) from %s", len(collection.plans), root)
    return collection


def dependencies_done(plan: Plan, plans: Mapping[int, Plan]) -> bool:
    """Return True when every explicit dependency of ``plan`` is done."""
    for dep_id in plan.dependencies:
        dep = plans.get(dep_id)
        if dep is None or dep.status != PlanStatus.DONE:
            return False
    return True


def find_next_plan(
    collection: PlanCollection,
    *,
    include_pending: bool = True,
    include_in_progress: bool = False,
) -> Optional[Plan]:
    """Pick the highest-priority plan that is ready to work on."""
    candidates: List[Plan] = []
    for plan in collection:
        if plan.priority == PlanPriority.MAYBE:
            continue
        if plan.status == PlanStatus.IN_PROGRESS and include_in_progress:
            candidates.append(plan)
        elif (
            plan.status == PlanStatus.PENDING
            and include_pending
            and dependencies_done(plan, collection.plans)
        ):
            candidates.append(plan)

    if not candidates:
        return None

    def sort_key(plan: Plan) -> tuple[int, int, int]:
        status_rank = 0
        if include_in_progress and include_pending and plan.status != PlanStatus.IN_PROGRESS:
            status_rank = 1
        priority_rank = PRIORITY_ORDER.get(plan.priority, 0) if plan.priority else 0
        return (status_rank, -priority_rank, plan.id or 0)

    return min(candidates, key=sort_key)


def resolve_plan(plan_arg: str, tasks_dir: Path | str) -> Plan:
    """Resolve a file path or numeric plan ID into a loaded plan."""
    candidate = Path(plan_arg)
    if candidate.is_file():
        return read_plan_file(candidate)

    if not plan_arg.strip().isdigit():
        raise PlanNotFoundError(f"Plan file not found: {plan_arg}")

    collection = read_all_plans(tasks_dir)
    plan = collection.get(int(plan_arg))
    if plan is None:
        raise PlanNotFoundError(f"No plan found with ID or file path: {plan_arg}")
    return plan
