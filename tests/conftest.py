from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

import pytest
import yaml

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


WritePlan = Callable[..., Path]


@pytest.fixture()
def tasks_dir(tmp_path: Path) -> Path:
    """Empty plan directory for a single test."""

    directory = tmp_path / "tasks"
    directory.mkdir()
    return directory


@pytest.fixture()
def write_plan(tasks_dir: Path) -> WritePlan:
    """Return a helper that writes ``<id>.yml`` plan files into ``tasks_dir``."""

    def _write(
        plan_id: int,
        *,
        status: str = "pending",
        dependencies: Optional[Iterable[int]] = None,
        parent: Optional[int] = None,
        tasks: int = 1,
        title: Optional[str] = None,
        priority: Optional[str] = None,
        **extra: Any,
    ) -> Path:
        document: dict[str, Any] = {
            "id": plan_id,
            "title": title or f"Plan {plan_id}",
            "goal": f"Goal for plan {plan_id}",
            "status": status,
            "tasks": [
                {"title": f"Task {index}", "description": f"Do thing {index}"}
                for index in range(1, tasks + 1)
            ],
        }
        if dependencies is not None:
            document["dependencies"] = list(dependencies)
        if parent is not None:
            document["parent"] = parent
        if priority is not None:
            document["priority"] = priority
        document.update(extra)

        path = tasks_dir / f"{plan_id}.yml"
        path.write_text(yaml.safe_dump(document, sort_keys=False), encoding="utf-8")
        return path

    return _write
