from __future__ import annotations

import textwrap

import pytest
import yaml

from tim.errors import PlanDirectoryNotFoundError, PlanFileError, PlanNotFoundError
from tim.plans import (
    Plan,
    PlanPriority,
    PlanStatus,
    find_next_plan,
    plan_filename,
    read_all_plans,
    read_plan_file,
    resolve_plan,
    write_plan_file,
)


def test_read_markdown_plan_merges_body_into_details(tasks_dir) -> None:
    path = tasks_dir / "7-add-cache.plan.md"
    path.write_text(
        textwrap.dedent(
            """
            ---
            id: 7
            title: Add cache
            goal: Cache expensive lookups
            details: Existing notes.
            status: in_progress
            createdAt: "2025-01-02T03:04:05Z"
            tasks:
              - title: Wire cache
                description: Add the decorator
                steps:
                  - prompt: Write it
            customField: keep me
            ---

            # Background

            Lookups are slow.
            """
        ).lstrip(),
        encoding="utf-8",
    )

    plan = read_plan_file(path)

    assert plan.id == 7
    assert plan.status == PlanStatus.IN_PROGRESS
    assert plan.created_at == "2025-01-02T03:04:05Z"
    assert plan.details.startswith("Existing notes.")
    assert "Lookups are slow." in plan.details
    assert plan.tasks[0].steps[0].prompt == "Write it"
    assert plan.filename == str(path)
    assert plan.model_extra == {"customField": "keep me"}


def test_read_yaml_plan_with_schema_comment(tasks_dir) -> None:
    path = tasks_dir / "3.yml"
    path.write_text(
        "# yaml-language-server: $schema=https://example.com/schema.json\n"
        "id: 3\ntitle: Plain\ndependencies:\nupdatedAt: 2025-02-03T04:05:06Z\n",
        encoding="utf-8",
    )

    plan = read_plan_file(path)

    assert plan.id == 3
    assert plan.status == PlanStatus.PENDING
    assert plan.dependencies == []
    assert plan.tasks == []
    assert plan.updated_at.startswith("2025-02-03T04:05:06")


def test_invalid_plan_file_raises(tasks_dir) -> None:
    path = tasks_dir / "bad.yml"
    path.write_text("id: [unclosed\n", encoding="utf-8")

    with pytest.raises(PlanFileError) as excinfo:
        read_plan_file(path)
    assert excinfo.value.path == path


def test_write_plan_round_trips_both_formats(tasks_dir) -> None:
    plan = Plan(
        id=4,
        title="Round trip",
        goal="Keep data",
        details="Some details",
        tasks=[{"title": "One"}],
        dependencies=[1],
        created_at="2025-01-01T00:00:00Z",
    )

    md_path = write_plan_file(tasks_dir / "nested" / plan_filename(plan), plan)
    yml_path = write_plan_file(tasks_dir / "4.yml", plan)

    assert md_path.name == "4-round-trip.plan.md"
    assert yml_path.read_text(encoding="utf-8").startswith("# yaml-language-server:")
    frontmatter = md_path.read_text(encoding="utf-8").split("---")[1]
    assert "details" not in yaml.safe_load(frontmatter)
    assert "filename" not in frontmatter

    for path in (md_path, yml_path):
        loaded = read_plan_file(path)
        assert loaded.id == 4
        assert loaded.details == "Some details"
        assert loaded.dependencies == [1]
        assert loaded.created_at == "2025-01-01T00:00:00Z"
        assert loaded.tasks[0].title == "One"


def test_read_all_plans_skips_invalid_and_duplicate_files(tasks_dir, write_plan, caplog) -> None:
    write_plan(1)
    write_plan(5, status="done")
    (tasks_dir / "broken.yml").write_text("id: [oops\n", encoding="utf-8")
    (tasks_dir / "no-id.yml").write_text("title: Orphan\n", encoding="utf-8")
    (tasks_dir / "notes.txt").write_text("id: 9\n", encoding="utf-8")
    sub = tasks_dir / "sub"
    sub.mkdir()
    (sub / "5-dup.plan.md").write_text("---\nid: 5\ntitle: Dup\n---\n", encoding="utf-8")

    with caplog.at_level("WARNING"):
        collection = read_all_plans(tasks_dir)

    assert sorted(collection.plans) == [1, 5]
    assert collection.max_numeric_id == 5
    assert collection.duplicates == [5]
    assert collection.plans[5].status == PlanStatus.DONE
    assert "Skipping plan file" in caplog.text


def test_read_all_plans_missing_directory(tmp_path) -> None:
    with pytest.raises(PlanDirectoryNotFoundError):
        read_all_plans(tmp_path / "missing")


def test_find_next_plan_orders_by_priority_then_id(tasks_dir, write_plan) -> None:
    write_plan(1, priority="low")
    write_plan(2, priority="high")
    write_plan(3, priority="high")
    write_plan(4, priority="urgent", dependencies=[1])
    write_plan(5, priority="maybe")

    plan = find_next_plan(read_all_plans(tasks_dir))

    assert plan is not None
    assert plan.id == 2


def test_find_next_plan_prefers_in_progress_when_requested(tasks_dir, write_plan) -> None:
    write_plan(1, priority="urgent")
    write_plan(2, status="in_progress", priority="low")
    collection = read_all_plans(tasks_dir)

    assert find_next_plan(collection).id == 1
    assert find_next_plan(collection, include_in_progress=True).id == 2
    assert (
        find_next_plan(collection, include_pending=False, include_in_progress=True).id == 2
    )


def test_find_next_plan_none_when_everything_blocked(tasks_dir, write_plan) -> None:
    write_plan(1, dependencies=[2])
    write_plan(2, status="in_progress")
    write_plan(3, status="done")

    assert find_next_plan(read_all_plans(tasks_dir)) is None


def test_resolve_plan_by_id_and_path(tasks_dir, write_plan) -> None:
    path = write_plan(8, priority="medium")

    assert resolve_plan("8", tasks_dir).priority == PlanPriority.MEDIUM
    assert resolve_plan(str(path), tasks_dir).id == 8

    with pytest.raises(PlanNotFoundError):
        resolve_plan("99", tasks_dir)
    with pytest.raises(PlanNotFoundError):
        resolve_plan("missing.plan.md", tasks_dir)


def test_read_all_plans_keeps_cancelled_and_deferred(tasks_dir, write_plan) -> None:
    write_plan(5, status="deferred")
    write_plan(6, status="cancelled")
    write_plan(7, dependencies=[6])

    collection = read_all_plans(tasks_dir)

    assert collection.plans[5].status == PlanStatus.DEFERRED
    assert collection.plans[6].status == PlanStatus.CANCELLED
    assert find_next_plan(collection) is None
