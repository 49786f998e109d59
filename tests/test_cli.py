from __future__ import annotations

import json
import textwrap

from typer.testing import CliRunner

from tim.cli import app

REVIEW_OUTPUT = textwrap.dedent(
    """
    - SQL injection in src/db.py:10
      Suggestion: Use parameters.
    - Crash when list is empty
    - Consider caching results
    """
).strip()


def test_next_dependency_reports_ready_plan(tasks_dir, write_plan) -> None:
    write_plan(1, dependencies=[2, 3])
    write_plan(2, status="done")
    write_plan(3, title="Build parser")

    result = CliRunner().invoke(app, ["next-dependency", "1", "--tasks", str(tasks_dir)])

    assert result.exit_code == 0, result.output
    assert "Found ready dependency: 3 - Build parser" in result.output


def test_next_dependency_missing_directory_still_exits_zero(tmp_path) -> None:
    result = CliRunner().invoke(app, ["next-dependency", "1", "--tasks", str(tmp_path / "nope")])

    assert result.exit_code == 0
    assert "Directory not found" in result.output


def test_next_dependency_uses_config_tasks_path(tmp_path, write_plan, tasks_dir) -> None:
    write_plan(1, dependencies=[2])
    write_plan(2, status="in_progress")
    config_path = tmp_path / ".tim.yml"
    config_path.write_text("paths:\n  tasks: tasks\n", encoding="utf-8")

    result = CliRunner().invoke(app, ["next-dependency", "1", "--config", str(config_path)])

    assert result.exit_code == 0, result.output
    assert "Found ready dependency: 2" in result.output


def test_bad_config_exits_with_error(tmp_path) -> None:
    config_path = tmp_path / ".tim.yml"
    config_path.write_text("- not a mapping\n", encoding="utf-8")

    result = CliRunner().invoke(app, ["next-dependency", "1", "--config", str(config_path)])

    assert result.exit_code == 1
    assert "Failed to load config" in result.output


def test_next_and_show(tasks_dir, write_plan) -> None:
    write_plan(1, priority="low")
    write_plan(2, status="in_progress", title="Active work", tasks=2)
    runner = CliRunner()

    pending = runner.invoke(app, ["next", "--tasks", str(tasks_dir)])
    everything = runner.invoke(app, ["next", "--all", "--tasks", str(tasks_dir)])
    shown = runner.invoke(app, ["show", "2", "--tasks", str(tasks_dir)])
    missing = runner.invoke(app, ["show", "99", "--tasks", str(tasks_dir)])

    assert "Plan 1 [pending]" in pending.output
    assert "Plan 2 [in_progress] Active work" in everything.output
    assert "[ ] 2. Task 2" in shown.output
    assert "Goal: Goal for plan 2" in shown.output
    assert missing.exit_code == 1
    assert "No plan found" in missing.output


def test_list_plans(tasks_dir, write_plan) -> None:
    write_plan(3, status="done")
    write_plan(1)

    result = CliRunner().invoke(app, ["list", "--tasks", str(tasks_dir)])

    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert "Plan 1" in lines[0]
    assert "done" in lines[1]


def test_review_report_writes_json_with_extension(tmp_path, tasks_dir, write_plan) -> None:
    write_plan(5, title="Secure the DB")
    source = tmp_path / "review.txt"
    source.write_text(REVIEW_OUTPUT, encoding="utf-8")
    target = tmp_path / "out" / "report"

    result = CliRunner().invoke(
        app,
        [
            "review-report",
            str(source),
            "--format",
            "json",
            "--verbosity",
            "detailed",
            "--plan",
            "5",
            "--tasks",
            str(tasks_dir),
            "--changed-file",
            "src/db.py",
            "--output",
            str(target),
        ],
    )

    assert result.exit_code == 0, result.output
    written = tmp_path / "out" / "report.json"
    payload = json.loads(written.read_text(encoding="utf-8"))
    assert payload["planId"] == "5"
    assert payload["planTitle"] == "Secure the DB"
    assert payload["changedFiles"] == ["src/db.py"]
    assert [issue["severity"] for issue in payload["issues"]] == ["critical", "major"]
    assert payload["issues"][0]["suggestion"] == "Use parameters."
    assert payload["recommendations"] == ["Suggestion: Use parameters.", "- Consider caching results"]
    assert "Wrote 2 issue(s)" in result.output


def test_review_report_from_stdin_without_color(tmp_path) -> None:
    result = CliRunner().invoke(
        app,
        ["review-report", "-", "--format", "terminal", "--no-color"],
        input=REVIEW_OUTPUT,
    )

    assert result.exit_code == 0, result.output
    assert "Code Review Report" in result.output
    assert "Plan: unknown - Untitled Plan" in result.output
    assert "\x1b[" not in result.output


def test_review_report_missing_source(tmp_path) -> None:
    result = CliRunner().invoke(app, ["review-report", str(tmp_path / "absent.txt")])

    assert result.exit_code == 1
    assert "Review output not found" in result.output
