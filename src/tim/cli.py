"""CLI commands for inspecting plans and formatting review output."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from .config import load_config, resolve_tasks_dir
from .errors import TimError
from .plans import (
    Plan,
    PlanStatus,
    find_next_plan,
    read_all_plans,
    resolve_plan,
    traverse_plan_dependencies,
)
from .review import (
    FormatterOptions,
    OutputFormat,
    Verbosity,
    create_formatter,
    create_review_result,
)

APP_HELP = "tim: manage project plans and review reports."

app = typer.Typer(help=APP_HELP, no_args_is_help=True)


def _load_config_or_exit(config: Optional[str]) -> Dict[str, Any]:
    try:
        return load_config(Path(config) if config else None)
    except TimError as error:
        typer.echo(f"Failed to load config: {error}", err=True)
        raise typer.Exit(code=1) from error


def _tasks_dir(config: Optional[str], tasks: Optional[str]) -> Path:
    config_data = _load_config_or_exit(config)
    return resolve_tasks_dir(config_data, Path(tasks) if tasks else None)


def _render_plan(plan: Plan) -> None:
    typer.echo(f"Plan {plan.id} [{plan.status.value}] {plan.display_title}")
    if plan.goal:
        typer.echo(f"Goal: {plan.goal}")
    if plan.parent is not None:
        typer.echo(f"Parent: {plan.parent}")
    if plan.dependencies:
        typer.echo(f"Depends on: {', '.join(str(dep) for dep in plan.dependencies)}")
    if plan.priority is not None:
        typer.echo(f"Priority: {plan.priority.value}")
    if not plan.tasks:
        typer.echo("No tasks.")
        return
    typer.echo("Tasks:")
    for index, task in enumerate(plan.tasks, start=1):
        marker = "x" if task.done else " "
        typer.echo(f"  [{marker}] {index}. {task.title}")


TASKS_OPTION_HELP = "Directory containing plan files (overrides paths.tasks)."
CONFIG_OPTION_HELP = "Path to the tim configuration file."


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Configure logging before any command runs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command("next-dependency")
def next_dependency(
    plan_id: int = typer.Argument(..., help="Plan whose dependency graph is searched."),
    tasks: Optional[str] = typer.Option(None, "--tasks", "-t", help=TASKS_OPTION_HELP),
    config: Optional[str] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Print the next ready dependency of PLAN_ID."""
    tasks_dir = _tasks_dir(config, tasks)
    result = traverse_plan_dependencies(plan_id, tasks_dir)
    typer.echo(result.message)


@app.command("next")
def next_plan(
    include_all: bool = typer.Option(
        False,
        "--all",
        "-a",
        help="Consider in-progress plans as well as pending ones.",
    ),
    tasks: Optional[str] = typer.Option(None, "--tasks", "-t", help=TASKS_OPTION_HELP),
    config: Optional[str] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Print the next plan that is ready to be worked on."""
    tasks_dir = _tasks_dir(config, tasks)
    try:
        collection = read_all_plans(tasks_dir)
    except TimError as error:
        typer.echo(str(error), err=True)
        raise typer.Exit(code=1) from error

    plan = find_next_plan(collection, include_pending=True, include_in_progress=include_all)
    if plan is None:
        typer.echo("No ready plans found.")
        return
    _render_plan(plan)


@app.command()
def show(
    plan: str = typer.Argument(..., help="Plan ID or path to a plan file."),
    tasks: Optional[str] = typer.Option(None, "--tasks", "-t", help=TASKS_OPTION_HELP),
    config: Optional[str] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Print a plan's status, goal, and tasks."""
    tasks_dir = _tasks_dir(config, tasks)
    try:
        loaded = resolve_plan(plan, tasks_dir)
    except TimError as error:
        typer.echo(str(error), err=True)
        raise typer.Exit(code=1) from error
    _render_plan(loaded)


@app.command("review-report")
def review_report(
    source: str = typer.Argument(..., help="File holding reviewer output, or '-' for stdin."),
    output_format: Optional[OutputFormat] = typer.Option(
        None, "--format", "-f", help="Report format (defaults to review.format)."
    ),
    verbosity: Optional[Verbosity] = typer.Option(
        None, "--verbosity", help="Amount of detail (defaults to review.verbosity)."
    ),
    plan: Optional[str] = typer.Option(None, "--plan", "-p", help="Plan ID or file the review covers."),
    base_branch: Optional[str] = typer.Option(None, "--base-branch", help="Branch the changes were compared to."),
    changed_file: List[str] = typer.Option([], "--changed-file", help="Changed file included in the review."),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write the report to this path."),
    color: bool = typer.Option(True, "--color/--no-color", help="Colorize terminal output."),
    tasks: Optional[str] = typer.Option(None, "--tasks", "-t", help=TASKS_OPTION_HELP),
    config: Optional[str] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Parse reviewer output and render it as a structured report."""
    config_data = _load_config_or_exit(config)
    review_cfg = config_data.get("review") or {}

    if source == "-":
        raw_output = sys.stdin.read()
    else:
        source_path = Path(source)
        if not source_path.is_file():
            typer.echo(f"Review output not found: {source_path}", err=True)
            raise typer.Exit(code=1)
        raw_output = source_path.read_text(encoding="utf-8")

    plan_id: Optional[str] = None
    plan_title: Optional[str] = None
    if plan:
        tasks_dir = resolve_tasks_dir(config_data, Path(tasks) if tasks else None)
        try:
            loaded = resolve_plan(plan, tasks_dir)
        except TimError as error:
            typer.echo(str(error), err=True)
            raise typer.Exit(code=1) from error
        plan_id = str(loaded.id)
        plan_title = loaded.display_title

    try:
        format_name = output_format or OutputFormat(review_cfg.get("format", "terminal"))
        level = verbosity or Verbosity(review_cfg.get("verbosity", "normal"))
    except ValueError as error:
        typer.echo(f"Invalid review settings in config: {error}", err=True)
        raise typer.Exit(code=1) from error

    result = create_review_result(
        plan_id,
        plan_title,
        base_branch or review_cfg.get("base_branch"),
        changed_file,
        raw_output,
    )
    formatter = create_formatter(format_name)
    options = FormatterOptions(
        verbosity=level,
        color_enabled=color and output is None,
    )
    try:
        rendered = formatter.format(result, options)
    except TimError as error:
        typer.echo(f"Failed to format review: {error}", err=True)
        raise typer.Exit(code=1) from error

    if output is None:
        typer.echo(rendered)
        return

    output_path = Path(output)
    if not output_path.suffix:
        output_path = output_path.with_suffix(formatter.file_extension)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(rendered, encoding="utf-8")
    typer.echo(f"Wrote {result.summary.total_issues} issue(s) to {output_path}")


def _status_label(status: PlanStatus) -> str:
    return status.value.replace("_", " ")


@app.command("list")
def list_plans(
    tasks: Optional[str] = typer.Option(None, "--tasks", "-t", help=TASKS_OPTION_HELP),
    config: Optional[str] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """List every plan in the plan directory."""
    tasks_dir = _tasks_dir(config, tasks)
    try:
        collection = read_all_plans(tasks_dir)
    except TimError as error:
        typer.echo(str(error), err=True)
        raise typer.Exit(code=1) from error

    if not len(collection):
        typer.echo("No plans found.")
        return
    for plan_id in sorted(collection.plans):
        plan = collection.plans[plan_id]
        typer.echo(f"{plan_id:>4}  {_status_label(plan.status):<11}  {plan.display_title}")


if __name__ == "__main__":
    app()
