# cli.py
from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path

import click

from matrixci import settings
from matrixci.context import Source
from matrixci.git_facts import git
from matrixci.loader import load_workflow
from matrixci.matrix import expand_workflow
from matrixci.model import Status, Workflow
from matrixci.reporting import ConsoleReporter
from matrixci.trigger import TriggerDispatcher, TriggerEvent
from matrixci.ui.console import Console, set_console, get_console

WORKFLOW_PATTERNS = ("*_workflow.py", "*_workflow.yml", "*_workflow.yaml")


def find_workflow_files() -> list[Path]:
    """
    Find all workflow files in the current directory.

    Returns:
        List of Path objects for workflow files
    """
    current_dir = Path(".")

    # matrixci_workflow.py wins over any other candidate
    default_workflow = current_dir / "matrixci_workflow.py"
    if default_workflow.exists():
        return [default_workflow]

    workflow_files: set[Path] = set()
    for pattern in WORKFLOW_PATTERNS:
        workflow_files.update(current_dir.glob(pattern))
    return sorted(workflow_files)


def discover_workflow(workflow_arg: str | None) -> Path:
    """
    Discover workflow file from argument, MATRIXCI_WORKFLOW, or default.

    Raises:
        SystemExit: If workflow cannot be found or multiple workflows exist
    """
    console = get_console()
    workflow_arg = workflow_arg or settings.WORKFLOW

    if workflow_arg:
        workflow_path = Path(workflow_arg)
        if not workflow_path.exists():
            console.print_error(
                "Workflow file not found",
                f"Could not find workflow file: {workflow_arg}",
                suggestion="Create a workflow file or specify a different path:\n  matrixci run --workflow ci_workflow.yml",
            )
            sys.exit(1)
        return workflow_path

    workflow_files = find_workflow_files()

    if len(workflow_files) == 0:
        console.print_error(
            "No workflow file found",
            "Could not find any workflow files.",
            details=[
                "Looked for:",
                "  matrixci_workflow.py",
                *(f"  {p}" for p in WORKFLOW_PATTERNS),
            ],
            suggestion="Create a workflow file or specify one explicitly:\n  matrixci run --workflow ci_workflow.yml",
        )
        sys.exit(1)

    if len(workflow_files) > 1:
        file_list = "\n".join(f"  {f}" for f in workflow_files)
        console.print_error(
            "Multiple workflow files found",
            "Found multiple workflow files. Please specify which one to use:",
            details=[file_list],
            suggestion="Specify a workflow explicitly:\n  matrixci run --workflow matrixci_workflow.py",
        )
        sys.exit(1)

    return workflow_files[0]


def _load(ctx: click.Context, workflow_arg: str | None) -> Workflow:
    console = get_console()
    workflow_path = discover_workflow(workflow_arg)
    try:
        wf = load_workflow(workflow_path)
        expand_workflow(wf)
        return wf
    except Exception as e:
        console.print_error(
            "Failed to load workflow",
            f"Could not load workflow from {workflow_path}",
            details=[str(e)],
        )
        if ctx.obj.get("debug", False):
            console.print_exception(e)
        sys.exit(1)


def _local_source(source_dir: str) -> Source:
    """Describe the local checkout (or plain directory) as the event's source."""
    path = Path(source_dir).resolve()
    if not git.is_repo(path):
        return Source(url=str(path))
    root = git.repo_root(path)
    try:
        return Source(url=str(root), ref=git.current_ref(root), sha=git.head_sha(root))
    except subprocess.CalledProcessError:
        # repository without commits yet
        return Source(url=str(root))


def _dispatch_and_wait(workflow: Workflow, event: TriggerEvent, workers: int | None) -> None:
    console = get_console()
    dispatcher = TriggerDispatcher(workflow, reporter=ConsoleReporter(), max_workers=workers)
    dispatch = None
    try:
        dispatch = dispatcher.handle(event)
        if dispatch.context is None:
            console.print_info(f"No run started: workflow '{workflow.name}' does not trigger on "
                               f"{event.name}" + (f" ({event.action})" if event.action else ""))
            return

        result = dispatcher.wait(dispatch.context.run_id)
    except KeyboardInterrupt:
        if dispatch is not None and dispatch.context is not None:
            dispatcher.cancel(dispatch.context.run_id)
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    finally:
        dispatcher.shutdown(wait=True)

    if result.status is not Status.SUCCEEDED:
        sys.exit(1)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """MatrixCI — build-matrix CI orchestrator."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.option("--workflow", default=None, help="Workflow file (.py, .yml or .yaml)")
@click.option("--event", "event_name", default="pull_request", show_default=True, help="Event type to simulate")
@click.option("--action", default="opened", show_default=True, help="Event activity type")
@click.option("--source", "source_dir", default=".", show_default=True, help="Directory the checkout action fetches")
@click.option("--workers", default=None, type=int, help="Number of parallel jobs")
@click.pass_context
def run(ctx, workflow, event_name, action, source_dir, workers):
    """Run a workflow against the local checkout."""
    wf = _load(ctx, workflow)
    event = TriggerEvent(name=event_name, action=action or None, source=_local_source(source_dir))
    get_console().print_debug(f"Source: {event.source}")
    _dispatch_and_wait(wf, event, workers)


@cli.command()
@click.option("--workflow", default=None, help="Workflow file (.py, .yml or .yaml)")
@click.option("--event-file", required=True, type=click.Path(exists=True, dir_okay=False), help="GitHub event payload (JSON)")
@click.option("--event", "event_name", default="pull_request", show_default=True, help="Event type of the payload")
@click.option("--workers", default=None, type=int, help="Number of parallel jobs")
@click.pass_context
def dispatch(ctx, workflow, event_file, event_name, workers):
    """Run a workflow for a GitHub event payload file."""
    console = get_console()
    wf = _load(ctx, workflow)
    try:
        payload = json.loads(Path(event_file).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print_error("Invalid event payload", f"Could not parse {event_file}", details=[str(e)])
        sys.exit(1)

    event = TriggerEvent.from_github(event_name, payload)
    _dispatch_and_wait(wf, event, workers)


@cli.command()
@click.option("--workflow", default=None, help="Workflow file (.py, .yml or .yaml)")
@click.pass_context
def plan(ctx, workflow):
    """Print the expanded job instances of a workflow."""
    console = get_console()
    wf = _load(ctx, workflow)
    jobs = expand_workflow(wf)
    triggers = ", ".join(wf.on)
    console.print_header(f"{wf.name} (on: {triggers})")
    console.print_plan(jobs)


@cli.command()
@click.option("--workflow", default=None, help="Workflow file (.py, .yml or .yaml)")
@click.option("--host", default=settings.HOST, show_default=True)
@click.option("--port", default=settings.PORT, type=int, show_default=True)
@click.option("--workers", default=None, type=int, help="Number of parallel jobs per run")
@click.pass_context
def serve(ctx, workflow, host, port, workers):
    """Serve the GitHub webhook endpoint that triggers runs."""
    import uvicorn
    from matrixci.server import create_app

    wf = _load(ctx, workflow)
    app = create_app(wf, reporter=ConsoleReporter(), max_workers=workers)
    uvicorn.run(app, host=host, port=port, log_level="debug" if ctx.obj.get("debug") else "info")


if __name__ == "__main__":
    cli()
