from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, List, Optional

from . import settings
from .context import RunContext
from .environment import EnvironmentProvider, LocalEnvironmentProvider
from .executor import run_job
from .matrix import expand_workflow
from .model import JobResult, RunResult, Status, Workflow
from .reporting import Reporter
from .ui.console import get_console


def aggregate(statuses: Iterable[Status]) -> Status:
    """
    AND-reduce terminal job states into a run status.

    SUCCEEDED only if every job SUCCEEDED; any other terminal state fails
    the run. There is no quorum: one failure out of many is a failed run.
    """
    statuses = list(statuses)
    pending = [s for s in statuses if not s.terminal]
    if pending:
        raise ValueError(f"Cannot aggregate non-terminal job states: {[s.value for s in pending]}")
    if all(s is Status.SUCCEEDED for s in statuses):
        return Status.SUCCEEDED
    return Status.FAILED


def run_workflow(
    workflow: Workflow,
    ctx: RunContext,
    provider: Optional[EnvironmentProvider] = None,
    reporter: Optional[Reporter] = None,
    max_workers: Optional[int] = None,
) -> RunResult:
    """
    Expand a workflow and run every job instance in parallel.

    - Each job instance is a unit of work submitted to a thread pool.
    - Jobs share nothing but the read-only RunContext.
    - Blocks until every job reached a terminal state, then aggregates.

    A cancelled run (superseded by a newer event) ends CANCELED and its partial
    job results are not aggregated.

    Raises:
        WorkflowError: If the workflow cannot be expanded
    """
    console = get_console()
    provider = provider or LocalEnvironmentProvider()
    reporter = reporter or Reporter()

    job_runs = expand_workflow(workflow)
    console.print_run_started(
        workflow=workflow.name,
        event=ctx.event_name,
        run_id=ctx.run_id,
        job_count=len(job_runs),
    )

    if max_workers is None:
        max_workers = settings.MAX_WORKERS or max(1, len(job_runs))

    by_name: Dict[str, JobResult] = {}
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=f"matrixci-{ctx.run_id}") as pool:
        futures = {pool.submit(run_job, job, ctx, provider, reporter): job.name for job in job_runs}
        for future in as_completed(futures):
            result = future.result()
            by_name[result.name] = result

    # report in declaration order, not completion order
    results: List[JobResult] = [by_name[job.name] for job in job_runs]

    if ctx.cancelled:
        status = Status.CANCELED
    else:
        status = aggregate(r.status for r in results)

    run_result = RunResult(run_id=ctx.run_id, status=status, jobs=results)
    reporter.run_finished(run_result)
    return run_result
