from __future__ import annotations

import os
import signal
import subprocess
import time
from typing import List, Optional

from . import settings
from .actions import resolve_action
from .context import RunContext
from .environment import Environment, EnvironmentProvider
from .errors import ProvisionError, StepCanceled, StepFailure
from .model import JobResult, JobRun, Status, Step, StepResult
from .reporting import Reporter
from .ui.console import get_console


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

def _kill(proc: subprocess.Popen) -> None:
    """Kill the command and anything it spawned."""
    if os.name == "posix":
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
    else:
        proc.kill()


def _run_command(
    job: JobRun,
    step: Step,
    env: Environment,
    ctx: RunContext,
    deadline: float,
    poll_interval: float,
) -> str:
    cwd = (env.workspace / (step.cwd or ".")).resolve()
    if not cwd.exists():
        raise StepFailure(job=job.name, step=step.name, cmd=step.run or "", exit_code=1,
                          reason=f"working directory not found: {cwd}")

    proc_env = os.environ.copy()
    proc_env.update(env.variables)
    proc_env.update(job.env)
    proc_env.update(step.env)

    try:
        proc = subprocess.Popen(
            step.run,
            shell=True,
            cwd=str(cwd),
            env=proc_env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            start_new_session=(os.name == "posix"),
        )
    except OSError as e:
        raise StepFailure(job=job.name, step=step.name, cmd=step.run or "", exit_code=127, reason=str(e)) from e

    # communicate() may be retried after a timeout; poll so cancellation and
    # the job deadline are noticed while the command runs
    while True:
        try:
            output, _ = proc.communicate(timeout=poll_interval)
            break
        except subprocess.TimeoutExpired:
            if ctx.cancelled:
                _kill(proc)
                proc.communicate()
                raise StepCanceled(job=job.name, step=step.name)
            if time.monotonic() >= deadline:
                _kill(proc)
                output, _ = proc.communicate()
                raise StepFailure(
                    job=job.name,
                    step=step.name,
                    cmd=step.run or "",
                    exit_code=proc.returncode,
                    output=(output or "")[-4000:],
                    reason=f"timed out after {job.timeout_minutes:g} minutes",
                )

    if proc.returncode != 0:
        raise StepFailure(
            job=job.name,
            step=step.name,
            cmd=step.run or "",
            exit_code=proc.returncode,
            output=(output or "")[-4000:],
        )
    return output or ""


def _run_step(
    job: JobRun,
    step: Step,
    env: Environment,
    ctx: RunContext,
    deadline: float,
    poll_interval: float,
) -> str:
    if step.uses:
        action = resolve_action(step.uses)
        if action is None:
            raise StepFailure(job=job.name, step=step.name, cmd=step.uses, exit_code=1,
                              reason=f"unknown action '{step.uses}'")
        return action(job, step, env, ctx, deadline)
    return _run_command(job, step, env, ctx, deadline, poll_interval)


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def run_job(
    job: JobRun,
    ctx: RunContext,
    provider: EnvironmentProvider,
    reporter: Optional[Reporter] = None,
    poll_interval: Optional[float] = None,
) -> JobResult:
    """
    Run one job instance to completion or first failure.

    The job's environment is acquired for the whole run and torn down on
    every exit path. Steps run strictly in order; the first failing step
    ends the job as FAILED and the remaining steps never start.

    Never raises: every failure, including provisioning errors, comes back
    as a JobResult with a terminal status.
    """
    console = get_console()
    reporter = reporter or Reporter()
    if poll_interval is None:
        poll_interval = settings.POLL_INTERVAL

    started = time.monotonic()
    deadline = started + job.timeout_minutes * 60
    steps: List[StepResult] = []
    error: Optional[str] = None

    if job.status is not Status.PENDING:
        # a JobRun is single-use; its environment is never provisioned twice
        result = JobResult(
            name=job.name,
            environment=job.environment,
            status=Status.FAILED,
            error=f"job already ran (status: {job.status.value})",
            duration=0.0,
        )
        reporter.job_finished(result)
        return result

    try:
        if ctx.cancelled:
            raise StepCanceled(job=job.name, step="(not started)")

        with provider.acquire(job.environment, ctx) as env:
            job.transition(Status.RUNNING)
            reporter.job_started(job)

            for step in job.steps:
                if ctx.cancelled:
                    raise StepCanceled(job=job.name, step=step.name)
                console.print_step(job.name, step.name)
                try:
                    output = _run_step(job, step, env, ctx, deadline, poll_interval)
                except StepFailure as e:
                    console.print_step_output(job.name, e.output)
                    steps.append(StepResult(step.name, Status.FAILED, e.exit_code, e.output, str(e)))
                    raise
                except StepCanceled as e:
                    steps.append(StepResult(step.name, Status.CANCELED, error=str(e)))
                    raise
                console.print_step_output(job.name, output)
                steps.append(StepResult(step.name, Status.SUCCEEDED, 0, output))
        status = Status.SUCCEEDED
    except StepCanceled as e:
        status = Status.CANCELED
        error = str(e)
    except (StepFailure, ProvisionError) as e:
        status = Status.FAILED
        error = str(e)
    except Exception as e:
        # Anything unexpected (action bugs, OS errors) is still just a failed job.
        console.print_exception(e)
        status = Status.FAILED
        error = f"{type(e).__name__}: {e}"

    if not job.status.terminal:
        job.transition(status)
    result = JobResult(
        name=job.name,
        environment=job.environment,
        status=status,
        steps=steps,
        error=error,
        duration=time.monotonic() - started,
    )
    reporter.job_finished(result)
    return result
