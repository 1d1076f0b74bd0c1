# actions.py
# Built-in reusable actions for `uses:` steps.
from __future__ import annotations

import shutil
import subprocess
import time
from pathlib import Path
from typing import Callable, Dict, Optional

from .context import RunContext
from .environment import Environment
from .errors import StepCanceled, StepFailure
from .git_facts import git
from .model import JobRun, Step

# (job, step, environment, context, deadline) -> output text; raises StepFailure on failure
Action = Callable[[JobRun, Step, Environment, RunContext, float], str]


def _remaining(job: JobRun, step: Step, ctx: RunContext, deadline: float, cmd: str) -> float:
    """Seconds left before the job deadline; raises when the step must not start."""
    if ctx.cancelled:
        raise StepCanceled(job=job.name, step=step.name)
    left = deadline - time.monotonic()
    if left <= 0:
        raise StepFailure(job=job.name, step=step.name, cmd=cmd, exit_code=1,
                          reason=f"timed out after {job.timeout_minutes:g} minutes")
    return left


def checkout(job: JobRun, step: Step, env: Environment, ctx: RunContext, deadline: float) -> str:
    """
    Fetch the triggering revision into the job's workspace.

    Git sources (remote URLs or local repositories) are cloned and pinned to
    the event's SHA, falling back to its ref. A plain local directory is
    copied as-is.

    Each git call is bounded by the job deadline. Cancellation is noticed
    between git calls, not while one is running.
    """
    source = ctx.source
    dest = (env.workspace / str(step.with_.get("path", "."))).resolve()
    revision = step.with_.get("ref") or source.revision
    cmd = f"checkout {source.url}" + (f"@{revision}" if revision else "")

    try:
        local = Path(source.url)
        if local.is_dir() and not git.is_repo(local):
            shutil.copytree(local, dest, dirs_exist_ok=True)
            return f"Copied {local} into {dest}\n"

        dest.mkdir(parents=True, exist_ok=True)
        git.clone(source.url, dest, timeout=_remaining(job, step, ctx, deadline, cmd))
        if revision:
            git.checkout(str(revision), cwd=dest, timeout=_remaining(job, step, ctx, deadline, cmd))
        return f"Checked out {source.url} at {revision or 'default branch'} into {dest}\n"
    except subprocess.TimeoutExpired as e:
        raise StepFailure(
            job=job.name,
            step=step.name,
            cmd=cmd,
            exit_code=1,
            reason=f"timed out after {job.timeout_minutes:g} minutes",
        ) from e
    except subprocess.CalledProcessError as e:
        raise StepFailure(
            job=job.name,
            step=step.name,
            cmd=cmd,
            exit_code=e.returncode,
            output=(e.stderr or "")[-4000:],
        ) from e
    except OSError as e:
        # covers a missing git binary and copy failures
        raise StepFailure(job=job.name, step=step.name, cmd=cmd, exit_code=1, reason=str(e)) from e


ACTIONS: Dict[str, Action] = {
    "actions/checkout": checkout,
}


def resolve_action(uses: str) -> Optional[Action]:
    """Look up an action by reference, ignoring the @version suffix."""
    name = uses.split("@", 1)[0].strip().lower()
    return ACTIONS.get(name)
