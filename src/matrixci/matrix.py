from __future__ import annotations

import itertools
import re
from dataclasses import replace
from typing import Any, Dict, List

from .errors import WorkflowError
from .model import Job, JobRun, Step, Workflow

_MATRIX_EXPR = re.compile(r"\$\{\{\s*matrix\.([A-Za-z0-9_-]+)\s*\}\}")


def _fmt(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _substitute(value: Any, combo: Dict[str, Any], job_name: str) -> Any:
    """Replace ${{ matrix.<key> }} expressions, recursing into dicts and lists."""
    if isinstance(value, str):
        def repl(m: re.Match) -> str:
            key = m.group(1)
            if key not in combo:
                raise WorkflowError(
                    f"Job '{job_name}' references unknown matrix key '{key}'. "
                    f"Known keys: {sorted(combo)}"
                )
            return _fmt(combo[key])

        return _MATRIX_EXPR.sub(repl, value)
    if isinstance(value, dict):
        return {k: _substitute(v, combo, job_name) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute(v, combo, job_name) for v in value]
    return value


def _combinations(axes: Dict[str, List[Any]]) -> List[Dict[str, Any]]:
    if not axes:
        return [{}]
    keys = list(axes)
    return [dict(zip(keys, combo)) for combo in itertools.product(*(axes[k] for k in keys))]


def _instance_name(job: Job, combo: Dict[str, Any]) -> str:
    if not combo:
        return job.display_name
    return f"{job.display_name} ({', '.join(_fmt(v) for v in combo.values())})"


def _expand_step(step: Step, combo: Dict[str, Any], job_name: str) -> Step:
    return replace(
        step,
        name=_substitute(step.name, combo, job_name),
        run=_substitute(step.run, combo, job_name),
        with_=_substitute(dict(step.with_), combo, job_name),
        cwd=_substitute(step.cwd, combo, job_name),
        env=_substitute(dict(step.env), combo, job_name),
    )


def expand_job(job: Job) -> List[JobRun]:
    """
    Expand a job template over its matrix axes.

    Produces one JobRun per combination (the cartesian product of the axes, in
    declared order). Every instance owns fresh copies of the step list and env,
    so mutating one instance never affects another.
    """
    for key, values in job.matrix.items():
        if not values:
            raise WorkflowError(f"Job '{job.name}' matrix axis '{key}' is empty")

    runs: List[JobRun] = []
    for combo in _combinations(job.matrix):
        runs.append(
            JobRun(
                name=_instance_name(job, combo),
                job=job.name,
                environment=_substitute(job.runs_on, combo, job.name),
                steps=[_expand_step(s, combo, job.name) for s in job.steps],
                env=_substitute(dict(job.env), combo, job.name),
                matrix=dict(combo),
                timeout_minutes=job.timeout_minutes,
            )
        )
    return runs


def expand_workflow(workflow: Workflow) -> List[JobRun]:
    """Expand every job of a workflow; instance order follows declaration order."""
    runs: List[JobRun] = []
    for job in workflow.jobs:
        runs.extend(expand_job(job))

    names = [r.name for r in runs]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise WorkflowError(f"Duplicate job names found: {dupes}")
    return runs
