# src/matrixci/dsl.py
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from .model import DEFAULT_TIMEOUT_MINUTES, Job, Step, Workflow


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def sh(name: str, cmd: str, *, cwd: str | None = None, env: Optional[Dict[str, str]] = None) -> Step:
    """Create a shell step."""
    return Step(name=name, run=cmd, cwd=cwd, env=dict(env or {}))


def uses(action: str, *, name: str | None = None, with_: Optional[Dict[str, Any]] = None) -> Step:
    """Create a step that runs a reusable action, e.g. uses("actions/checkout@v2")."""
    return Step(name=name or f"Run {action}", uses=action, with_=dict(with_ or {}))


# ---------------------------------------------------------------------
# Functional Job helper
# ---------------------------------------------------------------------

def job(
    name: str,
    *steps: Step,  # allow: job("x", sh(...), sh(...))
    runs_on: str,
    steps_list: Optional[List[Step]] = None,
    matrix: Optional[Dict[str, Iterable[Any]]] = None,
    env: Optional[Dict[str, str]] = None,
    title: str | None = None,
    timeout_minutes: float = DEFAULT_TIMEOUT_MINUTES,
) -> Job:
    steps_final: List[Step] = []
    if steps_list:
        steps_final.extend(list(steps_list))
    steps_final.extend(list(steps))

    if not steps_final:
        raise ValueError(f"job({name!r}) must have at least one step")

    return Job(
        name=name,
        steps=steps_final,
        runs_on=runs_on,
        matrix={k: list(v) for k, v in (matrix or {}).items()},
        env=dict(env or {}),
        title=title,
        timeout_minutes=timeout_minutes,
    )


# ---------------------------------------------------------------------
# Matrix
# ---------------------------------------------------------------------

def matrix(**axes: Iterable[Any]) -> Dict[str, List[Any]]:
    """
    Declare matrix axes for job(..., matrix=...).

    Example:
        job("build", ..., runs_on="${{ matrix.os }}",
            matrix=matrix(os=["ubuntu-latest", "macos-latest"]))
    """
    out = {k: list(v) for k, v in axes.items()}
    for key, values in out.items():
        if not values:
            raise ValueError(f"matrix axis {key!r} must have at least one value")
    return out


# ---------------------------------------------------------------------
# Workflow helper (single-file story)
# ---------------------------------------------------------------------

def wf(*jobs: Job, name: str = "CI", on: Iterable[str] | Dict[str, Optional[List[str]]] = ("pull_request",)) -> Workflow:
    """
    Workflow definition helper.

    Users can write:
        from matrixci import wf, job, sh, uses

        def workflow():
            return wf(
                job(...),
                job(...),
            )

    Or define WORKFLOW directly:
        WORKFLOW = wf(job(...), job(...))
    """
    if isinstance(on, dict):
        triggers = {k: (list(v) if v is not None else None) for k, v in on.items()}
    else:
        triggers = {event: None for event in on}
    return Workflow(name=name, jobs=list(jobs), on=triggers)
