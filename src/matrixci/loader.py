"""
Workflow loading: GitHub Actions style YAML files and Python workflow files.
"""

from __future__ import annotations

import runpy
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import WorkflowError
from .model import DEFAULT_TIMEOUT_MINUTES, Job, Step, Workflow


def _str_env(env: Any, where: str) -> Dict[str, str]:
    if env is None:
        return {}
    if not isinstance(env, dict):
        raise WorkflowError(f"{where} 'env' must be a mapping")
    return {str(k): ("true" if v is True else "false" if v is False else str(v)) for k, v in env.items()}


def _parse_on(on: Any) -> Dict[str, Optional[List[str]]]:
    if on is None:
        raise WorkflowError("Workflow must define 'on'")
    if isinstance(on, str):
        return {on: None}
    if isinstance(on, list):
        if not all(isinstance(e, str) for e in on):
            raise WorkflowError("Workflow 'on' list must contain event names")
        return {e: None for e in on}
    if isinstance(on, dict):
        triggers: Dict[str, Optional[List[str]]] = {}
        for event, spec in on.items():
            types = None
            if isinstance(spec, dict) and "types" in spec:
                raw = spec["types"]
                types = [raw] if isinstance(raw, str) else list(raw)
            triggers[str(event)] = types
        return triggers
    raise WorkflowError("Workflow 'on' must be a string, list or mapping")


def _parse_step(job_id: str, step: Any, index: int) -> Step:
    where = f"Job '{job_id}' step {index}"
    if not isinstance(step, dict):
        raise WorkflowError(f"{where} must be a mapping")

    has_uses = "uses" in step
    has_run = "run" in step
    if has_uses == has_run:
        raise WorkflowError(f"{where} must define exactly one of 'uses' or 'run'")

    with_ = step.get("with") or {}
    if not isinstance(with_, dict):
        raise WorkflowError(f"{where} 'with' must be a mapping")

    if has_uses:
        uses = step["uses"]
        if not isinstance(uses, str) or not uses:
            raise WorkflowError(f"{where} 'uses' must be a non-empty string")
        name = step.get("name") or f"Run {uses}"
        return Step(name=str(name), uses=uses, with_=dict(with_), env=_str_env(step.get("env"), where))

    run = step["run"]
    if not isinstance(run, str) or not run.strip():
        raise WorkflowError(f"{where} 'run' must be a non-empty string")
    name = step.get("name") or f"Run {run.strip().splitlines()[0]}"
    cwd = step.get("working-directory")
    return Step(
        name=str(name),
        run=run,
        cwd=str(cwd) if cwd is not None else None,
        env=_str_env(step.get("env"), where),
    )


def _parse_matrix(job_id: str, strategy: Any) -> Dict[str, List[Any]]:
    if strategy is None:
        return {}
    if not isinstance(strategy, dict):
        raise WorkflowError(f"Job '{job_id}' 'strategy' must be a mapping")
    matrix = strategy.get("matrix")
    if matrix is None:
        return {}
    if not isinstance(matrix, dict):
        raise WorkflowError(f"Job '{job_id}' 'strategy.matrix' must be a mapping")

    axes: Dict[str, List[Any]] = {}
    for key, values in matrix.items():
        if key in ("include", "exclude"):
            raise WorkflowError(f"Job '{job_id}' matrix '{key}' is not supported")
        if not isinstance(values, list) or not values:
            raise WorkflowError(f"Job '{job_id}' matrix axis '{key}' must be a non-empty list")
        axes[str(key)] = list(values)
    return axes


def _parse_job(job_id: str, cfg: Any) -> Job:
    if not isinstance(cfg, dict):
        raise WorkflowError(f"Job '{job_id}' must be a mapping")

    runs_on = cfg.get("runs-on")
    if not isinstance(runs_on, str) or not runs_on:
        raise WorkflowError(f"Job '{job_id}' must define 'runs-on' as a string")

    steps = cfg.get("steps")
    if not isinstance(steps, list) or not steps:
        raise WorkflowError(f"Job '{job_id}' must have at least one step")

    timeout = cfg.get("timeout-minutes", DEFAULT_TIMEOUT_MINUTES)
    if not isinstance(timeout, (int, float)) or isinstance(timeout, bool) or timeout <= 0:
        raise WorkflowError(f"Job '{job_id}' 'timeout-minutes' must be a positive number")

    title = cfg.get("name")
    return Job(
        name=job_id,
        title=str(title) if title is not None else None,
        runs_on=runs_on,
        steps=[_parse_step(job_id, s, i) for i, s in enumerate(steps)],
        matrix=_parse_matrix(job_id, cfg.get("strategy")),
        env=_str_env(cfg.get("env"), f"Job '{job_id}'"),
        timeout_minutes=float(timeout),
    )


def parse_workflow_dict(config: Any, default_name: str = "CI") -> Workflow:
    """Validate a workflow mapping and build a Workflow."""
    if not config:
        raise WorkflowError("Empty workflow configuration")
    if not isinstance(config, dict):
        raise WorkflowError("Workflow configuration must be a mapping")

    # YAML 1.1 reads a bare `on:` key as boolean True
    on = config.get("on", config.get(True))

    jobs = config.get("jobs")
    if not isinstance(jobs, dict) or not jobs:
        raise WorkflowError("Workflow must define at least one job under 'jobs'")

    return Workflow(
        name=str(config.get("name") or default_name),
        on=_parse_on(on),
        jobs=[_parse_job(str(job_id), cfg) for job_id, cfg in jobs.items()],
    )


def parse_workflow_yaml(text: str, default_name: str = "CI") -> Workflow:
    try:
        config = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise WorkflowError(f"Invalid YAML: {e}") from e
    return parse_workflow_dict(config, default_name=default_name)


def load_workflow(path: str | Path) -> Workflow:
    """
    Load a workflow from a YAML or Python file.

    A Python file must define either:
      - workflow() -> Workflow
      - WORKFLOW = Workflow(...)
    """
    wf_path = Path(path).expanduser().resolve()
    if not wf_path.exists():
        raise FileNotFoundError(f"Workflow file not found: {wf_path}")

    if wf_path.suffix in (".yml", ".yaml"):
        return parse_workflow_yaml(wf_path.read_text(encoding="utf-8"), default_name=wf_path.stem)

    if wf_path.suffix != ".py":
        raise WorkflowError(f"Workflow must be a .py, .yml or .yaml file, got: {wf_path.name}")

    module_name = f"matrixci_workflow_{wf_path.stem}"
    globals_dict = runpy.run_path(str(wf_path), run_name=module_name)

    workflow = None
    if "workflow" in globals_dict and callable(globals_dict["workflow"]):
        workflow = globals_dict["workflow"]()
    elif "WORKFLOW" in globals_dict:
        workflow = globals_dict["WORKFLOW"]

    if not isinstance(workflow, Workflow):
        raise WorkflowError(
            "Workflow file must return/define a Workflow. "
            "Define workflow() -> Workflow or WORKFLOW = wf(...)."
        )
    return workflow
