from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from . import settings


class Status(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def terminal(self) -> bool:
        return self in (Status.SUCCEEDED, Status.FAILED, Status.CANCELED)


# Activity types GitHub uses for pull_request when a workflow lists no `types`.
DEFAULT_PULL_REQUEST_TYPES = ("opened", "synchronize", "reopened")

DEFAULT_TIMEOUT_MINUTES = settings.JOB_TIMEOUT_MINUTES


@dataclass(frozen=True)
class Step:
    """
    A single step inside a CI job.

    Exactly one of `run` (a shell command) or `uses` (a reusable action
    such as "actions/checkout@v2") is set.
    """
    name: str
    run: str | None = None
    uses: str | None = None
    with_: Dict[str, Any] = field(default_factory=dict)
    cwd: str | None = None
    env: Dict[str, str] = field(default_factory=dict)


@dataclass
class Job:
    """
    A job template: steps bound to an environment label, optionally
    expanded over a matrix.

    `runs_on` may reference matrix values, e.g. "${{ matrix.os }}".
    """
    name: str
    steps: list[Step]
    runs_on: str
    matrix: Dict[str, List[Any]] = field(default_factory=dict)
    env: Dict[str, str] = field(default_factory=dict)
    title: Optional[str] = None
    timeout_minutes: float = DEFAULT_TIMEOUT_MINUTES

    @property
    def display_name(self) -> str:
        return self.title or self.name


@dataclass
class Workflow:
    name: str
    jobs: list[Job]
    # event name -> accepted activity types (None means "the defaults for that event")
    on: Dict[str, Optional[List[str]]] = field(
        default_factory=lambda: {"pull_request": None}
    )

    def accepts(self, event: str, action: str | None = None) -> bool:
        if event not in self.on:
            return False
        types = self.on[event]
        if types is None:
            if event == "pull_request":
                types = list(DEFAULT_PULL_REQUEST_TYPES)
            else:
                return True
        return action is None or action in types


_TRANSITIONS = {
    Status.PENDING: {Status.RUNNING, Status.FAILED, Status.CANCELED},
    Status.RUNNING: {Status.SUCCEEDED, Status.FAILED, Status.CANCELED},
}


@dataclass
class JobRun:
    """One expanded job instance, bound to exactly one environment."""
    name: str
    job: str
    environment: str
    steps: list[Step]
    env: Dict[str, str] = field(default_factory=dict)
    matrix: Dict[str, Any] = field(default_factory=dict)
    timeout_minutes: float = DEFAULT_TIMEOUT_MINUTES
    status: Status = Status.PENDING

    def transition(self, new: Status) -> None:
        if new not in _TRANSITIONS.get(self.status, set()):
            raise RuntimeError(f"Job '{self.name}' cannot move from {self.status.value} to {new.value}")
        self.status = new


@dataclass
class StepResult:
    name: str
    status: Status
    exit_code: int | None = None
    output: str = ""
    error: str | None = None


@dataclass
class JobResult:
    name: str
    environment: str
    status: Status
    steps: list[StepResult] = field(default_factory=list)
    error: str | None = None
    duration: float | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is Status.SUCCEEDED


@dataclass
class RunResult:
    run_id: str
    status: Status
    jobs: list[JobResult] = field(default_factory=list)

    def checks(self) -> Dict[str, str]:
        """Pass/fail check per job, as surfaced on the pull request."""
        if self.status is Status.CANCELED:
            return {}
        return {j.name: ("pass" if j.succeeded else "fail") for j in self.jobs}
