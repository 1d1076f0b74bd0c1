from __future__ import annotations

from dataclasses import dataclass


class WorkflowError(Exception):
    """Raised when a workflow definition is invalid."""
    pass


@dataclass
class StepFailure(Exception):
    job: str
    step: str
    cmd: str
    exit_code: int
    output: str = ""
    reason: str | None = None

    def __str__(self) -> str:
        if self.reason:
            return f"[{self.job}] step '{self.step}' failed ({self.reason}): {self.cmd}"
        return f"[{self.job}] step '{self.step}' failed (exit={self.exit_code}): {self.cmd}"


@dataclass
class StepCanceled(Exception):
    job: str
    step: str

    def __str__(self) -> str:
        return f"[{self.job}] step '{self.step}' canceled"


@dataclass
class ProvisionError(Exception):
    environment: str
    message: str

    def __str__(self) -> str:
        return f"could not provision environment '{self.environment}': {self.message}"
