"""Execution environments that jobs acquire for their whole lifetime."""

from __future__ import annotations

import re
import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, Optional

from . import settings
from .context import RunContext
from .errors import ProvisionError

DEFAULT_LABELS = ("ubuntu-latest", "macos-latest", "windows-latest")

_RUNNER_OS_PREFIXES = (
    ("ubuntu", "Linux"),
    ("linux", "Linux"),
    ("macos", "macOS"),
    ("windows", "Windows"),
)


def runner_os(label: str) -> str:
    """Map an environment label to the RUNNER_OS value jobs see."""
    for prefix, name in _RUNNER_OS_PREFIXES:
        if label.lower().startswith(prefix):
            return name
    return "Linux"


@dataclass
class Environment:
    """An acquired, isolated execution context owned by exactly one job."""
    label: str
    workspace: Path
    variables: Dict[str, str] = field(default_factory=dict)


class EnvironmentProvider:
    """
    Provisions environments by label.

    Subclasses implement provision() and teardown(); callers use acquire(),
    which guarantees teardown on every exit path once provisioning succeeded.
    """

    def provision(self, label: str, ctx: RunContext) -> Environment:
        raise NotImplementedError

    def teardown(self, env: Environment) -> None:
        raise NotImplementedError

    @contextmanager
    def acquire(self, label: str, ctx: RunContext) -> Iterator[Environment]:
        env = self.provision(label, ctx)
        try:
            yield env
        finally:
            self.teardown(env)


class LocalEnvironmentProvider(EnvironmentProvider):
    """
    Runs every supported label on the local host, each acquisition in its own
    private temporary workspace.

    Args:
        labels: Environment labels this provider accepts
        work_dir: Parent directory for workspaces (defaults to the system temp dir)
    """

    def __init__(self, labels: Iterable[str] = DEFAULT_LABELS, work_dir: Optional[str | Path] = None):
        self.labels = set(labels)
        if work_dir is None:
            work_dir = settings.WORK_DIR
        self.work_dir = Path(work_dir) if work_dir else None

    def provision(self, label: str, ctx: RunContext) -> Environment:
        if label not in self.labels:
            raise ProvisionError(label, f"unsupported label (known: {sorted(self.labels)})")

        slug = re.sub(r"[^A-Za-z0-9_.-]+", "-", label)
        try:
            if self.work_dir is not None:
                self.work_dir.mkdir(parents=True, exist_ok=True)
            workspace = Path(tempfile.mkdtemp(prefix=f"matrixci-{slug}-", dir=self.work_dir))
        except OSError as e:
            raise ProvisionError(label, str(e)) from e

        return Environment(
            label=label,
            workspace=workspace,
            variables={
                "CI": "true",
                "RUNNER_OS": runner_os(label),
                "MATRIXCI_ENVIRONMENT": label,
                "MATRIXCI_WORKSPACE": str(workspace),
                "MATRIXCI_RUN_ID": ctx.run_id,
                "MATRIXCI_EVENT_NAME": ctx.event_name,
            },
        )

    def teardown(self, env: Environment) -> None:
        shutil.rmtree(env.workspace, ignore_errors=True)
