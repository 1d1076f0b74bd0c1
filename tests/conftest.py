from __future__ import annotations

import os
import shlex
import subprocess
import sys
import threading
from collections import Counter

import pytest

from matrixci.context import RunContext, Source
from matrixci.environment import Environment, LocalEnvironmentProvider
from matrixci.reporting import Reporter


def py(code: str) -> str:
    """Shell command running `code` with the current interpreter."""
    args = [sys.executable, "-c", code]
    if os.name == "nt":
        return subprocess.list2cmdline(args)
    return shlex.join(args)


class RecordingProvider(LocalEnvironmentProvider):
    """Local provider that counts acquisitions and teardowns per label."""

    def __init__(self, labels=("env-a", "env-b", "env-c", "ubuntu-latest"), work_dir=None):
        super().__init__(labels=labels, work_dir=work_dir)
        self._lock = threading.Lock()
        self.provisioned: Counter = Counter()
        self.torn_down: Counter = Counter()
        self.workspaces: list = []

    def provision(self, label: str, ctx: RunContext) -> Environment:
        env = super().provision(label, ctx)
        with self._lock:
            self.provisioned[label] += 1
            self.workspaces.append(env.workspace)
        return env

    def teardown(self, env: Environment) -> None:
        super().teardown(env)
        with self._lock:
            self.torn_down[env.label] += 1


class CollectingReporter(Reporter):
    def __init__(self):
        self._lock = threading.Lock()
        self.started = []
        self.finished = []
        self.runs = []

    def job_started(self, job):
        with self._lock:
            self.started.append(job.name)

    def job_finished(self, result):
        with self._lock:
            self.finished.append(result)

    def run_finished(self, result):
        with self._lock:
            self.runs.append(result)


@pytest.fixture
def provider(tmp_path):
    return RecordingProvider(work_dir=tmp_path / "work")


@pytest.fixture
def reporter():
    return CollectingReporter()


@pytest.fixture
def source_dir(tmp_path):
    src = tmp_path / "source"
    src.mkdir()
    (src / "hello.txt").write_text("hello\n")
    return src


@pytest.fixture
def ctx(source_dir):
    return RunContext(source=Source(url=str(source_dir)))


def pr_payload(action="opened", number=7, sha="abc123"):
    return {
        "action": action,
        "number": number,
        "pull_request": {
            "number": number,
            "head": {
                "sha": sha,
                "ref": "feature/matrix",
                "repo": {"clone_url": "https://github.com/fork/project.git"},
            },
        },
        "repository": {
            "full_name": "owner/project",
            "clone_url": "https://github.com/owner/project.git",
        },
    }
