"""Tests for the checkout action against a real git repository."""

import shutil
import subprocess
import time

import pytest

from conftest import py
from matrixci.actions import resolve_action, checkout
from matrixci.context import RunContext, Source
from matrixci.dsl import sh, uses
from matrixci.environment import Environment
from matrixci.errors import StepCanceled, StepFailure
from matrixci.executor import run_job
from matrixci.model import JobRun, Status

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def git(*args, cwd):
    subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True, text=True)


@pytest.fixture
def repo(tmp_path):
    path = tmp_path / "repo"
    path.mkdir()
    git("init", "--quiet", cwd=path)
    git("config", "user.email", "ci@example.com", cwd=path)
    git("config", "user.name", "CI", cwd=path)
    (path / "version.txt").write_text("one\n")
    git("add", ".", cwd=path)
    git("commit", "--quiet", "-m", "one", cwd=path)
    first = subprocess.run(["git", "rev-parse", "HEAD"], cwd=path, check=True,
                           capture_output=True, text=True).stdout.strip()
    (path / "version.txt").write_text("two\n")
    git("commit", "--quiet", "-am", "two", cwd=path)
    return path, first


def test_resolve_action_ignores_version():
    assert resolve_action("actions/checkout@v2") is checkout
    assert resolve_action("actions/checkout@v4") is checkout
    assert resolve_action("actions/cache@v3") is None


def test_checkout_pins_triggering_sha(repo, provider):
    path, first_sha = repo
    ctx = RunContext(source=Source(url=str(path), sha=first_sha))
    check = "import sys; sys.exit(0 if open('version.txt').read().strip() == 'one' else 1)"
    job = JobRun(name="build", job="build", environment="env-a",
                 steps=[uses("actions/checkout@v2"), sh("verify", py(check))])

    result = run_job(job, ctx, provider)

    assert result.status is Status.SUCCEEDED, result.error


def test_checkout_unknown_revision_fails(repo, provider):
    path, _ = repo
    ctx = RunContext(source=Source(url=str(path), sha="0" * 40))
    job = JobRun(name="build", job="build", environment="env-a", steps=[uses("actions/checkout@v2")])

    result = run_job(job, ctx, provider)

    assert result.status is Status.FAILED
    assert provider.torn_down["env-a"] == 1


def checkout_job(tmp_path):
    job = JobRun(name="build", job="build", environment="env-a", steps=[uses("actions/checkout@v2")])
    workspace = tmp_path / "ws"
    workspace.mkdir()
    return job, Environment(label="env-a", workspace=workspace)


def test_checkout_past_deadline_does_not_clone(repo, tmp_path):
    path, _ = repo
    job, env = checkout_job(tmp_path)
    ctx = RunContext(source=Source(url=str(path)))

    with pytest.raises(StepFailure, match="timed out"):
        checkout(job, job.steps[0], env, ctx, time.monotonic() - 1)

    assert not (env.workspace / "version.txt").exists()


def test_checkout_of_cancelled_run_does_not_clone(repo, tmp_path):
    path, _ = repo
    job, env = checkout_job(tmp_path)
    ctx = RunContext(source=Source(url=str(path)))
    ctx.cancel()

    with pytest.raises(StepCanceled):
        checkout(job, job.steps[0], env, ctx, time.monotonic() + 60)

    assert not (env.workspace / "version.txt").exists()
