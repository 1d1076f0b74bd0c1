"""Tests for the command line interface."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from conftest import py
from matrixci.cli import cli


def write_workflow(path: Path, build_code: str = "pass", on: str = "[pull_request]") -> Path:
    # the local provider knows ubuntu/macos/windows labels and runs them all on this host
    text = f"""
name: CI
on: {on}
jobs:
  build:
    runs-on: ${{{{ matrix.os }}}}
    strategy:
      matrix:
        os: [ubuntu-latest, macos-latest, windows-latest]
    steps:
      - uses: actions/checkout@v2
      - name: Build
        run: {json.dumps(py(build_code))}
"""
    path.write_text(text)
    return path


@pytest.fixture
def runner():
    return CliRunner()


def test_plan_lists_expanded_jobs(runner, tmp_path):
    wf_path = write_workflow(tmp_path / "ci_workflow.yml")

    result = runner.invoke(cli, ["plan", "--workflow", str(wf_path)])

    assert result.exit_code == 0, result.output
    assert "build (ubuntu-latest) [ubuntu-latest]" in result.output
    assert "build (windows-latest) [windows-latest]" in result.output
    assert "uses actions/checkout@v2" in result.output


def test_run_succeeds(runner, tmp_path, source_dir):
    wf_path = write_workflow(tmp_path / "ci_workflow.yml")

    result = runner.invoke(cli, ["run", "--workflow", str(wf_path), "--source", str(source_dir)])

    assert result.exit_code == 0, result.output
    assert "RUN: SUCCEEDED" in result.output


def test_run_fails_when_any_job_fails(runner, tmp_path, source_dir):
    code = "import os, sys; sys.exit(1 if os.environ['RUNNER_OS'] == 'Windows' else 0)"
    wf_path = write_workflow(tmp_path / "ci_workflow.yml", build_code=code)

    result = runner.invoke(cli, ["run", "--workflow", str(wf_path), "--source", str(source_dir)])

    assert result.exit_code == 1
    assert "build (windows-latest): FAILED" in result.output
    assert "build (ubuntu-latest): SUCCEEDED" in result.output
    assert "RUN: FAILED" in result.output


def test_run_with_non_matching_event(runner, tmp_path, source_dir):
    wf_path = write_workflow(tmp_path / "ci_workflow.yml")

    result = runner.invoke(
        cli, ["run", "--workflow", str(wf_path), "--source", str(source_dir), "--event", "push"]
    )

    assert result.exit_code == 0
    assert "No run started" in result.output


def test_dispatch_event_file(runner, tmp_path, source_dir):
    wf_path = write_workflow(tmp_path / "ci_workflow.yml")
    event_file = tmp_path / "event.json"
    event_file.write_text(json.dumps({
        "action": "synchronize",
        "number": 3,
        "pull_request": {"number": 3, "head": {"ref": "topic", "repo": {"clone_url": str(source_dir)}}},
        "repository": {"full_name": "owner/project"},
    }))

    result = runner.invoke(cli, ["dispatch", "--workflow", str(wf_path), "--event-file", str(event_file)])

    assert result.exit_code == 0, result.output
    assert "RUN: SUCCEEDED" in result.output


def test_missing_workflow_file(runner, tmp_path):
    result = runner.invoke(cli, ["plan", "--workflow", str(tmp_path / "missing.yml")])

    assert result.exit_code == 1


def test_invalid_workflow_reported(runner, tmp_path):
    bad = tmp_path / "bad_workflow.yml"
    bad.write_text("on: push\njobs:\n  a:\n    steps: [{run: echo}]\n")

    result = runner.invoke(cli, ["plan", "--workflow", str(bad)])

    assert result.exit_code == 1
