"""Tests for matrix expansion."""

import pytest

from matrixci.dsl import job, matrix, sh, uses, wf
from matrixci.errors import WorkflowError
from matrixci.matrix import expand_job, expand_workflow
from matrixci.model import Status

OSES = ["ubuntu-latest", "macos-latest", "windows-latest"]


def build_job(**kwargs):
    return job(
        "build",
        uses("actions/checkout@v2"),
        sh("Switch toolchain", "rustup default nightly"),
        sh("Build", "cargo build"),
        runs_on="${{ matrix.os }}",
        matrix=matrix(os=OSES),
        **kwargs,
    )


def test_axis_of_n_yields_n_instances():
    runs = expand_job(build_job())

    assert len(runs) == 3
    assert [r.environment for r in runs] == OSES
    assert [r.name for r in runs] == [f"build ({os})" for os in OSES]
    assert all(r.status is Status.PENDING for r in runs)


def test_instances_share_step_sequence_by_value():
    runs = expand_job(build_job())

    first, second = runs[0], runs[1]
    assert [(s.name, s.run, s.uses) for s in first.steps] == [(s.name, s.run, s.uses) for s in second.steps]
    assert first.steps is not second.steps

    first.steps.append(sh("Extra", "echo extra"))
    first.env["X"] = "1"
    assert len(second.steps) == 3
    assert "X" not in second.env


def test_job_without_matrix_expands_to_one_instance():
    quality = job(
        "quality",
        uses("actions/checkout@v2"),
        sh("rustfmt", "cargo fmt -- --check"),
        runs_on="ubuntu-latest",
    )

    runs = expand_job(quality)

    assert len(runs) == 1
    assert runs[0].name == "quality"
    assert runs[0].environment == "ubuntu-latest"
    assert runs[0].matrix == {}


def test_matrix_values_substituted_in_steps_and_env():
    j = job(
        "test",
        sh("Test on ${{ matrix.os }}", "echo ${{ matrix.python }}", env={"PY": "${{ matrix.python }}"}),
        runs_on="${{ matrix.os }}",
        matrix=matrix(os=["ubuntu-latest"], python=["3.11", "3.12"]),
        env={"TARGET": "${{matrix.os}}"},
    )

    runs = expand_job(j)

    assert [r.name for r in runs] == ["test (ubuntu-latest, 3.11)", "test (ubuntu-latest, 3.12)"]
    assert runs[1].steps[0].name == "Test on ubuntu-latest"
    assert runs[1].steps[0].run == "echo 3.12"
    assert runs[1].steps[0].env == {"PY": "3.12"}
    assert runs[0].env == {"TARGET": "ubuntu-latest"}
    assert runs[1].matrix == {"os": "ubuntu-latest", "python": "3.12"}


def test_cartesian_product_in_declared_order():
    j = job(
        "t",
        sh("x", "echo"),
        runs_on="${{ matrix.os }}",
        matrix=matrix(os=["a", "b"], flag=[True, False]),
    )

    names = [r.name for r in expand_job(j)]

    assert names == ["t (a, true)", "t (a, false)", "t (b, true)", "t (b, false)"]


def test_title_used_for_instance_names():
    runs = expand_job(build_job(title="Build"))
    assert runs[0].name == "Build (ubuntu-latest)"
    assert runs[0].job == "build"


def test_unknown_matrix_key_is_a_workflow_error():
    j = job("b", sh("x", "echo ${{ matrix.arch }}"), runs_on="${{ matrix.os }}", matrix={"os": ["a"]})

    with pytest.raises(WorkflowError, match="unknown matrix key 'arch'"):
        expand_job(j)


def test_empty_axis_is_a_workflow_error():
    j = job("b", sh("x", "echo"), runs_on="${{ matrix.os }}", matrix={"os": []})

    with pytest.raises(WorkflowError, match="empty"):
        expand_job(j)


def test_workflow_expansion_preserves_declaration_order():
    quality = job("quality", sh("fmt", "cargo fmt -- --check"), runs_on="ubuntu-latest")

    runs = expand_workflow(wf(build_job(), quality))

    assert [r.name for r in runs] == [
        "build (ubuntu-latest)",
        "build (macos-latest)",
        "build (windows-latest)",
        "quality",
    ]


def test_duplicate_instance_names_rejected():
    a = job("lint", sh("x", "echo"), runs_on="ubuntu-latest")
    b = job("lint", sh("y", "echo"), runs_on="ubuntu-latest")

    with pytest.raises(WorkflowError, match="Duplicate job names"):
        expand_workflow(wf(a, b))
