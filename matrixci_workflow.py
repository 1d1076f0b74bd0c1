# matrixci_workflow.py
# Workflow for matrixci itself: build on every target OS, plus a formatting gate.
from __future__ import annotations

from matrixci import wf, job, sh, uses, matrix


def workflow():
    return wf(
        # Build job - one instance per operating system
        job(
            "build",
            uses("actions/checkout@v2"),
            sh("Install package", "python -m pip install -e ."),
            sh("Import check", "python -c \"import matrixci\""),
            runs_on="${{ matrix.os }}",
            matrix=matrix(os=["ubuntu-latest", "macos-latest", "windows-latest"]),
        ),

        # Quality gate - fails if any file is not already formatted
        job(
            "quality",
            uses("actions/checkout@v2"),
            sh("Install dependencies", "python -m pip install ruff"),
            sh("ruff format", "ruff format --check ."),
            runs_on="ubuntu-latest",
        ),
        name="CI",
        on=("pull_request",),
    )
