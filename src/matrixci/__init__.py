from .loader import load_workflow
from .runner import run_workflow
from .model import Job, Step, Workflow, Status
# Imported last: loading .loader/.runner binds the `matrixci.matrix` submodule
# as a package attribute, which would otherwise shadow the `matrix` DSL helper.
from .dsl import job, sh, uses, matrix, wf

__all__ = ["job", "sh", "uses", "matrix", "wf", "load_workflow", "run_workflow", "Job", "Step", "Workflow", "Status"]
