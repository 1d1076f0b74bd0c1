from __future__ import annotations

from .model import JobResult, JobRun, RunResult, Status
from .ui.console import get_console


class Reporter:
    """
    Receives job and run lifecycle notifications.

    Hooks are called from job worker threads; implementations must be thread-safe.
    """

    def job_started(self, job: JobRun) -> None:
        pass

    def job_finished(self, result: JobResult) -> None:
        pass

    def run_finished(self, result: RunResult) -> None:
        pass


class ConsoleReporter(Reporter):
    """Surfaces job progress and the final pass/fail checks on the console."""

    def job_started(self, job: JobRun) -> None:
        get_console().print_job_start(job.name, job.environment)

    def job_finished(self, result: JobResult) -> None:
        console = get_console()
        if result.status is Status.FAILED:
            exit_code = result.steps[-1].exit_code if result.steps else None
            console.print_failure(result.name, result.error or "", exit_code=exit_code)
        console.print_job_finished(result.name, result.status.value, result.duration)

    def run_finished(self, result: RunResult) -> None:
        console = get_console()
        console.print_results(result)
        for name, check in result.checks().items():
            console.print_info(f"  check {name}: {check}")
