"""
Trigger events and the dispatcher that turns matching events into runs.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Hashable, Optional, Tuple

from . import settings
from .context import RunContext, Source
from .environment import EnvironmentProvider, LocalEnvironmentProvider
from .matrix import expand_workflow
from .model import RunResult, Workflow
from .reporting import Reporter
from .runner import run_workflow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TriggerEvent:
    """An incoming event, e.g. a pull request being opened or updated."""
    name: str
    source: Source
    action: Optional[str] = None
    repository: Optional[str] = None
    number: Optional[int] = None
    delivery_id: Optional[str] = None

    @classmethod
    def from_github(
        cls,
        event_name: str,
        payload: Dict[str, Any],
        delivery_id: Optional[str] = None,
    ) -> "TriggerEvent":
        """Build an event from a GitHub webhook payload."""
        repo = payload.get("repository") or {}
        pr = payload.get("pull_request") or {}
        head = pr.get("head") or {}

        # fork PRs carry their own clone URL on the head repo
        clone_url = (head.get("repo") or {}).get("clone_url") or repo.get("clone_url") or ""
        ref = head.get("ref") or payload.get("ref")
        if ref and ref.startswith("refs/heads/"):
            ref = ref[len("refs/heads/"):]

        return cls(
            name=event_name,
            action=payload.get("action"),
            source=Source(url=clone_url, ref=ref, sha=head.get("sha") or payload.get("after")),
            repository=repo.get("full_name"),
            number=payload.get("number") or pr.get("number"),
            delivery_id=delivery_id,
        )

    @property
    def dedupe_key(self) -> Hashable:
        if self.delivery_id:
            return self.delivery_id
        return (self.name, self.action, self.repository, self.number, self.source.sha)

    @property
    def supersede_key(self) -> Optional[Tuple[Optional[str], int]]:
        """Runs sharing this key replace each other (same pull request)."""
        if self.number is None:
            return None
        return (self.repository, self.number)


@dataclass(frozen=True)
class Dispatch:
    status: str  # queued | ignored | duplicate
    context: Optional[RunContext] = None

    @property
    def run_id(self) -> Optional[str]:
        return self.context.run_id if self.context else None


class TriggerDispatcher:
    """
    Starts exactly one run per matching event.

    - Events the workflow does not listen to are ignored (no run, no error).
    - Re-delivered events are recognized and ignored.
    - A new run for the same pull request cancels the run it supersedes.
    - Only the newest `max_history` finished runs and delivery ids are kept.
    """

    def __init__(
        self,
        workflow: Workflow,
        provider: Optional[EnvironmentProvider] = None,
        reporter: Optional[Reporter] = None,
        max_runs: Optional[int] = None,
        max_workers: Optional[int] = None,
        max_history: Optional[int] = None,
    ):
        # surface static workflow errors now rather than inside every run
        expand_workflow(workflow)

        self.workflow = workflow
        self.provider = provider or LocalEnvironmentProvider()
        self.reporter = reporter
        self.max_workers = max_workers
        self._pool = ThreadPoolExecutor(max_workers=max_runs or settings.MAX_RUNS, thread_name_prefix="matrixci-run")
        self.max_history = max_history or settings.MAX_HISTORY
        self._lock = threading.Lock()
        self._seen: "OrderedDict[Hashable, None]" = OrderedDict()
        self._in_flight: Dict[Tuple[Optional[str], int], RunContext] = {}
        self._contexts: "OrderedDict[str, RunContext]" = OrderedDict()
        self._runs: "OrderedDict[str, Future]" = OrderedDict()

    def handle(self, event: TriggerEvent) -> Dispatch:
        if not self.workflow.accepts(event.name, event.action):
            logger.debug("Ignoring event %s (action=%s)", event.name, event.action)
            return Dispatch("ignored")

        with self._lock:
            key = event.dedupe_key
            if key in self._seen:
                logger.info("Duplicate event %s ignored", key)
                return Dispatch("duplicate")
            self._seen[key] = None

            ctx = RunContext(source=event.source, event_name=event.name)
            skey = event.supersede_key
            if skey is not None:
                previous = self._in_flight.get(skey)
                if previous is not None:
                    logger.info("Run %s superseded by %s, canceling", previous.run_id, ctx.run_id)
                    previous.cancel()
                self._in_flight[skey] = ctx

            self._contexts[ctx.run_id] = ctx
            self._runs[ctx.run_id] = self._pool.submit(self._execute, ctx, skey)
            self._prune()

        logger.info("Run %s queued for %s/%s", ctx.run_id, event.name, event.action)
        return Dispatch("queued", ctx)

    def _execute(self, ctx: RunContext, skey: Optional[Tuple[Optional[str], int]]) -> RunResult:
        try:
            return run_workflow(
                self.workflow,
                ctx,
                provider=self.provider,
                reporter=self.reporter,
                max_workers=self.max_workers,
            )
        finally:
            with self._lock:
                if skey is not None and self._in_flight.get(skey) is ctx:
                    del self._in_flight[skey]

    def _prune(self) -> None:
        """Forget the oldest finished runs and delivery keys beyond max_history."""
        excess = len(self._runs) - self.max_history
        # the newest run was just queued and is never evicted
        for run_id, future in list(self._runs.items())[:-1]:
            if excess <= 0:
                break
            if future.done():
                del self._runs[run_id]
                del self._contexts[run_id]
                excess -= 1
        while len(self._seen) > self.max_history:
            self._seen.popitem(last=False)

    def context(self, run_id: str) -> Optional[RunContext]:
        return self._contexts.get(run_id)

    def result(self, run_id: str) -> Optional[RunResult]:
        """Finished run result, or None while the run is still in flight."""
        future = self._runs.get(run_id)
        if future is None or not future.done():
            return None
        return future.result()

    def wait(self, run_id: str, timeout: Optional[float] = None) -> RunResult:
        """Block until the run reached a terminal state."""
        future = self._runs.get(run_id)
        if future is None:
            raise KeyError(run_id)
        return future.result(timeout=timeout)

    def cancel(self, run_id: str) -> bool:
        ctx = self._contexts.get(run_id)
        if ctx is None:
            return False
        ctx.cancel()
        return True

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)
