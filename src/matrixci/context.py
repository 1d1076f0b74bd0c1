from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Source:
    """Where the checkout action fetches the triggering revision from."""
    url: str
    ref: Optional[str] = None
    sha: Optional[str] = None

    @property
    def revision(self) -> Optional[str]:
        return self.sha or self.ref


@dataclass
class RunContext:
    """
    Everything a job executor needs to know about the run it belongs to.

    Passed explicitly to every executor; there is no ambient "current run".
    """
    source: Source
    event_name: str = "pull_request"
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    _cancel: threading.Event = field(default_factory=threading.Event, repr=False)

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()
