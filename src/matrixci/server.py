from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Header, HTTPException, Request
from pydantic import BaseModel, Field

from .environment import EnvironmentProvider
from .model import Workflow
from .reporting import Reporter
from .trigger import TriggerDispatcher, TriggerEvent

logger = logging.getLogger(__name__)

# -------------------- Schemas --------------------

class WebhookResponse(BaseModel):
    status: str  # queued|ignored|duplicate|pong
    run_id: str | None = None
    event: str | None = None

class JobResponse(BaseModel):
    name: str
    environment: str
    status: str
    error: str | None = None

class RunResponse(BaseModel):
    run_id: str
    status: str
    jobs: list[JobResponse] = Field(default_factory=list)
    checks: dict[str, str] = Field(default_factory=dict)

# -------------------- App --------------------

def create_app(
    workflow: Workflow,
    provider: Optional[EnvironmentProvider] = None,
    reporter: Optional[Reporter] = None,
    max_workers: Optional[int] = None,
) -> FastAPI:
    dispatcher = TriggerDispatcher(workflow, provider=provider, reporter=reporter, max_workers=max_workers)

    app = FastAPI(title="MatrixCI Trigger Server")
    app.state.dispatcher = dispatcher

    @app.on_event("shutdown")
    async def shutdown() -> None:
        dispatcher.shutdown(wait=False)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post("/webhooks/github", response_model=WebhookResponse)
    async def github_webhook(
        request: Request,
        x_github_event: Optional[str] = Header(None),
        x_github_delivery: Optional[str] = Header(None),
    ):
        try:
            payload: Any = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid JSON payload")
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Payload must be a JSON object")

        if x_github_event == "ping":
            return WebhookResponse(status="pong", event="ping")

        event = TriggerEvent.from_github(x_github_event or "", payload, delivery_id=x_github_delivery)
        dispatch = dispatcher.handle(event)
        if dispatch.status == "queued":
            logger.info("Webhook %s started run %s", x_github_delivery, dispatch.run_id)
        return WebhookResponse(status=dispatch.status, run_id=dispatch.run_id, event=x_github_event)

    @app.get("/runs/{run_id}", response_model=RunResponse)
    async def get_run(run_id: str):
        ctx = dispatcher.context(run_id)
        if ctx is None:
            raise HTTPException(status_code=404, detail="Run not found")

        result = dispatcher.result(run_id)
        if result is None:
            status = "canceling" if ctx.cancelled else "running"
            return RunResponse(run_id=run_id, status=status)

        return RunResponse(
            run_id=run_id,
            status=result.status.value,
            jobs=[
                JobResponse(name=j.name, environment=j.environment, status=j.status.value, error=j.error)
                for j in result.jobs
            ],
            checks=result.checks(),
        )

    return app
