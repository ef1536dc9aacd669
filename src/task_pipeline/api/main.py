"""FastAPI app entrypoint for task-pipeline."""

from __future__ import annotations

import logging
from typing import Any, Literal

from fastapi import FastAPI, HTTPException, Query, Request
from pydantic import BaseModel, Field

from task_pipeline.config.settings import Settings, get_settings
from task_pipeline.errors import ResultStoreError, UnknownTaskError
from task_pipeline.pipeline.queue import completed_tasks, pending_tasks, resolve_queue
from task_pipeline.pipeline.runner import PipelineRunner
from task_pipeline.pipeline.sanitize import Sanitizer
from task_pipeline.storage.base import ResultStore
from task_pipeline.storage.factory import build_store
from task_pipeline.storage.models import StoredResults
from task_pipeline.tasks.registry import TaskRegistry, build_default_registry

logger = logging.getLogger(__name__)

StoreName = Literal["memory", "json", "postgres"]


class RunPipelineRequest(BaseModel):
    subject: str = Field(min_length=1)
    tasks: str | list[str] = "all"
    inputs: dict[str, Any] = Field(default_factory=dict)
    store: StoreName | None = None
    # Skip task names that already have a recorded result for this subject.
    resume: bool = True


class StepRecord(BaseModel):
    task: str
    status: str
    result: dict[str, Any]


class RunPipelineResponse(BaseModel):
    subject: str
    store: str
    steps: list[StepRecord] = Field(default_factory=list)
    already_completed: list[str] = Field(default_factory=list)
    locked: bool = False
    results: dict[str, dict[str, Any]] = Field(default_factory=dict)


def create_app(
    *,
    registry: TaskRegistry | None = None,
    settings_override: Settings | None = None,
) -> FastAPI:
    settings = settings_override or get_settings()
    app = FastAPI(title=settings.app_name)
    app.state.settings = settings
    app.state.registry = registry or build_default_registry()

    def _open_store(
        request: Request,
        backend: str | None,
        subject: str,
        inputs: dict[str, Any] | None = None,
    ) -> ResultStore:
        try:
            return build_store(
                backend,
                subject,
                inputs=inputs,
                settings=request.app.state.settings,
            )
        except ResultStoreError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    @app.get("/tasks")
    def tasks(request: Request) -> dict[str, dict[str, str]]:
        return {"tasks": dict(request.app.state.registry.task_names())}

    @app.get("/tasks/meta")
    def tasks_meta(request: Request) -> dict[str, dict[str, dict[str, Any]]]:
        return {"tasks": request.app.state.registry.metadata()}

    @app.post("/pipeline/run", response_model=RunPipelineResponse)
    def run_pipeline(payload: RunPipelineRequest, request: Request) -> RunPipelineResponse:
        task_registry: TaskRegistry = request.app.state.registry
        app_settings: Settings = request.app.state.settings
        try:
            queue = resolve_queue(payload.tasks, task_registry)
        except UnknownTaskError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

        backend = payload.store or app_settings.store_backend
        store = _open_store(request, backend, payload.subject, payload.inputs)
        already_done = completed_tasks(queue, store) if payload.resume else []
        pending = pending_tasks(queue, store) if payload.resume else queue

        runner = PipelineRunner(
            task_registry,
            subject_key=app_settings.subject_key,
            sanitizer=Sanitizer.from_settings(app_settings),
        )
        logger.info(
            "pipeline_run event=start store=%s queued=%d already_completed=%d",
            backend,
            len(pending),
            len(already_done),
        )
        outcomes = runner.run_all(store, pending)
        locked = len(outcomes) < len(pending) and store.is_locked()
        logger.info(
            "pipeline_run event=completed store=%s ran=%d locked=%s",
            backend,
            len(outcomes),
            locked,
        )

        return RunPipelineResponse(
            subject=payload.subject,
            store=backend,
            steps=[
                StepRecord(
                    task=str(item.task_name),
                    status=str(item.status),
                    result=item.result or {},
                )
                for item in outcomes
            ],
            already_completed=already_done,
            locked=locked,
            results=store.get_all_prior(),
        )

    @app.get("/results", response_model=StoredResults)
    def get_results(
        request: Request,
        subject: str = Query(min_length=1),
        store: StoreName | None = None,
    ) -> StoredResults:
        result_store = _open_store(request, store, subject)
        return StoredResults(subject=subject, results=result_store.get_all_prior())

    return app


app = create_app()
