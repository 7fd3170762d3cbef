"""FastAPI app factory.

Endpoints are thin wrappers over the task context: an in-flight indicator,
task lookups, persisted screen snapshots and lifecycle signals.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException

from nero_tasks import __version__
from nero_tasks.context import TaskContext, build_context
from nero_tasks.lifecycle import LifecycleEvent
from nero_tasks.screens import SCREENS
from nero_tasks.server.models import ApiLifecycleResult, ApiTask, ApiTasksOverview, ApiViewState

logger = logging.getLogger(__name__)


def create_app(context: TaskContext | None = None) -> FastAPI:
    ctx = context or build_context()

    app = FastAPI(
        title="Nero Tasks",
        version=__version__,
        description="Status and lifecycle API over the recoverable task subsystem.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    # Expose the context for request handlers that want to read it.
    app.state.context = ctx

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    @app.get("/api/tasks", response_model=ApiTasksOverview)
    def list_tasks(include_finished: bool = False) -> ApiTasksOverview:
        tasks = ctx.registry.all()
        shown = tasks if include_finished else [t for t in tasks if t.is_active]
        return ApiTasksOverview(
            active_count=sum(1 for t in tasks if t.is_active),
            tasks=[ApiTask.from_info(t) for t in shown],
        )

    @app.get("/api/tasks/{task_id}", response_model=ApiTask)
    def get_task(task_id: str) -> ApiTask:
        info = ctx.registry.info(task_id)
        if info is None:
            raise HTTPException(status_code=404, detail="Task not tracked")
        return ApiTask.from_info(info)

    @app.get("/api/screens/{view_kind}", response_model=ApiViewState)
    def get_view_state(view_kind: str) -> ApiViewState:
        if view_kind not in SCREENS:
            raise HTTPException(status_code=404, detail=f"Unknown screen: {view_kind}")
        snapshot = ctx.views.load_state(view_kind)
        if snapshot is None:
            raise HTTPException(status_code=404, detail="No saved state for this screen")
        return ApiViewState.model_validate(snapshot.model_dump())

    # Async so lifecycle handling runs on the event loop that owns the registry.
    @app.post("/api/lifecycle/{event}", response_model=ApiLifecycleResult)
    async def lifecycle_event(event: str) -> ApiLifecycleResult:
        try:
            parsed = LifecycleEvent(event)
        except ValueError:
            raise HTTPException(
                status_code=400, detail=f"Unknown lifecycle event: {event}"
            ) from None

        outcomes = ctx.lifecycle.handle(parsed)
        return ApiLifecycleResult(
            event=parsed.value,
            outcomes={view: str(getattr(o, "value", o)) for view, o in outcomes.items()},
            is_active=ctx.lifecycle.is_active,
            is_in_background=ctx.lifecycle.is_in_background,
        )

    return app
