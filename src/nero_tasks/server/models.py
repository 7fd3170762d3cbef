"""Pydantic models for the REST server."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from nero_tasks.tasks.models import TaskInfo, TaskKind, TaskStatus


class ApiTask(BaseModel):
    id: str
    kind: TaskKind
    title: str
    status: TaskStatus
    started_at: datetime
    completed_at: datetime | None = None
    error: str | None = None
    running_for_seconds: float
    duration_seconds: float | None = None

    @classmethod
    def from_info(cls, info: TaskInfo) -> ApiTask:
        return cls(
            id=info.id,
            kind=info.kind,
            title=info.kind.title,
            status=info.status,
            started_at=info.started_at,
            completed_at=info.completed_at,
            error=info.error,
            running_for_seconds=info.running_for().total_seconds(),
            duration_seconds=(
                info.duration.total_seconds() if info.duration is not None else None
            ),
        )


class ApiTasksOverview(BaseModel):
    active_count: int
    tasks: list[ApiTask] = Field(default_factory=list)


class ApiLifecycleResult(BaseModel):
    event: str
    outcomes: dict[str, str] = Field(default_factory=dict)
    is_active: bool
    is_in_background: bool


class ApiViewState(BaseModel):
    view_kind: str
    remembered_task_id: str | None = None
    is_loading: bool
    saved_at: datetime
    state: dict[str, Any] = Field(default_factory=dict)
