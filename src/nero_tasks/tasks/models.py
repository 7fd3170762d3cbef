"""Task kinds, statuses and the task lifecycle state machine."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class TaskKind(str, Enum):
    WORKOUT_PLAN_GENERATION = "workout_plan_generation"
    WORKOUT_PLAN_EDIT = "workout_plan_edit"
    MACRO_MEAL_PARSING = "macro_meal_parsing"
    MACRO_MEAL_EDIT = "macro_meal_edit"
    FITNESS_COACH_CHAT = "fitness_coach_chat"
    AUDIO_TRANSCRIPTION = "audio_transcription"

    @property
    def title(self) -> str:
        """Short label for an "operations in flight" indicator."""

        return _KIND_TITLES[self]


_KIND_TITLES: dict[TaskKind, str] = {
    TaskKind.WORKOUT_PLAN_GENERATION: "Generating workout plan",
    TaskKind.WORKOUT_PLAN_EDIT: "Editing workout plan",
    TaskKind.MACRO_MEAL_PARSING: "Processing meal",
    TaskKind.MACRO_MEAL_EDIT: "Editing meal",
    TaskKind.FITNESS_COACH_CHAT: "Getting AI response",
    TaskKind.AUDIO_TRANSCRIPTION: "Transcribing audio",
}


class TaskStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not TaskStatus.RUNNING


ALLOWED_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.RUNNING: {TaskStatus.COMPLETED, TaskStatus.FAILED},
    TaskStatus.COMPLETED: set(),
    TaskStatus.FAILED: set(),
}

TIMEOUT_ERROR = "timeout"


class IllegalTransitionError(ValueError):
    pass


class DuplicateTaskError(ValueError):
    """Raised when a task id is started while the registry still tracks it."""


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def new_task_id(kind: TaskKind) -> str:
    """Build a task id of the form `<kind>_<uuid>`."""

    return f"{kind.value}_{uuid.uuid4().hex}"


class TaskInfo(BaseModel):
    """Snapshot of one tracked operation.

    Instances handed out by the registry are copies; mutating them has no
    effect on the registry.
    """

    id: str
    kind: TaskKind
    status: TaskStatus = TaskStatus.RUNNING
    started_at: datetime = Field(default_factory=_utc_now)
    completed_at: datetime | None = None
    error: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status is TaskStatus.RUNNING

    @property
    def duration(self) -> timedelta | None:
        if self.completed_at is None:
            return None
        return self.completed_at - self.started_at

    def running_for(self, now: datetime | None = None) -> timedelta:
        return (now or _utc_now()) - self.started_at


def transition(
    *,
    current: TaskInfo,
    to: TaskStatus,
    at: datetime | None = None,
    error: str | None = None,
) -> TaskInfo:
    allowed = ALLOWED_TRANSITIONS.get(current.status, set())
    if to not in allowed:
        raise IllegalTransitionError(
            f"Illegal transition for {current.id}: {current.status.value} -> {to.value}"
        )
    update: dict[str, Any] = {"status": to, "completed_at": at or _utc_now()}
    if to is TaskStatus.FAILED:
        update["error"] = error or "unknown error"
    return current.model_copy(update=update)


@dataclass(frozen=True, slots=True)
class TaskSuccess:
    value: Any

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class TaskFailure:
    error: str

    @property
    def ok(self) -> bool:
        return False


TaskOutcome = TaskSuccess | TaskFailure
