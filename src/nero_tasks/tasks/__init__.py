"""Task tracking: kinds, statuses, payloads and the in-memory registry."""

from nero_tasks.tasks.models import (
    DuplicateTaskError,
    IllegalTransitionError,
    TaskFailure,
    TaskInfo,
    TaskKind,
    TaskOutcome,
    TaskStatus,
    TaskSuccess,
    new_task_id,
)
from nero_tasks.tasks.registry import TaskRegistry, run_stale_sweeper

__all__ = [
    "DuplicateTaskError",
    "IllegalTransitionError",
    "TaskFailure",
    "TaskInfo",
    "TaskKind",
    "TaskOutcome",
    "TaskRegistry",
    "TaskStatus",
    "TaskSuccess",
    "new_task_id",
    "run_stale_sweeper",
]
