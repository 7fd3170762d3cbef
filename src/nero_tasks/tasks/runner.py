"""Launch operations whose successful output is persisted before completion."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from nero_tasks.storage.results import ResultStore
from nero_tasks.tasks.models import TaskKind, TaskStatus, new_task_id
from nero_tasks.tasks.registry import CompletionCallback, Operation, TaskRegistry

logger = logging.getLogger(__name__)


@dataclass
class TaskRunner:
    """Wraps the registry so a success is written to the result store first.

    The result is saved after the operation returns and before the registry
    records the completed transition, and only while the registry still
    shows the task as running. A result therefore exists only for tasks
    that reach `completed`, and it survives if the process dies right after
    the operation returns.
    """

    registry: TaskRegistry
    results: ResultStore

    def launch(
        self,
        kind: TaskKind,
        operation: Operation,
        on_complete: CompletionCallback | None = None,
        *,
        task_id: str | None = None,
    ) -> str:
        task_id = task_id or new_task_id(kind)

        async def _persisting() -> Any:
            value = await operation()
            if self.registry.status(task_id) is TaskStatus.RUNNING:
                self.results.save(kind, task_id, value)
            else:
                logger.warning(
                    "Discarding result of a task that is no longer running",
                    extra={"task_id": task_id},
                )
            return value

        return self.registry.start(task_id, kind, _persisting, on_complete)
