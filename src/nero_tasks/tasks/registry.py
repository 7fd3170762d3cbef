"""In-memory registry that executes and tracks long-running AI operations.

The registry is the single source of truth for task status:
- `start()` registers a running task and schedules the operation on the
  registry's event loop; it never blocks the caller.
- exactly one terminal transition happens per task id (completion, failure
  or the staleness sweep, whichever comes first), and the completion
  callback fires exactly once, on the registry's event loop.
- terminal tasks are evicted after a short retention window so screens can
  still observe the outcome right after it happens.

All reads and writes of the task table go through `self._lock`; operations
for unrelated tasks complete independently and must not race on the table.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from nero_tasks.tasks.models import (
    TIMEOUT_ERROR,
    DuplicateTaskError,
    TaskFailure,
    TaskInfo,
    TaskKind,
    TaskOutcome,
    TaskStatus,
    TaskSuccess,
    transition,
)

logger = logging.getLogger(__name__)

Operation = Callable[[], Awaitable[Any]]
CompletionCallback = Callable[[TaskOutcome], None]
TasksListener = Callable[[list[TaskInfo]], None]

DEFAULT_STALE_THRESHOLD = timedelta(minutes=5)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class TaskRegistry:
    def __init__(
        self,
        *,
        retention_seconds: float = 5.0,
        loop: asyncio.AbstractEventLoop | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._lock = threading.Lock()
        self._tasks: dict[str, TaskInfo] = {}
        self._callbacks: dict[str, CompletionCallback | None] = {}
        self._handles: dict[str, asyncio.Task[None]] = {}
        self._listeners: list[TasksListener] = []
        self._retention_seconds = max(0.0, float(retention_seconds))
        self._loop = loop
        self._clock = clock

    # ---- execution ----

    def start(
        self,
        task_id: str,
        kind: TaskKind,
        operation: Operation,
        on_complete: CompletionCallback | None = None,
    ) -> str:
        """Register a running task and launch `operation` concurrently.

        Args:
            task_id: Caller-supplied id, typically `<kind>_<uuid>`.
            kind: Kind tag for the operation.
            operation: Zero-argument coroutine function producing the payload.
            on_complete: Invoked once with TaskSuccess or TaskFailure.

        Returns:
            The task id.

        Raises:
            DuplicateTaskError: If the registry still tracks `task_id`.
            RuntimeError: If no event loop is bound or running.
        """
        loop = self._bind_loop()

        with self._lock:
            if task_id in self._tasks:
                raise DuplicateTaskError(f"Task already tracked: {task_id}")
            self._tasks[task_id] = TaskInfo(id=task_id, kind=kind, started_at=self._clock())
            self._callbacks[task_id] = on_complete

        logger.info("Task started", extra={"task_id": task_id, "kind": kind.value})

        if _running_loop() is loop:
            self._spawn(loop, task_id, operation)
        else:
            loop.call_soon_threadsafe(self._spawn, loop, task_id, operation)

        self._notify()
        return task_id

    def _spawn(
        self, loop: asyncio.AbstractEventLoop, task_id: str, operation: Operation
    ) -> None:
        # Runs on the loop, so the handle is recorded before the task can settle.
        handle = loop.create_task(self._execute(task_id, operation), name=f"task-{task_id}")
        with self._lock:
            self._handles[task_id] = handle

    async def _execute(self, task_id: str, operation: Operation) -> None:
        try:
            value = await operation()
        except asyncio.CancelledError:
            self._settle(task_id, TaskFailure("cancelled"))
            raise
        except Exception as exc:
            logger.exception("Task failed", extra={"task_id": task_id})
            self._settle(task_id, TaskFailure(str(exc) or type(exc).__name__))
        else:
            self._settle(task_id, TaskSuccess(value))

    def _settle(self, task_id: str, outcome: TaskOutcome) -> None:
        now = self._clock()
        with self._lock:
            self._handles.pop(task_id, None)
            current = self._tasks.get(task_id)
            if current is None or current.status.is_terminal:
                # Already swept (or evicted); the sweep delivered the callback.
                logger.info(
                    "Ignoring late completion",
                    extra={"task_id": task_id, "ok": outcome.ok},
                )
                return
            if isinstance(outcome, TaskSuccess):
                self._tasks[task_id] = transition(
                    current=current, to=TaskStatus.COMPLETED, at=now
                )
            else:
                self._tasks[task_id] = transition(
                    current=current, to=TaskStatus.FAILED, at=now, error=outcome.error
                )
            callback = self._callbacks.pop(task_id, None)

        if isinstance(outcome, TaskSuccess):
            logger.info("Task completed", extra={"task_id": task_id})
        else:
            logger.warning("Task failed", extra={"task_id": task_id, "error": outcome.error})

        self._schedule_eviction(task_id)
        self._notify()
        self._deliver(task_id, callback, outcome)

    def _deliver(
        self, task_id: str, callback: CompletionCallback | None, outcome: TaskOutcome
    ) -> None:
        if callback is None:
            return
        try:
            callback(outcome)
        except Exception:
            logger.exception("Completion callback raised", extra={"task_id": task_id})

    # ---- queries ----

    def info(self, task_id: str) -> TaskInfo | None:
        with self._lock:
            task = self._tasks.get(task_id)
            return task.model_copy() if task is not None else None

    def status(self, task_id: str) -> TaskStatus | None:
        task = self.info(task_id)
        return task.status if task is not None else None

    def is_active(self, task_id: str) -> bool:
        return self.status(task_id) is TaskStatus.RUNNING

    def all(self) -> list[TaskInfo]:
        with self._lock:
            tasks = [t.model_copy() for t in self._tasks.values()]
        tasks.sort(key=lambda t: t.started_at)
        return tasks

    def active(self) -> list[TaskInfo]:
        return [t for t in self.all() if t.is_active]

    def active_count(self) -> int:
        return len(self.active())

    def subscribe(self, listener: TasksListener) -> Callable[[], None]:
        """Register a change listener; returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    async def wait(self, task_id: str) -> TaskInfo | None:
        """Wait until the operation for `task_id` has settled."""
        with self._lock:
            handle = self._handles.get(task_id)
        if handle is not None:
            await asyncio.gather(handle, return_exceptions=True)
        return self.info(task_id)

    async def drain(self) -> None:
        with self._lock:
            handles = list(self._handles.values())
        if handles:
            await asyncio.gather(*handles, return_exceptions=True)

    # ---- maintenance ----

    def sweep_stale(
        self,
        threshold: timedelta = DEFAULT_STALE_THRESHOLD,
        *,
        now: datetime | None = None,
    ) -> list[str]:
        """Force-fail running tasks that started more than `threshold` ago.

        Returns:
            Ids of the tasks that were marked failed.
        """
        now = now or self._clock()
        swept: list[tuple[str, CompletionCallback | None]] = []
        with self._lock:
            for task_id, task in list(self._tasks.items()):
                if task.status is not TaskStatus.RUNNING:
                    continue
                if now - task.started_at <= threshold:
                    continue
                self._tasks[task_id] = transition(
                    current=task, to=TaskStatus.FAILED, at=now, error=TIMEOUT_ERROR
                )
                swept.append((task_id, self._callbacks.pop(task_id, None)))

        if not swept:
            return []

        for task_id, _ in swept:
            logger.warning(
                "Stale task marked failed",
                extra={"task_id": task_id, "threshold_seconds": threshold.total_seconds()},
            )
            self._schedule_eviction(task_id)
        self._notify()
        for task_id, callback in swept:
            self._deliver(task_id, callback, TaskFailure(TIMEOUT_ERROR))
        return [task_id for task_id, _ in swept]

    def evict(self, task_id: str) -> bool:
        """Drop a terminal task from the table. Running tasks are kept."""
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None or not task.status.is_terminal:
                return False
            del self._tasks[task_id]
        logger.debug("Task evicted", extra={"task_id": task_id})
        self._notify()
        return True

    def _schedule_eviction(self, task_id: str) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(loop.call_later, self._retention_seconds, self.evict, task_id)

    def _bind_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None or self._loop.is_closed():
            running = _running_loop()
            if running is None:
                raise RuntimeError("TaskRegistry.start() needs a running event loop")
            self._loop = running
        return self._loop

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        if not listeners:
            return
        snapshot = self.all()
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Task listener raised")


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


async def run_stale_sweeper(
    registry: TaskRegistry,
    *,
    interval_seconds: float = 30.0,
    threshold: timedelta = DEFAULT_STALE_THRESHOLD,
) -> None:
    """Periodically sweep stale running tasks.

    To stop the sweeper, cancel the coroutine/task.
    """
    sleep_s = max(0.5, float(interval_seconds))

    while True:
        await asyncio.sleep(sleep_s)
        try:
            registry.sweep_stale(threshold)
        except Exception:
            logger.exception("Stale sweep failed")
