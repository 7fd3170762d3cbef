"""Explicit service wiring.

The registry and both stores are process-wide shared state, but they are
plain objects assembled here and passed to whoever needs them, so tests can
build isolated copies.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TypeVar

from nero_tasks.config import TaskSettings
from nero_tasks.lifecycle import LifecycleHooks
from nero_tasks.screens.reconciliation import ReconciliationProtocol
from nero_tasks.screens.session import ScreenSession
from nero_tasks.storage.results import ResultStore
from nero_tasks.storage.views import ViewStateStore
from nero_tasks.tasks.registry import TaskRegistry, run_stale_sweeper
from nero_tasks.tasks.runner import TaskRunner

logger = logging.getLogger(__name__)

ScreenT = TypeVar("ScreenT", bound=ScreenSession)


@dataclass
class TaskContext:
    settings: TaskSettings
    registry: TaskRegistry
    results: ResultStore
    views: ViewStateStore
    runner: TaskRunner
    protocol: ReconciliationProtocol
    lifecycle: LifecycleHooks
    _sweeper: asyncio.Task[None] | None = field(default=None, repr=False)

    def open_screen(self, screen_cls: type[ScreenT]) -> ScreenT:
        """Create a screen wired to this context and register it for lifecycle signals."""
        screen = screen_cls(
            registry=self.registry,
            runner=self.runner,
            views=self.views,
            protocol=self.protocol,
        )
        self.lifecycle.register(screen)
        return screen

    def close_screen(self, screen: ScreenSession) -> None:
        screen.on_disappear()
        self.lifecycle.unregister(screen)

    def start_sweeper(self) -> asyncio.Task[None]:
        """Start the periodic staleness sweep on the running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(
                run_stale_sweeper(
                    self.registry,
                    interval_seconds=self.settings.stale_sweep_interval_seconds,
                    threshold=self.settings.stale_task_threshold,
                ),
                name="stale-task-sweeper",
            )
        return self._sweeper

    async def shutdown(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            await asyncio.gather(self._sweeper, return_exceptions=True)
            self._sweeper = None
        await self.registry.drain()


def build_context(settings: TaskSettings | None = None) -> TaskContext:
    settings = settings or TaskSettings()

    registry = TaskRegistry(retention_seconds=settings.completed_task_retention_seconds)
    results = ResultStore(settings.results_dir)
    views = ViewStateStore(
        settings.views_dir,
        settings.associations_file,
        snapshot_max_age=settings.view_state_retention,
    )
    lifecycle = LifecycleHooks(
        registry=registry,
        results=results,
        views=views,
        result_retention=settings.result_retention,
        view_state_retention=settings.view_state_retention,
        stale_threshold=settings.stale_task_threshold,
    )

    logger.info("Task context ready", extra={"state_dir": str(settings.state_dir)})
    return TaskContext(
        settings=settings,
        registry=registry,
        results=results,
        views=views,
        runner=TaskRunner(registry=registry, results=results),
        protocol=ReconciliationProtocol(registry=registry, results=results, views=views),
        lifecycle=lifecycle,
    )
