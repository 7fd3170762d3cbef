"""Application lifecycle hooks.

Background entry is the only place persisted results and view states are
evicted. Returning to the foreground sweeps stale in-memory tasks and asks
every registered screen to reconcile.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from enum import Enum
from typing import Protocol

from nero_tasks.storage.results import DEFAULT_RESULT_RETENTION, ResultStore
from nero_tasks.storage.views import DEFAULT_VIEW_STATE_RETENTION, ViewStateStore
from nero_tasks.tasks.registry import DEFAULT_STALE_THRESHOLD, TaskRegistry

logger = logging.getLogger(__name__)


class LifecycleEvent(str, Enum):
    ENTERED_BACKGROUND = "entered_background"
    WILL_ENTER_FOREGROUND = "will_enter_foreground"
    BECAME_ACTIVE = "became_active"
    WILL_RESIGN_ACTIVE = "will_resign_active"


class ResumableScreen(Protocol):
    view_kind: str
    attached: bool

    def on_resume(self) -> object: ...

    def save_view_state(self) -> None: ...


class LifecycleHooks:
    def __init__(
        self,
        *,
        registry: TaskRegistry,
        results: ResultStore,
        views: ViewStateStore,
        result_retention: timedelta = DEFAULT_RESULT_RETENTION,
        view_state_retention: timedelta = DEFAULT_VIEW_STATE_RETENTION,
        stale_threshold: timedelta = DEFAULT_STALE_THRESHOLD,
    ) -> None:
        self._registry = registry
        self._results = results
        self._views = views
        self._result_retention = result_retention
        self._view_state_retention = view_state_retention
        self._stale_threshold = stale_threshold
        self._screens: list[ResumableScreen] = []

        self.is_active = True
        self.is_in_background = False

    def register(self, screen: ResumableScreen) -> None:
        if screen not in self._screens:
            self._screens.append(screen)

    def unregister(self, screen: ResumableScreen) -> None:
        if screen in self._screens:
            self._screens.remove(screen)

    @property
    def screens(self) -> list[ResumableScreen]:
        return list(self._screens)

    def handle(self, event: LifecycleEvent) -> dict[str, object]:
        """Dispatch a lifecycle signal; returns per-screen reconcile outcomes."""
        if event is LifecycleEvent.ENTERED_BACKGROUND:
            self.entered_background()
            return {}
        if event is LifecycleEvent.WILL_ENTER_FOREGROUND:
            return self.will_enter_foreground()
        if event is LifecycleEvent.BECAME_ACTIVE:
            return self.became_active()
        self.will_resign_active()
        return {}

    def entered_background(self) -> tuple[int, int]:
        """Persist attached screens, then run both eviction sweeps.

        Returns:
            (results removed, view states and associations removed)
        """
        logger.info(
            "App entered background",
            extra={"active_tasks": self._registry.active_count()},
        )
        self.is_in_background = True
        self.is_active = False

        for screen in self.screens:
            if screen.attached:
                screen.save_view_state()

        removed_results = self._results.cleanup(self._result_retention)
        removed_views = self._views.cleanup(self._view_state_retention)
        return removed_results, removed_views

    def will_enter_foreground(self) -> dict[str, object]:
        logger.info("App will enter foreground")
        self.is_in_background = False
        swept = self._registry.sweep_stale(self._stale_threshold)
        if swept:
            logger.info("Swept stale tasks on foreground", extra={"task_ids": swept})
        return self._signal_screens()

    def became_active(self) -> dict[str, object]:
        logger.info("App became active")
        self.is_active = True
        return self._signal_screens()

    def will_resign_active(self) -> None:
        logger.info("App will resign active")
        self.is_active = False

    def _signal_screens(self) -> dict[str, object]:
        outcomes: dict[str, object] = {}
        for screen in self.screens:
            if not screen.attached:
                continue
            try:
                outcomes[screen.view_kind] = screen.on_resume()
            except Exception:
                logger.exception("Screen reconciliation failed", extra={"view_kind": screen.view_kind})
        return outcomes
