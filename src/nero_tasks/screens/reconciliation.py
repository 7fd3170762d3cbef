"""Bring a screen's displayed state in line with the true outcome of its work.

Run on appear and on resume, in this order; the first match wins because a
screen has at most one outstanding task of its own kind:

1. Orphan scan: a completed task associated with this screen.
2. The screen's own remembered task id, as the registry reports it.
3. The registry has no record (e.g. after a relaunch): the result store
   is consulted anyway, since the result may have been written before the
   process ended.

Every failure path ends with the loading flag cleared and an error entry
appended, and every consumed association is removed, so running the
protocol twice applies nothing twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from nero_tasks.screens.session import ScreenSession
from nero_tasks.storage.results import ResultStore
from nero_tasks.storage.views import ViewStateStore
from nero_tasks.tasks.models import TaskKind, TaskStatus
from nero_tasks.tasks.registry import TaskRegistry

logger = logging.getLogger(__name__)


class ReconcileOutcome(str, Enum):
    NOTHING = "nothing"
    APPLIED = "applied"
    MISSING_RESULT = "missing_result"
    FAILED = "failed"
    STILL_RUNNING = "still_running"
    LOST = "lost"


@dataclass
class ReconciliationProtocol:
    registry: TaskRegistry
    results: ResultStore
    views: ViewStateStore

    def run(self, screen: ScreenSession) -> ReconcileOutcome:
        outcome = self._scan_orphans(screen)
        if outcome is None:
            outcome = self._check_remembered(screen)

        if outcome is not ReconcileOutcome.STILL_RUNNING:
            screen.save_view_state()

        logger.info(
            "Reconciled screen",
            extra={
                "view_kind": screen.view_kind,
                "outcome": outcome.value,
                "is_loading": screen.is_loading,
            },
        )
        return outcome

    def _scan_orphans(self, screen: ScreenSession) -> ReconcileOutcome | None:
        for task_id in self.views.associations_for(screen.view_kind):
            info = self.registry.info(task_id)
            if info is None or info.status is not TaskStatus.COMPLETED:
                continue
            return self._consume_completed(screen, task_id, info.kind)
        return None

    def _check_remembered(self, screen: ScreenSession) -> ReconcileOutcome:
        task_id = screen.remembered_task_id
        if task_id is None:
            # A loading flag with nothing to wait on can only be stale.
            screen.is_loading = False
            return ReconcileOutcome.NOTHING

        info = self.registry.info(task_id)
        if info is None:
            return self._recover_unknown(screen, task_id)

        if info.status is TaskStatus.COMPLETED:
            return self._consume_completed(screen, task_id, info.kind)

        if info.status is TaskStatus.FAILED:
            logger.warning(
                "Remembered task failed",
                extra={"task_id": task_id, "error": info.error},
            )
            screen.fail(task_id, screen.failed_message)
            self.views.clear_association(task_id)
            return ReconcileOutcome.FAILED

        screen.is_loading = True
        return ReconcileOutcome.STILL_RUNNING

    def _consume_completed(
        self, screen: ScreenSession, task_id: str, kind: TaskKind
    ) -> ReconcileOutcome:
        payload = self.results.load(kind, task_id) if kind in screen.accepted_kinds else None
        if payload is not None:
            screen.consume(task_id, payload)
            self.views.clear_association(task_id)
            return ReconcileOutcome.APPLIED

        logger.warning("Task completed but no result found", extra={"task_id": task_id})
        screen.fail(task_id, screen.missing_result_message)
        self.views.clear_association(task_id)
        return ReconcileOutcome.MISSING_RESULT

    def _recover_unknown(self, screen: ScreenSession, task_id: str) -> ReconcileOutcome:
        payload = self._load_any(screen, task_id)
        self.views.clear_association(task_id)
        if payload is not None:
            logger.info("Recovered persisted result for untracked task", extra={"task_id": task_id})
            screen.consume(task_id, payload)
            return ReconcileOutcome.APPLIED

        logger.warning("Task unknown and no result persisted", extra={"task_id": task_id})
        screen.fail(task_id, screen.lost_message)
        return ReconcileOutcome.LOST

    def _load_any(self, screen: ScreenSession, task_id: str) -> Any | None:
        envelope = self.results.load_envelope(task_id)
        if envelope is None or envelope.kind not in screen.accepted_kinds:
            return None
        return self.results.load(envelope.kind, task_id)
