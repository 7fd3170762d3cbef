"""Durable per-screen state and the task -> screen association map.

Snapshots let a screen resume exactly where it was (history, remembered
task id, loading flag). Associations let a result that finishes while its
screen is off-screen still be routed to the right screen later.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from nero_tasks.storage.files import read_json, safe_filename, utc_now, write_json

logger = logging.getLogger(__name__)

DEFAULT_VIEW_STATE_RETENTION = timedelta(hours=24)


class ViewStateSnapshot(BaseModel):
    view_kind: str
    state: dict[str, Any] = Field(default_factory=dict)
    remembered_task_id: str | None = None
    is_loading: bool = False
    saved_at: datetime = Field(default_factory=utc_now)


class TaskViewAssociation(BaseModel):
    task_id: str
    view_kind: str
    created_at: datetime = Field(default_factory=utc_now)


class ViewStateStore:
    """JSON-file backed snapshots (one file per screen kind) plus associations."""

    def __init__(
        self,
        views_dir: Path,
        associations_file: Path,
        *,
        snapshot_max_age: timedelta = DEFAULT_VIEW_STATE_RETENTION,
    ) -> None:
        self._views_dir = views_dir
        self._associations_file = associations_file
        self._snapshot_max_age = snapshot_max_age
        self._lock = threading.Lock()

    # ---- snapshots ----

    def _snapshot_path(self, view_kind: str) -> Path:
        return self._views_dir / f"{safe_filename(view_kind)}.json"

    def save_state(
        self,
        view_kind: str,
        state: dict[str, Any],
        remembered_task_id: str | None,
        is_loading: bool,
    ) -> ViewStateSnapshot:
        snapshot = ViewStateSnapshot(
            view_kind=view_kind,
            state=state,
            remembered_task_id=remembered_task_id,
            is_loading=is_loading,
        )
        with self._lock:
            write_json(self._snapshot_path(view_kind), snapshot.model_dump(mode="json"))
        logger.debug(
            "View state saved",
            extra={
                "view_kind": view_kind,
                "remembered_task_id": remembered_task_id,
                "is_loading": is_loading,
            },
        )
        return snapshot

    def _read_snapshot_unlocked(self, path: Path) -> ViewStateSnapshot | None:
        raw = read_json(path)
        if raw is None:
            return None
        try:
            return ViewStateSnapshot.model_validate(raw)
        except ValidationError:
            logger.warning("View state has unexpected shape", extra={"path": str(path)})
            return None

    def load_state(
        self, view_kind: str, *, now: datetime | None = None
    ) -> ViewStateSnapshot | None:
        """Load the snapshot for `view_kind`.

        Snapshots older than the configured max age are ignored but left on
        disk; `cleanup` is what removes them.
        """
        with self._lock:
            snapshot = self._read_snapshot_unlocked(self._snapshot_path(view_kind))
        if snapshot is None:
            return None
        if snapshot.view_kind != view_kind:
            logger.warning(
                "View state belongs to another screen",
                extra={"view_kind": view_kind, "found": snapshot.view_kind},
            )
            return None
        if (now or utc_now()) - snapshot.saved_at >= self._snapshot_max_age:
            logger.info("View state too old, ignoring", extra={"view_kind": view_kind})
            return None
        return snapshot

    def clear_state(self, view_kind: str) -> None:
        with self._lock:
            self._snapshot_path(view_kind).unlink(missing_ok=True)
        logger.debug("View state cleared", extra={"view_kind": view_kind})

    # ---- associations ----

    def _load_associations_unlocked(self) -> dict[str, TaskViewAssociation]:
        raw = read_json(self._associations_file)
        if not isinstance(raw, dict):
            return {}
        associations: dict[str, TaskViewAssociation] = {}
        for task_id, item in raw.items():
            if not isinstance(item, dict):
                continue
            try:
                associations[task_id] = TaskViewAssociation.model_validate(
                    {"task_id": task_id, **item}
                )
            except ValidationError:
                logger.warning("Dropping malformed association", extra={"task_id": task_id})
        return associations

    def _save_associations_unlocked(self, associations: dict[str, TaskViewAssociation]) -> None:
        payload = {
            task_id: a.model_dump(mode="json", exclude={"task_id"})
            for task_id, a in associations.items()
        }
        write_json(self._associations_file, payload)

    def associate(self, task_id: str, view_kind: str) -> None:
        with self._lock:
            associations = self._load_associations_unlocked()
            existing = associations.get(task_id)
            if existing is not None and existing.view_kind == view_kind:
                return
            associations[task_id] = TaskViewAssociation(task_id=task_id, view_kind=view_kind)
            self._save_associations_unlocked(associations)
        logger.info("Task associated with view", extra={"task_id": task_id, "view_kind": view_kind})

    def view_for(self, task_id: str) -> str | None:
        with self._lock:
            association = self._load_associations_unlocked().get(task_id)
        return association.view_kind if association is not None else None

    def associations_for(self, view_kind: str) -> list[str]:
        """Task ids associated with `view_kind`, oldest first."""
        with self._lock:
            associations = self._load_associations_unlocked()
        matching = [a for a in associations.values() if a.view_kind == view_kind]
        matching.sort(key=lambda a: a.created_at)
        return [a.task_id for a in matching]

    def clear_association(self, task_id: str) -> bool:
        with self._lock:
            associations = self._load_associations_unlocked()
            if associations.pop(task_id, None) is None:
                return False
            self._save_associations_unlocked(associations)
        logger.debug("Association cleared", extra={"task_id": task_id})
        return True

    # ---- maintenance ----

    def cleanup(
        self, max_age: timedelta = DEFAULT_VIEW_STATE_RETENTION, *, now: datetime | None = None
    ) -> int:
        """Evict snapshots and associations older than `max_age`.

        Returns:
            Number of snapshots plus associations removed.
        """
        cutoff = (now or utc_now()) - max_age
        removed = 0
        with self._lock:
            if self._views_dir.exists():
                for path in self._views_dir.glob("*.json"):
                    snapshot = self._read_snapshot_unlocked(path)
                    if snapshot is not None and snapshot.saved_at >= cutoff:
                        continue
                    path.unlink(missing_ok=True)
                    removed += 1

            associations = self._load_associations_unlocked()
            kept = {k: a for k, a in associations.items() if a.created_at >= cutoff}
            if len(kept) != len(associations):
                self._save_associations_unlocked(kept)
            removed += len(associations) - len(kept)

        if removed:
            logger.info("Old view states cleaned up", extra={"removed": removed})
        return removed
