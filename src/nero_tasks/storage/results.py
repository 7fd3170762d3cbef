"""Durable store for the output of successful operations.

One JSON envelope per task id lives under the results directory. A
missing, corrupt or mismatched envelope reads as "no result" so that a
screen recovering after a crash never fails on storage.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from nero_tasks.storage.files import read_json, safe_filename, utc_now, write_json
from nero_tasks.tasks.models import TaskKind
from nero_tasks.tasks.payloads import payload_model_for

logger = logging.getLogger(__name__)

DEFAULT_RESULT_RETENTION = timedelta(days=7)


class ResultEnvelope(BaseModel):
    task_id: str
    kind: TaskKind
    payload: Any
    saved_at: datetime = Field(default_factory=utc_now)


class ResultStore:
    """JSON-file backed store keyed by task id."""

    def __init__(self, root: Path) -> None:
        self._root = root
        self._lock = threading.Lock()

    def _path(self, task_id: str) -> Path:
        return self._root / f"{safe_filename(task_id)}.json"

    def _read_unlocked(self, path: Path) -> ResultEnvelope | None:
        raw = read_json(path)
        if raw is None:
            return None
        try:
            return ResultEnvelope.model_validate(raw)
        except ValidationError:
            logger.warning("Result envelope has unexpected shape", extra={"path": str(path)})
            return None

    def save(self, kind: TaskKind, task_id: str, payload: Any) -> ResultEnvelope:
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(mode="json")
        envelope = ResultEnvelope(task_id=task_id, kind=kind, payload=payload)
        with self._lock:
            write_json(self._path(task_id), envelope.model_dump(mode="json"))
        logger.info("Result saved", extra={"task_id": task_id, "kind": kind.value})
        return envelope

    def load_envelope(self, task_id: str) -> ResultEnvelope | None:
        with self._lock:
            envelope = self._read_unlocked(self._path(task_id))
        if envelope is not None and envelope.task_id != task_id:
            logger.warning(
                "Result file belongs to another task",
                extra={"task_id": task_id, "found": envelope.task_id},
            )
            return None
        return envelope

    def load(self, kind: TaskKind, task_id: str) -> Any | None:
        """Return the decoded payload for `task_id`, or None.

        The payload is validated against the model registered for `kind`;
        anything that does not decode is treated as absent.
        """
        envelope = self.load_envelope(task_id)
        if envelope is None:
            return None
        if envelope.kind is not kind:
            logger.warning(
                "Result kind mismatch",
                extra={"task_id": task_id, "expected": kind.value, "found": envelope.kind.value},
            )
            return None
        try:
            return payload_model_for(kind).model_validate(envelope.payload)
        except ValidationError:
            logger.warning("Result payload failed validation", extra={"task_id": task_id})
            return None

    def delete(self, task_id: str) -> bool:
        with self._lock:
            path = self._path(task_id)
            if not path.exists():
                return False
            path.unlink()
            return True

    def list_ids(self) -> list[str]:
        ids: list[str] = []
        with self._lock:
            if not self._root.exists():
                return ids
            for path in sorted(self._root.glob("*.json")):
                envelope = self._read_unlocked(path)
                if envelope is not None:
                    ids.append(envelope.task_id)
        return ids

    def cleanup(
        self, max_age: timedelta = DEFAULT_RESULT_RETENTION, *, now: datetime | None = None
    ) -> int:
        """Delete envelopes older than `max_age`; unreadable files go too.

        Returns:
            Number of files removed.
        """
        cutoff = (now or utc_now()) - max_age
        removed = 0
        with self._lock:
            if not self._root.exists():
                return 0
            for path in self._root.glob("*.json"):
                envelope = self._read_unlocked(path)
                if envelope is not None and envelope.saved_at >= cutoff:
                    continue
                path.unlink(missing_ok=True)
                removed += 1
        if removed:
            logger.info("Old results cleaned up", extra={"removed": removed})
        return removed
