"""Durable, file-backed stores for results and screen state."""

from nero_tasks.storage.results import ResultEnvelope, ResultStore
from nero_tasks.storage.views import TaskViewAssociation, ViewStateSnapshot, ViewStateStore

__all__ = [
    "ResultEnvelope",
    "ResultStore",
    "TaskViewAssociation",
    "ViewStateSnapshot",
    "ViewStateStore",
]
