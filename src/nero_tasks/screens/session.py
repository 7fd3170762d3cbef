"""Resumable screen sessions.

A session is the displayable state of one screen (chat history, loading
flag, the id of the task it is waiting on) plus the calls that keep that
state durable. Sessions never touch the stores directly except through the
documented store APIs, and they hand recovery off to the reconciliation
protocol whenever they become active.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel, Field, ValidationError

from nero_tasks.storage.views import ViewStateStore
from nero_tasks.tasks.models import TaskKind, TaskOutcome, TaskSuccess, new_task_id
from nero_tasks.tasks.registry import Operation, TaskRegistry
from nero_tasks.tasks.runner import TaskRunner

if TYPE_CHECKING:
    from nero_tasks.screens.reconciliation import ReconcileOutcome, ReconciliationProtocol

logger = logging.getLogger(__name__)


class ScreenBusyError(RuntimeError):
    """Raised when a screen starts an operation while one is still loading."""


class ChatEntry(BaseModel):
    text: str
    is_from_user: bool = False
    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))
    is_error: bool = False
    # Structured data attached to the entry (e.g. a parsed meal).
    data: dict[str, Any] | None = None


class ScreenSession(ABC):
    """Base class for screens that launch recoverable operations.

    Subclasses declare which task kinds they launch and accept, and how a
    payload turns into a history entry.
    """

    view_kind: ClassVar[str]
    default_kind: ClassVar[TaskKind]
    accepted_kinds: ClassVar[frozenset[TaskKind]]

    missing_result_message: ClassVar[str] = (
        "Sorry, there was an issue retrieving the AI response. Please try again."
    )
    failed_message: ClassVar[str] = (
        "Sorry, the AI response failed while the view was not active. Please try again."
    )
    lost_message: ClassVar[str] = "Sorry, the AI response timed out or failed. Please try again."

    def __init__(
        self,
        *,
        registry: TaskRegistry,
        runner: TaskRunner,
        views: ViewStateStore,
        protocol: ReconciliationProtocol,
    ) -> None:
        self._registry = registry
        self._runner = runner
        self._views = views
        self._protocol = protocol

        self.entries: list[ChatEntry] = []
        self.remembered_task_id: str | None = None
        self.is_loading: bool = False
        self.error_message: str | None = None
        self.attached: bool = False

    # ---- payload handling ----

    @abstractmethod
    def entry_for(self, payload: Any) -> ChatEntry:
        """Build the history entry that shows `payload` to the user."""

    def apply_result(self, payload: Any) -> None:
        self.entries.append(self.entry_for(payload))

    # ---- state (de)serialization ----

    def serialize_state(self) -> dict[str, Any]:
        return {"entries": [e.model_dump(mode="json") for e in self.entries]}

    def restore_state(self, state: dict[str, Any]) -> None:
        entries: list[ChatEntry] = []
        for raw in state.get("entries") or []:
            try:
                entries.append(ChatEntry.model_validate(raw))
            except ValidationError:
                logger.warning("Dropping malformed history entry", extra={"view_kind": self.view_kind})
        self.entries = entries

    def save_view_state(self) -> None:
        self._views.save_state(
            self.view_kind,
            self.serialize_state(),
            self.remembered_task_id,
            self.is_loading,
        )
        if self.remembered_task_id is not None:
            self._views.associate(self.remembered_task_id, self.view_kind)

    def restore_view_state(self) -> bool:
        """Load the persisted snapshot, if any.

        The loading flag is honored only while the registry reports the
        remembered task as running; otherwise it is forced off so a crash,
        an eviction or a relaunch never leaves a stuck spinner.
        """
        snapshot = self._views.load_state(self.view_kind)
        if snapshot is None:
            return False

        self.restore_state(snapshot.state)
        self.remembered_task_id = snapshot.remembered_task_id

        task_id = snapshot.remembered_task_id
        if task_id is not None and self._registry.is_active(task_id):
            self.is_loading = snapshot.is_loading
        else:
            if snapshot.is_loading:
                logger.info(
                    "Cleared stale loading state",
                    extra={"view_kind": self.view_kind, "task_id": task_id},
                )
            self.is_loading = False
        return True

    # ---- lifecycle ----

    def on_appear(self) -> ReconcileOutcome:
        self.attached = True
        self.restore_view_state()
        return self._protocol.run(self)

    def on_resume(self) -> ReconcileOutcome:
        return self._protocol.run(self)

    def on_disappear(self) -> None:
        self.save_view_state()
        self.attached = False

    # ---- operations ----

    def start_operation(
        self,
        operation: Operation,
        *,
        user_text: str | None = None,
        kind: TaskKind | None = None,
    ) -> str:
        """Launch `operation` and remember its id durably.

        Raises:
            ScreenBusyError: If the screen is already waiting on a task.
            ValueError: If `kind` is not one this screen accepts.
        """
        if self.is_loading:
            raise ScreenBusyError(f"{self.view_kind} is already waiting on a task")
        kind = kind or self.default_kind
        if kind not in self.accepted_kinds:
            raise ValueError(f"{self.view_kind} does not handle {kind.value}")

        task_id = new_task_id(kind)

        def _on_complete(outcome: TaskOutcome) -> None:
            self._handle_completion(task_id, outcome)

        self._runner.launch(kind, operation, _on_complete, task_id=task_id)

        if user_text is not None:
            self.entries.append(ChatEntry(text=user_text, is_from_user=True))

        # Starting a new operation replaces whatever id was remembered before.
        self.remembered_task_id = task_id
        self.is_loading = True
        self.error_message = None
        self.save_view_state()
        return task_id

    def _handle_completion(self, task_id: str, outcome: TaskOutcome) -> None:
        if not self.attached or self.remembered_task_id != task_id:
            # Off screen: the durable path delivers the outcome on next appear.
            logger.debug(
                "Completion deferred to reconciliation",
                extra={"view_kind": self.view_kind, "task_id": task_id},
            )
            return

        if isinstance(outcome, TaskSuccess):
            self.apply_result(outcome.value)
        else:
            self.error_message = f"Failed to get AI response: {outcome.error}"
            self.entries.append(ChatEntry(text=self.error_message, is_error=True))
        self.is_loading = False
        self.remembered_task_id = None
        self._views.clear_association(task_id)
        self.save_view_state()

    # ---- reconciliation hooks ----

    def consume(self, task_id: str, payload: Any) -> None:
        self.apply_result(payload)
        self._settle(task_id)

    def fail(self, task_id: str, message: str) -> None:
        self.entries.append(ChatEntry(text=message, is_error=True))
        self._settle(task_id)

    def _settle(self, task_id: str) -> None:
        if self.remembered_task_id == task_id:
            self.remembered_task_id = None
        remaining = self.remembered_task_id
        self.is_loading = remaining is not None and self._registry.is_active(remaining)
