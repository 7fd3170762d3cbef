"""Resumable screens and the reconciliation protocol they run on appear/resume."""

from nero_tasks.screens.chat import (
    SCREENS,
    CoachChatScreen,
    MacroChatScreen,
    WorkoutEditChatScreen,
)
from nero_tasks.screens.reconciliation import ReconcileOutcome, ReconciliationProtocol
from nero_tasks.screens.session import ChatEntry, ScreenBusyError, ScreenSession

__all__ = [
    "SCREENS",
    "ChatEntry",
    "CoachChatScreen",
    "MacroChatScreen",
    "ReconcileOutcome",
    "ReconciliationProtocol",
    "ScreenBusyError",
    "ScreenSession",
    "WorkoutEditChatScreen",
]
