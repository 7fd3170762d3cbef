"""Concrete chat screens: coaching chat, meal logging and workout plan editing."""

from __future__ import annotations

from datetime import date
from typing import Any

from nero_tasks.screens.session import ChatEntry, ScreenSession
from nero_tasks.tasks.models import TaskKind
from nero_tasks.tasks.payloads import CoachReply, MacroMeal, WorkoutPlan


class CoachChatScreen(ScreenSession):
    view_kind = "AIChatView"
    default_kind = TaskKind.FITNESS_COACH_CHAT
    accepted_kinds = frozenset({TaskKind.FITNESS_COACH_CHAT})

    def entry_for(self, payload: CoachReply) -> ChatEntry:
        return ChatEntry(text=payload.text)


class MacroChatScreen(ScreenSession):
    """Meal logging chat; each parsed meal appends one confirmation entry."""

    view_kind = "MacroChatView"
    default_kind = TaskKind.MACRO_MEAL_PARSING
    accepted_kinds = frozenset({TaskKind.MACRO_MEAL_PARSING, TaskKind.MACRO_MEAL_EDIT})

    missing_result_message = (
        "Sorry, there was an issue retrieving your meal. Please try again."
    )
    failed_message = (
        "Sorry, processing your meal failed while the view was not active. Please try again."
    )
    lost_message = "Sorry, processing your meal timed out or failed. Please try again."

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.selected_date: date = date.today()

    def entry_for(self, payload: MacroMeal) -> ChatEntry:
        totals = payload.totals
        text = (
            f"Logged {payload.title}: {totals.calories:.0f} kcal, "
            f"{totals.protein:.0f}g protein, {totals.carbs:.0f}g carbs, {totals.fat:.0f}g fat"
        )
        return ChatEntry(text=text, data=payload.model_dump(mode="json"))

    def serialize_state(self) -> dict[str, Any]:
        state = super().serialize_state()
        state["selected_date"] = self.selected_date.isoformat()
        return state

    def restore_state(self, state: dict[str, Any]) -> None:
        super().restore_state(state)
        raw = state.get("selected_date")
        if isinstance(raw, str):
            try:
                self.selected_date = date.fromisoformat(raw)
            except ValueError:
                self.selected_date = date.today()

    def logged_meals(self) -> list[MacroMeal]:
        return [MacroMeal.model_validate(e.data) for e in self.entries if e.data is not None]


class WorkoutEditChatScreen(ScreenSession):
    """Plan generation/editing chat; the latest plan replaces the current one."""

    view_kind = "WorkoutEditChatView"
    default_kind = TaskKind.WORKOUT_PLAN_EDIT
    accepted_kinds = frozenset({TaskKind.WORKOUT_PLAN_EDIT, TaskKind.WORKOUT_PLAN_GENERATION})

    missing_result_message = (
        "Sorry, there was an issue retrieving your updated plan. Please try again."
    )
    failed_message = (
        "Sorry, updating your plan failed while the view was not active. Please try again."
    )
    lost_message = "Sorry, updating your plan timed out or failed. Please try again."

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.current_plan: WorkoutPlan | None = None

    def entry_for(self, payload: WorkoutPlan) -> ChatEntry:
        days = payload.days()
        text = (
            f"Your plan is ready: {len(payload.plan)} exercises across {len(days)} days "
            f"({', '.join(days)})."
            if days
            else "Your plan is ready, but it has no exercises."
        )
        return ChatEntry(text=text, data=payload.model_dump(mode="json"))

    def apply_result(self, payload: Any) -> None:
        super().apply_result(payload)
        self.current_plan = payload

    def serialize_state(self) -> dict[str, Any]:
        state = super().serialize_state()
        state["current_plan"] = (
            self.current_plan.model_dump(mode="json") if self.current_plan is not None else None
        )
        return state

    def restore_state(self, state: dict[str, Any]) -> None:
        super().restore_state(state)
        raw = state.get("current_plan")
        self.current_plan = WorkoutPlan.model_validate(raw) if isinstance(raw, dict) else None


SCREENS: dict[str, type[ScreenSession]] = {
    cls.view_kind: cls for cls in (CoachChatScreen, MacroChatScreen, WorkoutEditChatScreen)
}
