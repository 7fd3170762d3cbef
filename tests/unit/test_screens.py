from __future__ import annotations

import asyncio
from datetime import date

import pytest

from nero_tasks.context import TaskContext, build_context
from nero_tasks.screens.chat import SCREENS, CoachChatScreen, MacroChatScreen, WorkoutEditChatScreen
from nero_tasks.screens.session import ScreenBusyError
from nero_tasks.tasks.models import TaskKind, TaskStatus
from nero_tasks.tasks.payloads import CoachReply, WorkoutPlan


def test_screens_are_registered_by_view_kind() -> None:
    assert set(SCREENS) == {"AIChatView", "MacroChatView", "WorkoutEditChatView"}
    assert SCREENS["MacroChatView"] is MacroChatScreen


def test_start_operation_remembers_task_durably(context: TaskContext) -> None:
    screen = context.open_screen(CoachChatScreen)
    snapshots: list[object] = []

    async def scenario() -> str:
        gate = asyncio.Event()

        async def op() -> CoachReply:
            await gate.wait()
            return CoachReply(text="Sleep matters.")

        screen.on_appear()
        task_id = screen.start_operation(op, user_text="Recovery tips?")
        snapshots.append(context.views.load_state("AIChatView"))
        snapshots.append(context.views.view_for(task_id))
        gate.set()
        await context.registry.wait(task_id)
        return task_id

    task_id = asyncio.run(scenario())

    saved, associated_view = snapshots
    assert saved is not None
    assert saved.remembered_task_id == task_id
    assert saved.is_loading is True
    assert associated_view == "AIChatView"
    assert task_id.startswith("fitness_coach_chat_")

    assert context.registry.status(task_id) == TaskStatus.COMPLETED
    assert [e.text for e in screen.entries] == ["Recovery tips?", "Sleep matters."]
    assert screen.entries[0].is_from_user
    assert screen.is_loading is False
    assert screen.remembered_task_id is None
    assert context.views.view_for(task_id) is None


def test_live_failure_is_kept_in_history(context: TaskContext) -> None:
    screen = context.open_screen(CoachChatScreen)

    async def op() -> CoachReply:
        raise ConnectionError("network down")

    async def scenario() -> None:
        screen.on_appear()
        task_id = screen.start_operation(op, user_text="hello")
        await context.registry.wait(task_id)

    asyncio.run(scenario())

    assert screen.error_message == "Failed to get AI response: network down"
    assert screen.is_loading is False
    assert screen.remembered_task_id is None
    assert [e.text for e in screen.entries] == ["hello", "Failed to get AI response: network down"]
    assert screen.entries[-1].is_error is True

    reopened = build_context(context.settings).open_screen(CoachChatScreen)
    reopened.on_appear()
    assert [e.text for e in reopened.entries] == [e.text for e in screen.entries]
    assert reopened.entries[-1].is_error is True


def test_second_operation_is_rejected_while_loading(context: TaskContext) -> None:
    screen = context.open_screen(CoachChatScreen)

    async def scenario() -> None:
        gate = asyncio.Event()

        async def op() -> CoachReply:
            await gate.wait()
            return CoachReply(text="ok")

        screen.on_appear()
        screen.start_operation(op)
        with pytest.raises(ScreenBusyError):
            screen.start_operation(op)
        gate.set()
        await context.registry.drain()

    asyncio.run(scenario())

    assert context.registry.active_count() == 0


def test_unaccepted_kind_is_rejected(context: TaskContext) -> None:
    screen = context.open_screen(CoachChatScreen)

    async def op() -> CoachReply:
        return CoachReply(text="never")

    with pytest.raises(ValueError):
        screen.start_operation(op, kind=TaskKind.MACRO_MEAL_PARSING)
    assert screen.is_loading is False
    assert context.registry.all() == []


def test_workout_screen_keeps_latest_plan_across_restore(
    context: TaskContext, plan: WorkoutPlan
) -> None:
    screen = context.open_screen(WorkoutEditChatScreen)

    async def op() -> WorkoutPlan:
        return plan

    async def scenario() -> None:
        screen.on_appear()
        task_id = screen.start_operation(
            op, user_text="3 days, strength", kind=TaskKind.WORKOUT_PLAN_GENERATION
        )
        await context.registry.wait(task_id)

    asyncio.run(scenario())

    assert screen.current_plan == plan
    assert screen.entries[-1].text == (
        "Your plan is ready: 3 exercises across 2 days (Monday, Thursday)."
    )

    screen.on_disappear()
    context.close_screen(screen)
    reopened = context.open_screen(WorkoutEditChatScreen)
    reopened.on_appear()

    assert reopened.current_plan == plan
    assert len(reopened.entries) == 2


def test_macro_screen_persists_selected_date(context: TaskContext) -> None:
    screen = context.open_screen(MacroChatScreen)
    screen.on_appear()
    screen.selected_date = date(2025, 3, 14)
    context.close_screen(screen)

    reopened = context.open_screen(MacroChatScreen)
    reopened.on_appear()

    assert reopened.selected_date == date(2025, 3, 14)


def test_malformed_history_entries_are_dropped(context: TaskContext) -> None:
    context.views.save_state(
        "AIChatView",
        {"entries": [{"text": "kept"}, {"is_error": "not a bool or text"}]},
        None,
        False,
    )

    screen = context.open_screen(CoachChatScreen)
    screen.on_appear()

    assert [e.text for e in screen.entries] == ["kept"]
