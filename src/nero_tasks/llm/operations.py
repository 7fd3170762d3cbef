"""AI-backed operations that produce typed payloads.

Each public method returns a zero-argument coroutine function, ready to be
handed to `TaskRegistry.start` / `ScreenSession.start_operation`. Nothing is
sent to the provider until the registry runs the operation.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import ValidationError

from nero_tasks.llm.provider import LLMError, LLMProvider
from nero_tasks.tasks.payloads import CoachReply, MacroMeal, Transcription, WorkoutPlan

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

WORKOUT_PLAN_FORMAT = (
    'Respond with JSON only: {"plan": [{"day_of_week": "Monday", "exercise_name": "...", '
    '"sets": 3, "reps": 10, "exercise_type": null}]}. Use "static_hold" as exercise_type '
    "for timed exercises, with reps in seconds."
)
MEAL_FORMAT = (
    'Respond with JSON only: {"title": "...", "items": [{"name": "...", '
    '"quantity_description": "...", "calories": 0, "protein": 0, "carbs": 0, "fat": 0}]}. '
    "Macros are grams, calories are kcal."
)
COACH_SYSTEM_PROMPT = (
    "You are a concise, encouraging fitness and nutrition coach. "
    "Answer questions about workouts, nutrition, macros, progress, form and training."
)


def extract_json(text: str) -> dict[str, Any]:
    """Parse the JSON object in a model response, tolerating code fences.

    Raises:
        LLMError: If no JSON object can be decoded.
    """
    cleaned = _FENCE.sub("", text.strip())
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end < start:
        raise LLMError("Response did not contain a JSON object")
    try:
        value = json.loads(cleaned[start : end + 1])
    except json.JSONDecodeError as exc:
        raise LLMError(f"Response JSON is invalid: {exc.msg}") from exc
    if not isinstance(value, dict):
        raise LLMError("Response JSON is not an object")
    return value


class AIOperations:
    def __init__(self, provider: LLMProvider) -> None:
        self._provider = provider

    def generate_workout_plan(self, preferences: str) -> Callable[[], Awaitable[WorkoutPlan]]:
        async def _run() -> WorkoutPlan:
            text = await self._provider.chat(
                [
                    {"role": "system", "content": f"You design weekly workout plans. {WORKOUT_PLAN_FORMAT}"},
                    {"role": "user", "content": preferences},
                ]
            )
            return self._parse(text, WorkoutPlan)

        return _run

    def edit_workout_plan(
        self, plan: WorkoutPlan, instruction: str
    ) -> Callable[[], Awaitable[WorkoutPlan]]:
        async def _run() -> WorkoutPlan:
            text = await self._provider.chat(
                [
                    {"role": "system", "content": f"You edit workout plans. {WORKOUT_PLAN_FORMAT}"},
                    {"role": "user", "content": f"Current plan: {plan.model_dump_json()}"},
                    {"role": "user", "content": instruction},
                ]
            )
            return self._parse(text, WorkoutPlan)

        return _run

    def parse_meal(self, description: str) -> Callable[[], Awaitable[MacroMeal]]:
        async def _run() -> MacroMeal:
            text = await self._provider.chat(
                [
                    {"role": "system", "content": f"You estimate meal macros. {MEAL_FORMAT}"},
                    {"role": "user", "content": description},
                ],
                temperature=0.2,
            )
            return self._parse(text, MacroMeal)

        return _run

    def edit_meal(self, meal: MacroMeal, instruction: str) -> Callable[[], Awaitable[MacroMeal]]:
        async def _run() -> MacroMeal:
            current = meal.model_dump_json(include={"title", "items"})
            text = await self._provider.chat(
                [
                    {"role": "system", "content": f"You correct logged meals. {MEAL_FORMAT}"},
                    {"role": "user", "content": f"Current meal: {current}"},
                    {"role": "user", "content": instruction},
                ],
                temperature=0.2,
            )
            edited = self._parse(text, MacroMeal)
            # Keep the identity of the meal being edited.
            return edited.model_copy(update={"id": meal.id, "created_at": meal.created_at})

        return _run

    def coach_reply(
        self, message: str, history: list[dict[str, str]] | None = None
    ) -> Callable[[], Awaitable[CoachReply]]:
        async def _run() -> CoachReply:
            messages = [{"role": "system", "content": COACH_SYSTEM_PROMPT}]
            messages.extend(history or [])
            messages.append({"role": "user", "content": message})
            text = (await self._provider.chat(messages)).strip()
            if not text:
                raise LLMError("Coach reply was empty")
            return CoachReply(text=text)

        return _run

    def transcribe(
        self, audio: bytes, filename: str = "recording.m4a"
    ) -> Callable[[], Awaitable[Transcription]]:
        async def _run() -> Transcription:
            text = await self._provider.transcribe(audio, filename)
            if not text:
                raise LLMError("No speech detected")
            return Transcription(text=text)

        return _run

    @staticmethod
    def _parse(text: str, model: type[Any]) -> Any:
        data = extract_json(text)
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            logger.warning("Model response failed validation", extra={"payload_model": model.__name__})
            raise LLMError(f"Response does not match {model.__name__}") from exc
