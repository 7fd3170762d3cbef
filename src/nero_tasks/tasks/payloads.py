"""Typed payloads produced by AI operations, one model per task kind."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from pydantic import BaseModel, Field, computed_field

from nero_tasks.tasks.models import TaskKind


class WorkoutPlanDay(BaseModel):
    day_of_week: str
    exercise_name: str
    sets: int = Field(ge=0)
    reps: int = Field(ge=0)
    # "static_hold" marks timed exercises where reps are seconds.
    exercise_type: str | None = None


class WorkoutPlan(BaseModel):
    plan: list[WorkoutPlanDay] = Field(default_factory=list)

    def days(self) -> list[str]:
        seen: list[str] = []
        for entry in self.plan:
            if entry.day_of_week not in seen:
                seen.append(entry.day_of_week)
        return seen


class MacroTotals(BaseModel):
    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0


class MacroItem(BaseModel):
    name: str
    quantity_description: str = ""
    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0


class MacroMeal(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    title: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))
    items: list[MacroItem] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def totals(self) -> MacroTotals:
        return MacroTotals(
            calories=sum(i.calories for i in self.items),
            protein=sum(i.protein for i in self.items),
            carbs=sum(i.carbs for i in self.items),
            fat=sum(i.fat for i in self.items),
        )


class CoachReply(BaseModel):
    text: str


class Transcription(BaseModel):
    text: str


PAYLOAD_MODELS: dict[TaskKind, type[BaseModel]] = {
    TaskKind.WORKOUT_PLAN_GENERATION: WorkoutPlan,
    TaskKind.WORKOUT_PLAN_EDIT: WorkoutPlan,
    TaskKind.MACRO_MEAL_PARSING: MacroMeal,
    TaskKind.MACRO_MEAL_EDIT: MacroMeal,
    TaskKind.FITNESS_COACH_CHAT: CoachReply,
    TaskKind.AUDIO_TRANSCRIPTION: Transcription,
}


def payload_model_for(kind: TaskKind) -> type[BaseModel]:
    return PAYLOAD_MODELS[kind]
