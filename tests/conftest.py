"""Test configuration and fixtures."""

from pathlib import Path

import pytest

from nero_tasks.config import TaskSettings
from nero_tasks.context import TaskContext, build_context
from nero_tasks.tasks.payloads import MacroItem, MacroMeal, WorkoutPlan, WorkoutPlanDay


@pytest.fixture
def temp_state_dir(tmp_path: Path) -> Path:
    """Provide a temporary state directory."""
    state_dir = tmp_path / "state"
    state_dir.mkdir()
    return state_dir


@pytest.fixture
def settings(temp_state_dir: Path) -> TaskSettings:
    """Provide settings isolated from the environment and any local .env file."""
    return TaskSettings(
        _env_file=None,
        state_dir=temp_state_dir,
        completed_task_retention_seconds=60,
    )


@pytest.fixture
def context(settings: TaskSettings) -> TaskContext:
    return build_context(settings)


@pytest.fixture
def meal() -> MacroMeal:
    return MacroMeal(
        title="Chicken and rice",
        items=[
            MacroItem(name="chicken breast", calories=330, protein=62, carbs=0, fat=7),
            MacroItem(name="white rice", calories=205, protein=4, carbs=45, fat=0.4),
        ],
    )


@pytest.fixture
def plan() -> WorkoutPlan:
    return WorkoutPlan(
        plan=[
            WorkoutPlanDay(day_of_week="Monday", exercise_name="Squat", sets=5, reps=5),
            WorkoutPlanDay(
                day_of_week="Monday",
                exercise_name="Plank",
                sets=3,
                reps=60,
                exercise_type="static_hold",
            ),
            WorkoutPlanDay(day_of_week="Thursday", exercise_name="Deadlift", sets=3, reps=5),
        ]
    )
