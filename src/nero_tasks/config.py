"""Configuration for the task recovery subsystem.

Configuration is loaded from:
- environment variables (prefixed with `NERO_`)
- and a local `.env` file (if present)

Every retention window is expressed in seconds so it can be set from the
environment without a custom parser.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TaskSettings(BaseSettings):
    """Settings for the task registry, the durable stores and the AI client.

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `TaskSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="INFO",
        description="Root logging level",
    )

    state_dir: Path = Field(
        default=Path("nero_state"),
        description="Directory where results, view states and associations are persisted",
    )

    stale_task_threshold_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Running tasks older than this are force-failed with a timeout",
    )
    stale_sweep_interval_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Polling interval for the periodic staleness sweep",
    )
    completed_task_retention_seconds: float = Field(
        default=5.0,
        ge=0,
        description=(
            "How long a completed or failed task stays in the in-memory registry so "
            "screens can observe the terminal status before it is evicted."
        ),
    )

    result_retention_seconds: float = Field(
        default=7 * 86400.0,
        gt=0,
        description="Persisted results older than this are deleted on background entry",
    )
    view_state_retention_seconds: float = Field(
        default=86400.0,
        gt=0,
        description="View snapshots and task associations older than this are evicted",
    )

    llm_api_key: str = Field(
        default="",
        description="API key for the OpenAI-compatible endpoint",
    )
    llm_base_url: str = Field(
        default="https://api.deepseek.com",
        description="Base URL of the OpenAI-compatible endpoint",
    )
    llm_model: str = Field(
        default="deepseek-chat",
        description="Chat model used for plans, meals and coaching",
    )
    llm_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for chat completions",
    )
    transcription_model: str = Field(
        default="whisper-1",
        description="Model used for audio transcription",
    )

    model_config = SettingsConfigDict(
        env_prefix="NERO_",
        env_file=".env",
        extra="ignore",
    )

    @property
    def results_dir(self) -> Path:
        """Directory holding one result envelope per task id."""

        return self.state_dir / "results"

    @property
    def views_dir(self) -> Path:
        """Directory holding one view-state snapshot per screen kind."""

        return self.state_dir / "views"

    @property
    def associations_file(self) -> Path:
        return self.state_dir / "associations.json"

    @property
    def stale_task_threshold(self) -> timedelta:
        return timedelta(seconds=self.stale_task_threshold_seconds)

    @property
    def result_retention(self) -> timedelta:
        return timedelta(seconds=self.result_retention_seconds)

    @property
    def view_state_retention(self) -> timedelta:
        return timedelta(seconds=self.view_state_retention_seconds)
