"""Abstract base class for LLM providers."""

from abc import ABC, abstractmethod
from typing import Any


class LLMError(RuntimeError):
    """Raised when a provider response cannot be turned into a payload."""


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    This interface allows pluggable backends behind the AI operations.
    """

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, str]],
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> str:
        """Generate chat completion from messages.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            max_tokens: Maximum tokens to generate.
            temperature: Sampling temperature.
            **kwargs: Additional provider-specific parameters.

        Returns:
            Generated chat response.
        """

    @abstractmethod
    async def transcribe(self, audio: bytes, filename: str = "recording.m4a") -> str:
        """Transcribe recorded audio to text.

        Args:
            audio: Raw audio file content.
            filename: Name hinting the audio container format.

        Returns:
            The transcribed text.
        """
