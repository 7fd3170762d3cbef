"""OpenAI-compatible LLM provider implementation."""

import logging
from typing import Any

from openai import AsyncOpenAI

from nero_tasks.config import TaskSettings
from nero_tasks.llm.provider import LLMProvider

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """Provider for any endpoint that speaks the OpenAI API (DeepSeek by default)."""

    def __init__(self, settings: TaskSettings, client: AsyncOpenAI | None = None) -> None:
        """Initialize the provider.

        Args:
            settings: Task settings carrying the endpoint and model.
            client: Pre-built client (used by tests).

        Raises:
            ValueError: If no API key is configured and no client is given.
        """
        if client is None and not settings.llm_api_key:
            raise ValueError("NERO_LLM_API_KEY is required")

        self.settings = settings
        self.client = client or AsyncOpenAI(
            api_key=settings.llm_api_key,
            base_url=settings.llm_base_url,
        )
        self.model = settings.llm_model
        self.temperature = settings.llm_temperature

        logger.info(f"OpenAI-compatible provider initialized with model: {self.model}")

    async def chat(
        self,
        messages: list[dict[str, str]],
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> str:
        temp = temperature if temperature is not None else self.temperature

        logger.debug(f"Generating chat completion with {len(messages)} messages")

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,  # type: ignore
            max_tokens=max_tokens,
            temperature=temp,
            stream=False,
            **kwargs,
        )

        content = response.choices[0].message.content or ""
        logger.debug(f"Generated {len(content)} characters")

        return content

    async def transcribe(self, audio: bytes, filename: str = "recording.m4a") -> str:
        logger.debug(f"Transcribing {len(audio)} bytes of audio")

        response = await self.client.audio.transcriptions.create(
            model=self.settings.transcription_model,
            file=(filename, audio),
        )
        return response.text.strip()
