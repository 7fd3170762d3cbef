"""LLM package initialization."""

from nero_tasks.llm.openai_provider import OpenAIProvider
from nero_tasks.llm.operations import AIOperations
from nero_tasks.llm.provider import LLMError, LLMProvider

__all__ = [
    "AIOperations",
    "LLMError",
    "LLMProvider",
    "OpenAIProvider",
]
