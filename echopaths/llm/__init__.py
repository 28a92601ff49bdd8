"""LLM-facing abstractions for outline and narrative generation.

This package defines the OpenAI HTTP clients and the prompt library used by
the story stages.
"""

from .openai_client import (
    OpenAIChatClient,
    OpenAIProviderError,
    OpenAIRequestCancelled,
    OpenAISpeechClient,
)
from .prompts import PromptLibrary

__all__ = [
    "OpenAIChatClient",
    "OpenAIProviderError",
    "OpenAIRequestCancelled",
    "OpenAISpeechClient",
    "PromptLibrary",
]
