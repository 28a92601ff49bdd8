"""Narrative text generation for one story segment.

Responsibilities:
- Define the async protocol consumed by `SegmentProducer`.
- Provide the OpenAI-backed narrator with provider error mapping.
"""

from __future__ import annotations

from typing import Protocol

from ..errors import GenerationError
from ..llm.openai_client import OpenAIChatClient, OpenAIProviderError, failure_hint
from ..llm.prompts import PromptLibrary
from ..llm.worker import run_cancellable
from ..models.datatypes import RouteDetails
from .outline import words_per_segment


class SegmentTextGenerator(Protocol):
    """Protocol for narrative text providers."""

    async def generate_text(
        self,
        route: RouteDetails,
        index: int,
        total_segments: int,
        beat: str,
        recent_context: str,
    ) -> str:
        """Return narrative text for one segment or raise `GenerationError`."""


class OpenAISegmentTextGenerator:
    """Narrate one segment with OpenAI chat-completions. Never retries."""

    def __init__(
        self,
        model: str = "gpt-4.1-mini",
        provider_id: str = "openai",
        api_key: str | None = None,
        words_per_minute: int = 145,
        segment_seconds: int = 60,
        request_timeout_seconds: float = 60.0,
    ) -> None:
        self.model = model
        self.provider_id = provider_id
        self.target_words = words_per_segment(segment_seconds, words_per_minute)
        self.client = OpenAIChatClient(api_key=api_key, timeout_seconds=request_timeout_seconds)
        self.prompts = PromptLibrary()

    async def generate_text(
        self,
        route: RouteDetails,
        index: int,
        total_segments: int,
        beat: str,
        recent_context: str,
    ) -> str:
        try:
            text = await run_cancellable(
                self.client.chat_completion_text,
                model=self.model,
                system_prompt=self.prompts.segment_system_prompt(),
                user_prompt=self.prompts.segment_prompt(
                    route,
                    index,
                    total_segments,
                    beat,
                    recent_context,
                    self.target_words,
                ),
            )
        except OpenAIProviderError as exc:
            raise GenerationError(
                f"Text generation failed for segment {index}: {exc}",
                index=index,
                hint=failure_hint(exc.failure_kind),
            ) from exc

        if not text.strip():
            raise GenerationError(
                f"Text generation returned an empty response for segment {index}.",
                index=index,
            )
        return text.strip()
