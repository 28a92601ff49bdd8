"""Provider factory helpers for outline, narrative, and speech stages.

Responsibilities:
- Resolve provider identifiers to concrete stage implementations.
- Keep session wiring independent from concrete provider class construction.

Notes:
- Only `openai` is implemented at the moment.
"""

from __future__ import annotations

from .story.outline import OpenAIOutlineProvider, OutlineProvider
from .story.text import OpenAISegmentTextGenerator, SegmentTextGenerator
from .tts.synthesizer import OpenAISegmentAudioSynthesizer, SegmentAudioSynthesizer


class ProviderFactory:
    """Factory for provider-backed stage clients used by a story session."""

    @staticmethod
    def create_outline_provider(
        provider_id: str,
        model: str,
        api_key: str | None = None,
        request_timeout_seconds: float = 60.0,
    ) -> OutlineProvider:
        """Create an outline source for a configured provider identifier."""

        if provider_id == "openai":
            return OpenAIOutlineProvider(
                model=model,
                provider_id=provider_id,
                api_key=api_key,
                request_timeout_seconds=request_timeout_seconds,
            )
        raise ValueError(f"Unsupported outline provider `{provider_id}`.")

    @staticmethod
    def create_text_generator(
        provider_id: str,
        model: str,
        api_key: str | None = None,
        words_per_minute: int = 145,
        segment_seconds: int = 60,
        request_timeout_seconds: float = 60.0,
    ) -> SegmentTextGenerator:
        """Create a narrative text generator for a configured provider identifier."""

        if provider_id == "openai":
            return OpenAISegmentTextGenerator(
                model=model,
                provider_id=provider_id,
                api_key=api_key,
                words_per_minute=words_per_minute,
                segment_seconds=segment_seconds,
                request_timeout_seconds=request_timeout_seconds,
            )
        raise ValueError(f"Unsupported text provider `{provider_id}`.")

    @staticmethod
    def create_audio_synthesizer(
        provider_id: str,
        model: str,
        api_key: str | None = None,
        request_timeout_seconds: float = 100.0,
    ) -> SegmentAudioSynthesizer:
        """Create a speech synthesizer for a configured provider identifier."""

        if provider_id == "openai":
            return OpenAISegmentAudioSynthesizer(
                model=model,
                provider_id=provider_id,
                api_key=api_key,
                request_timeout_seconds=request_timeout_seconds,
            )
        raise ValueError(f"Unsupported TTS provider `{provider_id}`.")
