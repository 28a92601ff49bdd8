"""Segment speech synthesis.

Responsibilities:
- Define the async protocol consumed by `SegmentProducer`.
- Provide the OpenAI-backed synthesizer returning decoded PCM buffers.
"""

from __future__ import annotations

from typing import Protocol

from ..audio.pcm import decode_pcm
from ..errors import SynthesisError
from ..llm.openai_client import OpenAIProviderError, OpenAISpeechClient, failure_hint
from ..llm.worker import run_cancellable
from ..models.datatypes import DecodedAudio
from .voices import VoiceProfile


class SegmentAudioSynthesizer(Protocol):
    """Protocol for TTS provider implementations."""

    async def synthesize(self, text: str, voice: VoiceProfile) -> DecodedAudio:
        """Return decoded audio for narrative text or raise `SynthesisError`."""


class OpenAISegmentAudioSynthesizer:
    """OpenAI-backed synthesizer requesting raw 24 kHz mono PCM."""

    def __init__(
        self,
        model: str = "gpt-4o-mini-tts",
        provider_id: str = "openai",
        api_key: str | None = None,
        request_timeout_seconds: float = 100.0,
    ) -> None:
        """Initialize OpenAI-backed TTS synthesizer settings."""

        self.model = model
        self.provider_id = provider_id
        self.client = OpenAISpeechClient(api_key=api_key, timeout_seconds=request_timeout_seconds)

    async def synthesize(self, text: str, voice: VoiceProfile) -> DecodedAudio:
        try:
            payload = await run_cancellable(
                self.client.synthesize_pcm,
                model=self.model,
                voice=voice.provider_voice_id,
                text=text,
                speed=max(0.25, min(4.0, voice.speaking_rate)),
                instructions=voice.instructions,
            )
        except OpenAIProviderError as exc:
            raise SynthesisError(
                f"Speech synthesis failed: {exc}",
                hint=failure_hint(exc.failure_kind),
            ) from exc

        try:
            return decode_pcm(payload)
        except ValueError as exc:
            raise SynthesisError(f"Speech synthesis returned unusable audio: {exc}") from exc
