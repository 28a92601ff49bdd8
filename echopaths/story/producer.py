"""Single-segment production: narrative text followed by speech.

Responsibilities:
- Compose the text and audio stages for one segment index.
- Apply an independent deadline to each stage and surface `TimedOut`.
- Attach text and audio to the `StorySegment` together.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from ..errors import StoryStageError, TimedOut
from ..models.datatypes import RouteDetails, StorySegment
from ..telemetry.logger import RunLogger
from ..tts.synthesizer import SegmentAudioSynthesizer
from ..tts.voices import voice_for_style
from .text import SegmentTextGenerator

TEXT_TIMEOUT_SECONDS = 60.0
AUDIO_TIMEOUT_SECONDS = 100.0

_StageResult = TypeVar("_StageResult")


class SegmentProducer:
    """Produce one fully-formed `StorySegment`; never retries.

    A stage deadline cancels the awaiting task, which in turn signals the
    provider worker to abandon its HTTP transfer.
    """

    def __init__(
        self,
        text_generator: SegmentTextGenerator,
        audio_synthesizer: SegmentAudioSynthesizer,
        text_timeout_seconds: float = TEXT_TIMEOUT_SECONDS,
        audio_timeout_seconds: float = AUDIO_TIMEOUT_SECONDS,
        voice_override: str | None = None,
        run_logger: RunLogger | None = None,
    ) -> None:
        self._text_generator = text_generator
        self._audio_synthesizer = audio_synthesizer
        self.text_timeout_seconds = text_timeout_seconds
        self.audio_timeout_seconds = audio_timeout_seconds
        self._voice_override = voice_override
        self._run_logger = run_logger

    async def produce(
        self,
        route: RouteDetails,
        index: int,
        total_segments: int,
        beat: str,
        recent_context: str,
    ) -> StorySegment:
        """Generate text, then synthesize it, within the per-stage deadlines.

        Raises:
            TimedOut: When either stage exceeds its deadline.
            GenerationError: When the text provider fails or returns nothing.
            SynthesisError: When the speech provider returns no usable audio.
        """

        if self._run_logger is not None:
            self._run_logger.log_stage_start("segment", index=index, total=total_segments)
        try:
            text = await self._run_stage(
                "text",
                index,
                self.text_timeout_seconds,
                self._text_generator.generate_text(
                    route, index, total_segments, beat, recent_context
                ),
            )
            voice = voice_for_style(route.story_style, self._voice_override)
            audio = await self._run_stage(
                "audio",
                index,
                self.audio_timeout_seconds,
                self._audio_synthesizer.synthesize(text, voice),
            )
        except StoryStageError as exc:
            if self._run_logger is not None:
                self._run_logger.log_stage_failure(
                    "segment", type(exc).__name__, index=index, failed_stage=exc.stage
                )
            raise

        if self._run_logger is not None:
            self._run_logger.log_stage_complete(
                "segment",
                index=index,
                audio_seconds=f"{audio.duration_seconds:.2f}",
            )
        return StorySegment(index=index, text=text, audio=audio)

    @staticmethod
    async def _run_stage(
        stage: str,
        index: int,
        timeout_seconds: float,
        call: Awaitable[_StageResult],
    ) -> _StageResult:
        try:
            return await asyncio.wait_for(call, timeout=timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise TimedOut(stage=stage, index=index, timeout_seconds=timeout_seconds) from exc
