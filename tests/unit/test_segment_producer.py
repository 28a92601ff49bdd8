"""Unit tests for per-stage deadlines and cancellation hand-off."""

from __future__ import annotations

import asyncio
import threading

import pytest

from echopaths.errors import GenerationError, TimedOut
from echopaths.llm.worker import run_cancellable
from echopaths.models.datatypes import StoryStyle
from echopaths.story.producer import SegmentProducer
from tests.fakes import HANG, FakeAudioSynthesizer, FakeTextGenerator, generation_error, make_route


def test_produce_attaches_text_and_audio_together() -> None:
    text_generator = FakeTextGenerator()
    producer = SegmentProducer(text_generator, FakeAudioSynthesizer())

    segment = asyncio.run(producer.produce(make_route(), 2, 3, "Cross the bridge", "earlier text"))

    assert segment.index == 2
    assert segment.text == "Chapter 2 of 3: Cross the bridge"
    assert segment.audio.frame_count == 2400
    assert text_generator.calls == [(2, "Cross the bridge", "earlier text")]


def test_text_stage_timeout_raises_timed_out_without_synthesizing() -> None:
    synthesizer = FakeAudioSynthesizer()
    producer = SegmentProducer(
        FakeTextGenerator(failures={1: [HANG]}),
        synthesizer,
        text_timeout_seconds=0.05,
    )

    with pytest.raises(TimedOut) as exc_info:
        asyncio.run(producer.produce(make_route(), 1, 3, "beat", ""))

    assert exc_info.value.stage == "text"
    assert exc_info.value.index == 1
    assert "timed out for segment 1" in exc_info.value.detail
    assert synthesizer.voices == []


def test_audio_stage_has_an_independent_deadline() -> None:
    producer = SegmentProducer(
        FakeTextGenerator(),
        FakeAudioSynthesizer(hang_on="Chapter 3"),
        text_timeout_seconds=0.05,
        audio_timeout_seconds=0.05,
    )

    with pytest.raises(TimedOut) as exc_info:
        asyncio.run(producer.produce(make_route(), 3, 3, "beat", ""))

    assert exc_info.value.stage == "audio"
    assert exc_info.value.timeout_seconds == 0.05


def test_generation_errors_propagate_unchanged() -> None:
    producer = SegmentProducer(
        FakeTextGenerator(failures={2: [generation_error(2)]}),
        FakeAudioSynthesizer(),
    )

    with pytest.raises(GenerationError):
        asyncio.run(producer.produce(make_route(), 2, 3, "beat", ""))


def test_voice_follows_story_style_unless_overridden() -> None:
    synthesizer = FakeAudioSynthesizer()
    styled = SegmentProducer(FakeTextGenerator(), synthesizer)
    overridden = SegmentProducer(FakeTextGenerator(), synthesizer, voice_override="verse")

    asyncio.run(styled.produce(make_route(style=StoryStyle.NOIR), 1, 1, "beat", ""))
    asyncio.run(overridden.produce(make_route(style=StoryStyle.NOIR), 1, 1, "beat", ""))

    assert synthesizer.voices == ["onyx", "verse"]


def test_cancelled_call_signals_worker_thread() -> None:
    """A stage deadline should set the worker's cancel event so it can stop early."""

    observed: list[bool] = []

    def _blocking_call(*, cancel_event: threading.Event) -> str:
        observed.append(cancel_event.wait(timeout=5.0))
        return "late"

    async def _scenario() -> None:
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(run_cancellable(_blocking_call), timeout=0.05)

    asyncio.run(_scenario())

    assert observed == [True]
