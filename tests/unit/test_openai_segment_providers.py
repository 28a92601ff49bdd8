"""Unit tests for the OpenAI-backed narrator, synthesizer and voices."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from echopaths.errors import GenerationError, SynthesisError
from echopaths.llm.openai_client import OpenAIChatClient, OpenAIProviderError, OpenAISpeechClient
from echopaths.llm.prompts import PromptLibrary
from echopaths.models.datatypes import StoryStyle
from echopaths.story.text import OpenAISegmentTextGenerator
from echopaths.tts.synthesizer import OpenAISegmentAudioSynthesizer
from echopaths.tts.voices import voice_for_style
from tests.fakes import make_route


def test_text_generator_sends_segment_prompt(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}

    def _fake_chat(self: OpenAIChatClient, **kwargs: Any) -> str:
        captured.update(kwargs)
        return "  Fog rolls over the river.  "

    monkeypatch.setattr(OpenAIChatClient, "chat_completion_text", _fake_chat)
    generator = OpenAISegmentTextGenerator(model="gpt-test", api_key="sk-test")

    text = asyncio.run(
        generator.generate_text(make_route(), 2, 3, "Cross the bridge", "The gate closed.")
    )

    assert text == "Fog rolls over the river."
    assert captured["model"] == "gpt-test"
    assert "Generate segment 2 of 3" in captured["user_prompt"]
    assert "Current Goal: Cross the bridge" in captured["user_prompt"]
    assert "The gate closed." in captured["user_prompt"]
    assert "about 145 words" in captured["user_prompt"]
    assert captured["cancel_event"] is not None


def test_text_generator_maps_provider_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    def _failing_chat(self: OpenAIChatClient, **kwargs: Any) -> str:
        raise OpenAIProviderError("OpenAI rate limit reached", failure_kind="rate_limited")

    monkeypatch.setattr(OpenAIChatClient, "chat_completion_text", _failing_chat)

    with pytest.raises(GenerationError) as exc_info:
        generator = OpenAISegmentTextGenerator(api_key="sk-test")
        asyncio.run(generator.generate_text(make_route(), 4, 6, "b", ""))

    assert exc_info.value.stage == "text"
    assert exc_info.value.index == 4
    assert exc_info.value.hint == "Wait a moment and start the route again."


def test_text_generator_rejects_empty_narration(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(OpenAIChatClient, "chat_completion_text", lambda self, **kwargs: "   ")

    with pytest.raises(GenerationError, match="empty response"):
        generator = OpenAISegmentTextGenerator(api_key="sk-test")
        asyncio.run(generator.generate_text(make_route(), 1, 1, "b", ""))


def test_synthesizer_decodes_pcm_with_style_voice(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}

    def _fake_speech(self: OpenAISpeechClient, **kwargs: Any) -> bytes:
        captured.update(kwargs)
        return b"\x00\x00" * 2400

    monkeypatch.setattr(OpenAISpeechClient, "synthesize_pcm", _fake_speech)
    synthesizer = OpenAISegmentAudioSynthesizer(api_key="sk-test")

    audio = asyncio.run(synthesizer.synthesize("Hello", voice_for_style(StoryStyle.CHILDREN)))

    assert audio.frame_count == 2400
    assert captured["voice"] == "fable"
    assert captured["model"] == "gpt-4o-mini-tts"
    assert captured["speed"] == 1.0


def test_synthesizer_maps_provider_and_payload_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    synthesizer = OpenAISegmentAudioSynthesizer(api_key="sk-test")
    noir = voice_for_style(StoryStyle.NOIR)

    def _failing_speech(self: OpenAISpeechClient, **kwargs: Any) -> bytes:
        raise OpenAIProviderError("OpenAI authentication failed", failure_kind="invalid_api_key")

    monkeypatch.setattr(OpenAISpeechClient, "synthesize_pcm", _failing_speech)
    with pytest.raises(SynthesisError) as exc_info:
        asyncio.run(synthesizer.synthesize("x", noir))
    assert exc_info.value.stage == "audio"
    assert exc_info.value.hint is not None

    monkeypatch.setattr(OpenAISpeechClient, "synthesize_pcm", lambda self, **kwargs: b"\x00")
    with pytest.raises(SynthesisError, match="unusable audio"):
        asyncio.run(synthesizer.synthesize("x", noir))


@pytest.mark.parametrize(
    ("style", "voice_id"),
    [
        (StoryStyle.NOIR, "onyx"),
        (StoryStyle.CHILDREN, "fable"),
        (StoryStyle.HISTORICAL, "sage"),
        (StoryStyle.FANTASY, "ballad"),
        (StoryStyle.IMMERSIVE, "alloy"),
    ],
)
def test_each_style_has_a_default_voice(style: StoryStyle, voice_id: str) -> None:
    assert voice_for_style(style).provider_voice_id == voice_id


def test_voice_override_keeps_style_instructions() -> None:
    profile = voice_for_style(StoryStyle.NOIR, voice_override="verse")

    assert profile.provider_voice_id == "verse"
    assert profile.instructions == voice_for_style(StoryStyle.NOIR).instructions


def test_outline_prompt_lists_stops_and_chapter_count() -> None:
    route = make_route(style=StoryStyle.FANTASY, waypoints=("Charles Bridge", "Kampa"))

    prompt = PromptLibrary().outline_prompt(route, 7)

    assert "exactly 7 chapters" in prompt
    assert "Intermediate stops: Charles Bridge, Kampa." in prompt
    assert "Fantasy Adventure" in prompt


def test_opening_segment_prompt_marks_missing_context() -> None:
    prompt = PromptLibrary().segment_prompt(make_route(), 1, 3, "Set off", "", 145)

    assert "(this is the opening chapter)" in prompt
    assert "Immersive" in prompt
