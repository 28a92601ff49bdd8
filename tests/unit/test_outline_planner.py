"""Unit tests for segment count math and fail-closed outline planning."""

from __future__ import annotations

import asyncio
import io
import json

import pytest

from echopaths.errors import PlanningError
from echopaths.llm.openai_client import OpenAIChatClient, OpenAIProviderError
from echopaths.story.outline import (
    FILLER_BEAT,
    OpenAIOutlineProvider,
    OutlinePlanner,
    calculate_total_segments,
    parse_outline_payload,
    words_per_segment,
)
from echopaths.telemetry.logger import RunLogger
from tests.fakes import FakeOutlineProvider, make_route, planning_error


@pytest.mark.parametrize(
    ("duration_seconds", "expected"),
    [(0, 1), (1, 1), (59, 1), (60, 1), (61, 2), (150, 3), (180, 3), (28800, 480)],
)
def test_total_segments_is_ceiling_of_minutes_with_floor_of_one(
    duration_seconds: int, expected: int
) -> None:
    """Segment count should be `max(1, ceil(duration / 60))`."""

    assert calculate_total_segments(duration_seconds) == expected


def test_words_per_segment_targets_one_minute_of_narration() -> None:
    assert words_per_segment() == 145
    assert words_per_segment(segment_seconds=30, words_per_minute=145) == 72


def test_planner_truncates_long_provider_outline() -> None:
    """Planner should keep exactly the planned number of beats."""

    provider = FakeOutlineProvider(beats=["one", "two", "three", "four", "five"])
    planner = OutlinePlanner(provider)

    outline = asyncio.run(planner.plan(make_route(), 3))

    assert outline == ("one", "two", "three")
    assert provider.calls == [3]


def test_planner_pads_short_outline_with_filler_beats() -> None:
    planner = OutlinePlanner(FakeOutlineProvider(beats=["arrival", "  "]))

    outline = asyncio.run(planner.plan(make_route(), 4))

    assert outline == ("arrival", FILLER_BEAT, FILLER_BEAT, FILLER_BEAT)


def test_planner_fails_closed_on_planning_error() -> None:
    """Provider errors should degrade to identical filler beats, never raise."""

    sink = io.StringIO()
    planner = OutlinePlanner(
        FakeOutlineProvider(error=planning_error()),
        run_logger=RunLogger(sink=sink),
    )

    outline = asyncio.run(planner.plan(make_route(), 3))

    assert outline == (FILLER_BEAT,) * 3
    assert "stage=outline event=degraded reason=PlanningError" in sink.getvalue()


def test_planner_fails_closed_when_outline_times_out() -> None:
    planner = OutlinePlanner(FakeOutlineProvider(hang=True), timeout_seconds=0.05)

    outline = asyncio.run(planner.plan(make_route(), 2))

    assert outline == (FILLER_BEAT, FILLER_BEAT)


def test_parse_outline_payload_accepts_array_and_chapters_object() -> None:
    assert parse_outline_payload('["a", "b"]') == ["a", "b"]
    assert parse_outline_payload('{"chapters": [" a ", "b"]}') == ["a", "b"]


@pytest.mark.parametrize("raw", ["", "not json", '{"title": "x"}', "[]"])
def test_parse_outline_payload_rejects_unusable_payloads(raw: str) -> None:
    with pytest.raises(PlanningError):
        parse_outline_payload(raw)


def test_openai_outline_provider_requests_json_output(monkeypatch: pytest.MonkeyPatch) -> None:
    """OpenAI outline provider should request JSON mode and parse chapter summaries."""

    captured: dict[str, object] = {}

    def _chat(self: OpenAIChatClient, **kwargs: object) -> str:
        captured.update(kwargs)
        return json.dumps({"chapters": ["Leave the square", "Cross the bridge"]})

    monkeypatch.setattr(OpenAIChatClient, "chat_completion_text", _chat)
    provider = OpenAIOutlineProvider(api_key="test-key")

    beats = asyncio.run(provider.request_outline(make_route(waypoints=("Charles Bridge",)), 2))

    assert beats == ["Leave the square", "Cross the bridge"]
    assert captured["json_output"] is True
    assert "Charles Bridge" in str(captured["user_prompt"])
    assert "exactly 2 chapters" in str(captured["user_prompt"])


def test_openai_outline_provider_maps_provider_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    def _chat(self: OpenAIChatClient, **kwargs: object) -> str:
        raise OpenAIProviderError(
            "OpenAI rate limit reached (HTTP 429).", failure_kind="rate_limited"
        )

    monkeypatch.setattr(OpenAIChatClient, "chat_completion_text", _chat)
    planner = OutlinePlanner(OpenAIOutlineProvider(api_key="test-key"))

    outline = asyncio.run(planner.plan(make_route(), 2))

    assert outline == (FILLER_BEAT, FILLER_BEAT)
