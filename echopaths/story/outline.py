"""Story outline planning.

Responsibilities:
- Derive the segment count from the route duration.
- Request per-segment story beats from an outline provider.
- Fail closed: any provider failure yields a filler outline of the same length.

Key types:
- `OutlinePlanner`: fail-closed planning facade used by the session.
- `OutlineProvider`: async protocol for outline sources.
- `OpenAIOutlineProvider`: JSON-mode chat-completions outline source.
"""

from __future__ import annotations

import asyncio
import json
import math
from typing import Protocol

from ..errors import PlanningError
from ..llm.openai_client import OpenAIChatClient, OpenAIProviderError
from ..llm.prompts import PromptLibrary
from ..llm.worker import run_cancellable
from ..models.datatypes import Outline, RouteDetails
from ..telemetry.logger import RunLogger

TARGET_SEGMENT_DURATION_SECONDS = 60
WORDS_PER_MINUTE = 145
FILLER_BEAT = "Continue the immersive journey through the landscape."


def calculate_total_segments(
    duration_seconds: float,
    segment_seconds: int = TARGET_SEGMENT_DURATION_SECONDS,
) -> int:
    """Return `max(1, ceil(duration / segment_seconds))`."""

    return max(1, math.ceil(duration_seconds / segment_seconds))


def words_per_segment(
    segment_seconds: int = TARGET_SEGMENT_DURATION_SECONDS,
    words_per_minute: int = WORDS_PER_MINUTE,
) -> int:
    """Return the narration word target for one segment."""

    return round(segment_seconds / 60 * words_per_minute)


def filler_outline(total_segments: int) -> Outline:
    return tuple(FILLER_BEAT for _ in range(max(1, total_segments)))


def fit_outline(beats: list[str], total_segments: int) -> Outline:
    """Truncate or pad provider beats to exactly `total_segments` entries."""

    fitted = [beat.strip() or FILLER_BEAT for beat in beats[:total_segments]]
    fitted.extend(FILLER_BEAT for _ in range(total_segments - len(fitted)))
    return tuple(fitted)


class OutlineProvider(Protocol):
    """Protocol for outline sources."""

    async def request_outline(self, route: RouteDetails, total_segments: int) -> list[str]:
        """Return up to `total_segments` beat strings or raise `PlanningError`."""


class OpenAIOutlineProvider:
    """Request a JSON outline from OpenAI chat-completions."""

    def __init__(
        self,
        model: str = "gpt-4.1-mini",
        provider_id: str = "openai",
        api_key: str | None = None,
        request_timeout_seconds: float = 60.0,
    ) -> None:
        self.model = model
        self.provider_id = provider_id
        self.client = OpenAIChatClient(api_key=api_key, timeout_seconds=request_timeout_seconds)
        self.prompts = PromptLibrary()

    async def request_outline(self, route: RouteDetails, total_segments: int) -> list[str]:
        try:
            raw = await run_cancellable(
                self.client.chat_completion_text,
                model=self.model,
                system_prompt=self.prompts.outline_system_prompt(),
                user_prompt=self.prompts.outline_prompt(route, total_segments),
                json_output=True,
            )
        except OpenAIProviderError as exc:
            raise PlanningError(f"Outline request failed: {exc}") from exc
        return parse_outline_payload(raw)


def parse_outline_payload(raw: str) -> list[str]:
    """Parse a JSON array, or an object wrapping one array, into beat strings."""

    if not raw.strip():
        raise PlanningError("No outline generated.")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise PlanningError("Outline response is not valid JSON.") from exc

    if isinstance(payload, dict):
        payload = next((value for value in payload.values() if isinstance(value, list)), None)
    if not isinstance(payload, list):
        raise PlanningError("Outline response does not contain a list of chapters.")

    beats = [str(item).strip() for item in payload if isinstance(item, (str, int, float))]
    if not beats:
        raise PlanningError("Outline response contains no chapter summaries.")
    return beats


class OutlinePlanner:
    """Plan the per-segment story beats for one session; never raises on provider failure."""

    def __init__(
        self,
        provider: OutlineProvider,
        timeout_seconds: float = 60.0,
        run_logger: RunLogger | None = None,
    ) -> None:
        self._provider = provider
        self._timeout_seconds = timeout_seconds
        self._run_logger = run_logger

    async def plan(self, route: RouteDetails, total_segments: int) -> Outline:
        """Return exactly `total_segments` beats, degrading to filler beats on failure."""

        total_segments = max(1, total_segments)
        if self._run_logger is not None:
            self._run_logger.log_stage_start("outline", total_segments=total_segments)
        try:
            beats = await asyncio.wait_for(
                self._provider.request_outline(route, total_segments),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError:
            self._on_degraded(
                PlanningError(f"Outline generation timed out after {self._timeout_seconds:g}s.")
            )
            return filler_outline(total_segments)
        except PlanningError as exc:
            self._on_degraded(exc)
            return filler_outline(total_segments)

        outline = fit_outline(beats, total_segments)
        if self._run_logger is not None:
            self._run_logger.log_stage_complete("outline", beats=len(outline))
        return outline

    def _on_degraded(self, exc: PlanningError) -> None:
        if self._run_logger is not None:
            self._run_logger.log_degraded("outline", type(exc).__name__)
