"""Segment buffering control loop.

Responsibilities:
- Decide when the next segment must be produced to stay ahead of playback.
- Guarantee that at most one production runs at any time.
- Record background failures and apply the configured gap policy.

Key types:
- `BufferScheduler`: control loop task owning an event queue.
- `ProductionSlot`: capacity-one guard exposed through `try_acquire()`.
- `PlaybackAdvanced`, `SegmentCompleted`, `SegmentFailed`: loop events.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum

from ..errors import StoryStageError
from ..models.datatypes import AudioStory, RouteDetails
from ..telemetry.logger import RunLogger
from .producer import SegmentProducer
from .store import StoryStore

LOOKAHEAD = 3
CONTEXT_CHARS = 3000
MAX_SEGMENT_ATTEMPTS = 3
FIRST_BEAT_FALLBACK = "Begin the journey."
NEXT_BEAT_FALLBACK = "Continue the journey."


class GapPolicy(str, Enum):
    """What happens to an index whose background production failed."""

    RETRY = "retry"
    SKIP = "skip"


def should_request_segment(
    generated_count: int,
    playback_position: int,
    total_segments: int,
    in_flight: bool,
    lookahead: int = LOOKAHEAD,
) -> bool:
    """Return whether the next segment should be requested now."""

    return (
        generated_count < playback_position + lookahead
        and generated_count < total_segments
        and not in_flight
    )


class ProductionSlot:
    """Capacity-one guard for segment production."""

    def __init__(self) -> None:
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        """Take the slot if it is free; never blocks."""

        if self._held:
            return False
        self._held = True
        return True

    def release(self) -> None:
        self._held = False


@dataclass(frozen=True, slots=True)
class PlaybackAdvanced:
    position: int


@dataclass(frozen=True, slots=True)
class SegmentCompleted:
    index: int
    inserted: bool


@dataclass(frozen=True, slots=True)
class SegmentFailed:
    index: int
    error: StoryStageError


_LoopEvent = PlaybackAdvanced | SegmentCompleted | SegmentFailed


@dataclass(frozen=True, slots=True)
class SegmentFailure:
    """Background production failure kept for diagnostics."""

    index: int
    attempt: int
    stage: str
    error_type: str
    detail: str


class BufferScheduler:
    """Keep the story buffered `lookahead` segments ahead of playback.

    The control loop evaluates the trigger when it starts, when playback
    advances and when a production completes. A failed production is recorded
    but does not re-evaluate the trigger; buffering resumes on the next
    observation.
    """

    def __init__(
        self,
        store: StoryStore,
        producer: SegmentProducer,
        route: RouteDetails,
        lookahead: int = LOOKAHEAD,
        gap_policy: GapPolicy = GapPolicy.RETRY,
        max_segment_attempts: int = MAX_SEGMENT_ATTEMPTS,
        context_chars: int = CONTEXT_CHARS,
        run_logger: RunLogger | None = None,
    ) -> None:
        self._store = store
        self._producer = producer
        self._route = route
        self._lookahead = lookahead
        self._gap_policy = gap_policy
        self._max_segment_attempts = max(1, max_segment_attempts)
        self._context_chars = context_chars
        self._run_logger = run_logger

        self._slot = ProductionSlot()
        self._playback_position = 0
        self._attempts: defaultdict[int, int] = defaultdict(int)
        self._abandoned: set[int] = set()
        self._failures: list[SegmentFailure] = []

        self._loop: asyncio.AbstractEventLoop | None = None
        self._events: asyncio.Queue[_LoopEvent] | None = None
        self._control_task: asyncio.Task[None] | None = None
        self._production_task: asyncio.Task[None] | None = None
        self._changed: asyncio.Event | None = None

    @property
    def running(self) -> bool:
        return self._control_task is not None and not self._control_task.done()

    @property
    def in_flight(self) -> bool:
        return self._slot.held

    @property
    def playback_position(self) -> int:
        return self._playback_position

    @property
    def failures(self) -> tuple[SegmentFailure, ...]:
        return tuple(self._failures)

    @property
    def abandoned_indices(self) -> frozenset[int]:
        return frozenset(self._abandoned)

    def attempts(self, index: int) -> int:
        return self._attempts.get(index, 0)

    def start(self, playback_position: int = 0) -> None:
        """Start the control loop inside the running event loop and observe once."""

        if self.running:
            raise RuntimeError("Buffer scheduler is already running.")
        if not self._store.has_story():
            raise RuntimeError("Buffer scheduler needs a seeded story before it starts.")
        self._loop = asyncio.get_running_loop()
        self._events = asyncio.Queue()
        self._changed = asyncio.Event()
        self._playback_position = playback_position
        self._control_task = self._loop.create_task(self._run())
        self._evaluate()

    async def stop(self) -> None:
        """Stop the loop, cancelling and releasing any in-flight production."""

        pending = [
            task
            for task in (self._control_task, self._production_task)
            if task is not None and not task.done()
        ]
        self._control_task = None
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._production_task = None
        self._slot.release()
        self._notify()

    def report_playback_position(self, position: int) -> None:
        """Report the index now playing; safe to call from any thread."""

        if position < 0:
            raise ValueError("Playback position must not be negative.")
        if self._loop is None or self._events is None or not self.running:
            return
        event = PlaybackAdvanced(position)
        try:
            current_loop = asyncio.get_running_loop()
        except RuntimeError:
            current_loop = None
        if current_loop is self._loop:
            self._events.put_nowait(event)
        else:
            self._loop.call_soon_threadsafe(self._events.put_nowait, event)

    def is_settled(self) -> bool:
        """Return whether no production runs and no event awaits processing."""

        if self._events is None:
            return True
        return not self._slot.held and self._events.empty()

    async def wait_for_change(self) -> None:
        """Wait until the control loop has processed at least one more event."""

        if self._changed is None:
            return
        await self._changed.wait()

    async def wait_until_settled(self) -> None:
        while self.running and not self.is_settled():
            await self.wait_for_change()

    async def _run(self) -> None:
        events = self._require_events()
        while True:
            event = await events.get()
            if isinstance(event, PlaybackAdvanced):
                self._on_playback_advanced(event)
            elif isinstance(event, SegmentCompleted):
                self._on_segment_completed(event)
            else:
                self._on_segment_failed(event)
            self._notify()

    def _on_playback_advanced(self, event: PlaybackAdvanced) -> None:
        self._playback_position = event.position
        if self._run_logger is not None:
            self._run_logger.log_debug("buffer", "playback_advanced", position=event.position)
        self._evaluate()

    def _on_segment_completed(self, event: SegmentCompleted) -> None:
        self._slot.release()
        if self._run_logger is not None and not event.inserted:
            self._run_logger.log_debug("buffer", "duplicate_ignored", index=event.index)
        self._evaluate()

    def _on_segment_failed(self, event: SegmentFailed) -> None:
        # The slot stays held until the failure is recorded, so no report can
        # re-dispatch the index before its gap policy is applied.
        self._slot.release()
        error = event.error
        attempt = self._attempts[event.index]
        self._failures.append(
            SegmentFailure(
                index=event.index,
                attempt=attempt,
                stage=error.stage,
                error_type=type(error).__name__,
                detail=error.detail,
            )
        )
        if self._run_logger is not None:
            self._run_logger.log_stage_failure(
                "buffer",
                type(error).__name__,
                index=event.index,
                attempt=attempt,
                failed_stage=error.stage,
            )
        if self._gap_policy is GapPolicy.SKIP or attempt >= self._max_segment_attempts:
            self._abandoned.add(event.index)
            if self._run_logger is not None:
                self._run_logger.log_degraded("buffer", "gap_abandoned", index=event.index)

    def _evaluate(self) -> None:
        story = self._store.snapshot()
        covered_count = len(self._covered_indices(story))
        if not should_request_segment(
            covered_count,
            self._playback_position,
            story.total_segments_estimate,
            self._slot.held,
            self._lookahead,
        ):
            return
        if self._loop is None:
            raise RuntimeError("Buffer scheduler has not been started.")
        if not self._slot.try_acquire():
            return
        index = self._next_index(story)
        self._attempts[index] += 1
        if self._run_logger is not None:
            self._run_logger.log_debug(
                "buffer",
                "dispatch",
                index=index,
                attempt=self._attempts[index],
                position=self._playback_position,
            )
        self._production_task = self._loop.create_task(self._produce(index, story))

    def _covered_indices(self, story: AudioStory) -> set[int]:
        return set(story.indices()) | self._abandoned

    def _next_index(self, story: AudioStory) -> int:
        covered = self._covered_indices(story)
        index = 1
        while index in covered:
            index += 1
        return index

    async def _produce(self, index: int, story: AudioStory) -> None:
        """Run one production and post its outcome; the loop releases the slot."""

        events = self._require_events()
        default_beat = FIRST_BEAT_FALLBACK if index == 1 else NEXT_BEAT_FALLBACK
        try:
            segment = await self._producer.produce(
                self._route,
                index,
                story.total_segments_estimate,
                story.beat(index, default_beat),
                story.recent_text(self._context_chars),
            )
            outcome: SegmentCompleted | SegmentFailed = SegmentCompleted(
                index=index,
                inserted=self._store.merge(segment),
            )
        except StoryStageError as exc:
            outcome = SegmentFailed(index=index, error=exc)
        except asyncio.CancelledError:
            self._slot.release()
            raise
        except Exception as exc:
            error = StoryStageError(
                stage="segment",
                detail=f"Segment {index} production failed: {type(exc).__name__}: {exc}",
            )
            error.__cause__ = exc
            outcome = SegmentFailed(index=index, error=error)
        events.put_nowait(outcome)

    def _require_events(self) -> asyncio.Queue[_LoopEvent]:
        if self._events is None:
            raise RuntimeError("Buffer scheduler has not been started.")
        return self._events

    def _notify(self) -> None:
        if self._changed is None:
            return
        self._changed.set()
        self._changed = asyncio.Event()
