"""Simulated listener consuming the buffered story in order.

Responsibilities:
- Play segments 1..N in order, waiting for the scheduler to buffer each one.
- Report the playback position, which re-arms the scheduler.
- Skip abandoned gaps and stop once buffering can no longer progress.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable

from ..models.datatypes import StorySegment
from ..telemetry.logger import RunLogger
from .scheduler import BufferScheduler
from .store import StoryStore

SegmentSink = Callable[[StorySegment], None]


@dataclass(slots=True)
class PlaybackReport:
    """Outcome of one simulated listening pass."""

    played: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    completed: bool = False


class PlaybackDriver:
    """Drive a `BufferScheduler` the way a listener pressing play would.

    `playback_speed` scales real-time waiting per segment: `1.0` waits the full
    audio duration, `0` plays instantly.
    """

    def __init__(
        self,
        store: StoryStore,
        scheduler: BufferScheduler,
        sink: SegmentSink | None = None,
        playback_speed: float = 0.0,
        run_logger: RunLogger | None = None,
    ) -> None:
        self._store = store
        self._scheduler = scheduler
        self._sink = sink
        self._playback_speed = max(0.0, playback_speed)
        self._run_logger = run_logger

    async def play(self) -> PlaybackReport:
        report = PlaybackReport()
        total_segments = self._store.snapshot().total_segments_estimate
        position = 0
        for index in range(1, total_segments + 1):
            segment = await self._await_segment(index, position)
            if segment is None:
                if index in self._scheduler.abandoned_indices:
                    report.skipped.append(index)
                    if self._run_logger is not None:
                        self._run_logger.log_degraded("playback", "gap_skipped", index=index)
                    continue
                return report

            position = index
            self._scheduler.report_playback_position(position)
            if self._run_logger is not None:
                self._run_logger.log_debug("playback", "playing", index=index)
            if self._sink is not None:
                self._sink(segment)
            report.played.append(index)
            if self._playback_speed > 0:
                await asyncio.sleep(segment.audio.duration_seconds * self._playback_speed)

        report.completed = True
        return report

    async def _await_segment(self, index: int, position: int) -> StorySegment | None:
        """Wait for `index` to be buffered; `None` when abandoned or the loop stopped."""

        while True:
            segment = self._store.snapshot().segment(index)
            if segment is not None:
                return segment
            if index in self._scheduler.abandoned_indices or not self._scheduler.running:
                return None
            if self._scheduler.is_settled():
                # Stalled after a failed production; re-observe the same position.
                self._scheduler.report_playback_position(position)
            await self._scheduler.wait_for_change()
