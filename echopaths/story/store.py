"""Canonical owner of the story being narrated.

Responsibilities:
- Create the story from the outline and the first segment.
- Merge completed segments idempotently by index, keeping ascending order.
- Hand readers immutable, fully sorted `AudioStory` snapshots.
"""

from __future__ import annotations

import threading
from dataclasses import replace

from ..models.datatypes import AudioStory, Outline, StorySegment


class StoryStore:
    """Single owner of `AudioStory` state.

    Writers serialize on a lock and publish a new snapshot by swapping one
    reference, so readers never observe a partially merged segment list.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._story: AudioStory | None = None

    def seed(
        self, total_segments: int, outline: Outline, first_segment: StorySegment
    ) -> AudioStory:
        """Create the story with its first playable segment, replacing any previous one."""

        if total_segments < 1:
            raise ValueError("A story needs at least one planned segment.")
        story = AudioStory(
            total_segments_estimate=total_segments,
            outline=tuple(outline),
            segments=(first_segment,),
        )
        with self._lock:
            self._story = story
        return story

    def merge(self, segment: StorySegment) -> bool:
        """Insert `segment` unless its index is already present.

        Returns:
            `True` when the segment was inserted, `False` for a duplicate index.
        """

        with self._lock:
            story = self._require_story()
            if any(existing.index == segment.index for existing in story.segments):
                return False
            ordered = tuple(
                sorted((*story.segments, segment), key=lambda item: item.index)
            )
            self._story = replace(story, segments=ordered)
            return True

    def snapshot(self) -> AudioStory:
        with self._lock:
            return self._require_story()

    def has_story(self) -> bool:
        with self._lock:
            return self._story is not None

    def clear(self) -> None:
        with self._lock:
            self._story = None

    def _require_story(self) -> AudioStory:
        if self._story is None:
            raise RuntimeError("Story has not been seeded with its first segment yet.")
        return self._story
