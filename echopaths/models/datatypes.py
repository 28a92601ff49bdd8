"""Core datatypes shared across EchoPaths modules.

Responsibilities:
- Represent immutable records exchanged between story generation stages.
- Provide explicit typing for snapshots handed to playback consumers.

Key types:
- `RouteDetails`, `TravelMode`, `StoryStyle`, `DecodedAudio`, `StorySegment`,
  `AudioStory`, and `SavedTrip`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

MAX_ROUTE_DURATION_SECONDS = 8 * 60 * 60
MAX_WAYPOINTS = 5

Outline = tuple[str, ...]


class TravelMode(str, Enum):
    """Travel mode reported by the routing collaborator."""

    WALKING = "WALKING"
    DRIVING = "DRIVING"


class StoryStyle(str, Enum):
    """Narrative style tag chosen together with the route."""

    NOIR = "NOIR"
    CHILDREN = "CHILDREN"
    HISTORICAL = "HISTORICAL"
    FANTASY = "FANTASY"
    IMMERSIVE = "IMMERSIVE"


@dataclass(frozen=True, slots=True)
class RouteDetails:
    """Validated route handed over by the routing collaborator.

    Attributes:
        start_address: Human-readable origin.
        end_address: Human-readable destination.
        travel_mode: Walking or driving.
        duration_seconds: Total travel time in seconds, capped at 8 hours.
        distance_text: Provider-formatted distance, e.g. `12.4 km`.
        story_style: Narrative style tag.
        waypoints: Ordered intermediate stops (0 to 5).
        duration_text: Provider-formatted duration, e.g. `25 mins`.
    """

    start_address: str
    end_address: str
    travel_mode: TravelMode
    duration_seconds: int
    distance_text: str = ""
    story_style: StoryStyle = StoryStyle.IMMERSIVE
    waypoints: tuple[str, ...] = field(default_factory=tuple)
    duration_text: str = ""

    def validate(self) -> None:
        """Re-check the routing collaborator guarantees."""

        if not self.start_address.strip() or not self.end_address.strip():
            raise ValueError("Route start and end addresses must be non-empty.")
        if self.duration_seconds < 0:
            raise ValueError("Route duration must not be negative.")
        if self.duration_seconds > MAX_ROUTE_DURATION_SECONDS:
            raise ValueError("Route duration exceeds the 8 hour limit.")
        if len(self.waypoints) > MAX_WAYPOINTS:
            raise ValueError(f"A route supports at most {MAX_WAYPOINTS} intermediate stops.")

    def display_duration(self) -> str:
        """Return the provider duration text, or minutes derived from seconds."""

        if self.duration_text:
            return self.duration_text
        minutes = max(1, round(self.duration_seconds / 60))
        return f"{minutes} min"


@dataclass(frozen=True, slots=True)
class DecodedAudio:
    """Playable audio buffer decoded from provider PCM.

    Attributes:
        frames: Signed 16-bit little-endian PCM frame bytes.
        sample_rate: Frames per second.
        channels: Interleaved channel count.
    """

    frames: bytes
    sample_rate: int = 24000
    channels: int = 1
    sample_width: int = 2

    @property
    def frame_count(self) -> int:
        return len(self.frames) // (self.sample_width * self.channels)

    @property
    def duration_seconds(self) -> float:
        return self.frame_count / float(self.sample_rate)


@dataclass(frozen=True, slots=True)
class StorySegment:
    """One narrated chapter of the story; text and audio are attached together."""

    index: int
    text: str
    audio: DecodedAudio


@dataclass(frozen=True, slots=True)
class AudioStory:
    """Read-only snapshot of the story handed to playback consumers.

    Attributes:
        total_segments_estimate: Planned number of segments (at least 1).
        outline: One beat per planned segment.
        segments: Completed segments, ascending by index, unique indices.
    """

    total_segments_estimate: int
    outline: Outline
    segments: tuple[StorySegment, ...] = field(default_factory=tuple)

    @property
    def generated_count(self) -> int:
        return len(self.segments)

    def indices(self) -> tuple[int, ...]:
        return tuple(segment.index for segment in self.segments)

    def segment(self, index: int) -> StorySegment | None:
        """Return the segment with `index`, or `None` while it is not buffered."""

        for segment in self.segments:
            if segment.index == index:
                return segment
        return None

    def beat(self, index: int, default: str) -> str:
        """Return the outline beat for a 1-based segment index."""

        if 1 <= index <= len(self.outline):
            return self.outline[index - 1] or default
        return default

    def recent_text(self, limit_chars: int) -> str:
        """Return the trailing `limit_chars` characters of all generated text."""

        joined = " ".join(segment.text for segment in self.segments)
        if limit_chars <= 0:
            return ""
        return joined[-limit_chars:]


@dataclass(frozen=True, slots=True)
class SavedTrip:
    """Trip history record used to replay a story with its original outline."""

    trip_id: str
    route: RouteDetails
    outline: Outline
    timestamp_ms: int
