"""Story pipeline: outline planning, segment production, buffering, session."""

from .outline import OutlinePlanner, OpenAIOutlineProvider, calculate_total_segments
from .playback import PlaybackDriver, PlaybackReport
from .producer import SegmentProducer
from .scheduler import BufferScheduler, GapPolicy, ProductionSlot, should_request_segment
from .session import InvalidTransition, SessionState, StorySession
from .store import StoryStore
from .text import OpenAISegmentTextGenerator, SegmentTextGenerator

__all__ = [
    "BufferScheduler",
    "GapPolicy",
    "InvalidTransition",
    "OpenAIOutlineProvider",
    "OpenAISegmentTextGenerator",
    "OutlinePlanner",
    "PlaybackDriver",
    "PlaybackReport",
    "ProductionSlot",
    "SegmentProducer",
    "SegmentTextGenerator",
    "SessionState",
    "StoryStore",
    "StorySession",
    "calculate_total_segments",
    "should_request_segment",
]
