"""Shared typed data models for EchoPaths.

This package contains dataclasses used across story modules to avoid
cross-module coupling and circular imports.
"""

from .datatypes import (
    AudioStory,
    DecodedAudio,
    Outline,
    RouteDetails,
    SavedTrip,
    StorySegment,
    StoryStyle,
    TravelMode,
)

__all__ = [
    "AudioStory",
    "DecodedAudio",
    "Outline",
    "RouteDetails",
    "SavedTrip",
    "StorySegment",
    "StoryStyle",
    "TravelMode",
]
