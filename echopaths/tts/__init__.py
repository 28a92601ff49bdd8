"""Text-to-speech provider abstractions.

This package contains voice profile types and synthesizer interfaces used by the
segment audio stage.
"""

from .synthesizer import OpenAISegmentAudioSynthesizer, SegmentAudioSynthesizer
from .voices import VoiceProfile, voice_for_style

__all__ = [
    "OpenAISegmentAudioSynthesizer",
    "SegmentAudioSynthesizer",
    "VoiceProfile",
    "voice_for_style",
]
