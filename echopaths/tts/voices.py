"""Voice profile models for narration synthesis.

Responsibilities:
- Represent provider voice identities and tuning metadata.
- Map story styles onto default narrator voices.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..models.datatypes import StoryStyle


@dataclass(frozen=True, slots=True)
class VoiceProfile:
    """Declarative voice profile used by TTS providers.

    Attributes:
        name: Human-readable profile name.
        provider_voice_id: Provider-native voice identifier.
        speaking_rate: Relative speaking rate multiplier.
        instructions: Optional delivery instructions for steerable TTS models.
    """

    name: str
    provider_voice_id: str
    speaking_rate: float = 1.0
    instructions: str | None = None


_STYLE_VOICES: dict[StoryStyle, VoiceProfile] = {
    StoryStyle.NOIR: VoiceProfile(
        name="noir",
        provider_voice_id="onyx",
        instructions="Low, measured delivery with a weary detective tone.",
    ),
    StoryStyle.CHILDREN: VoiceProfile(
        name="children",
        provider_voice_id="fable",
        instructions="Warm, playful and gentle, like a bedtime storyteller.",
    ),
    StoryStyle.HISTORICAL: VoiceProfile(
        name="historical",
        provider_voice_id="sage",
        instructions="Calm documentary narration with clear pacing.",
    ),
    StoryStyle.FANTASY: VoiceProfile(
        name="fantasy",
        provider_voice_id="ballad",
        instructions="Expressive and wondrous, with a sense of adventure.",
    ),
    StoryStyle.IMMERSIVE: VoiceProfile(
        name="immersive",
        provider_voice_id="alloy",
        instructions="Present-tense, close and atmospheric narration.",
    ),
}


def voice_for_style(style: StoryStyle, voice_override: str | None = None) -> VoiceProfile:
    """Return the narrator voice for a style, optionally replacing the provider voice id."""

    profile = _STYLE_VOICES[style]
    if voice_override:
        return VoiceProfile(
            name=profile.name,
            provider_voice_id=voice_override,
            speaking_rate=profile.speaking_rate,
            instructions=profile.instructions,
        )
    return profile
