"""Story audio merge.

Responsibilities:
- Merge buffered story segments into one WAV output.
- Preserve ascending segment order regardless of input order.
"""

from __future__ import annotations

import wave
from pathlib import Path

from ..models.datatypes import StorySegment
from .pcm import PCM_CHANNELS, PCM_SAMPLE_RATE, PCM_SAMPLE_WIDTH


class AudioMerger:
    """Merge segment audio buffers into one WAV file."""

    def merge(self, segments: list[StorySegment], output_path: Path) -> Path:
        """Merge segments by ascending index into one output file."""

        output_path.parent.mkdir(parents=True, exist_ok=True)
        ordered = sorted(segments, key=lambda item: item.index)

        if not ordered:
            with wave.open(str(output_path), "wb") as merged:
                merged.setnchannels(PCM_CHANNELS)
                merged.setsampwidth(PCM_SAMPLE_WIDTH)
                merged.setframerate(PCM_SAMPLE_RATE)
                merged.writeframes(b"")
            return output_path

        first = ordered[0].audio
        with wave.open(str(output_path), "wb") as merged:
            merged.setnchannels(first.channels)
            merged.setsampwidth(first.sample_width)
            merged.setframerate(first.sample_rate)

            for segment in ordered:
                audio = segment.audio
                if (
                    audio.channels != first.channels
                    or audio.sample_width != first.sample_width
                    or audio.sample_rate != first.sample_rate
                ):
                    raise ValueError(
                        f"Incompatible PCM parameters for segment {segment.index}."
                    )
                merged.writeframes(audio.frames)

        return output_path
