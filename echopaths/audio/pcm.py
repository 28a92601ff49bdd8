"""Raw PCM decoding and WAV encoding for synthesized segments.

Responsibilities:
- Decode provider PCM payloads (24 kHz, mono, signed 16-bit) into `DecodedAudio`.
- Encode decoded buffers into WAV bytes for playback sinks and artifacts.
"""

from __future__ import annotations

import io
import wave

from ..models.datatypes import DecodedAudio

PCM_SAMPLE_RATE = 24000
PCM_CHANNELS = 1
PCM_SAMPLE_WIDTH = 2


def decode_pcm(
    payload: bytes,
    sample_rate: int = PCM_SAMPLE_RATE,
    channels: int = PCM_CHANNELS,
) -> DecodedAudio:
    """Decode raw little-endian 16-bit PCM bytes into a playable buffer.

    Raises:
        ValueError: If the payload is empty or not aligned to whole frames.
    """

    if not payload:
        raise ValueError("PCM payload is empty.")
    frame_width = PCM_SAMPLE_WIDTH * channels
    if len(payload) % frame_width != 0:
        raise ValueError(
            f"PCM payload length {len(payload)} is not a multiple of the {frame_width}-byte frame."
        )
    return DecodedAudio(
        frames=bytes(payload),
        sample_rate=sample_rate,
        channels=channels,
        sample_width=PCM_SAMPLE_WIDTH,
    )


def encode_wav(audio: DecodedAudio) -> bytes:
    """Wrap decoded PCM frames in a WAV container."""

    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(audio.channels)
        wav_file.setsampwidth(audio.sample_width)
        wav_file.setframerate(audio.sample_rate)
        wav_file.writeframes(audio.frames)
    return buffer.getvalue()
