"""Unit tests for PCM decoding, WAV encoding and story merging."""

from __future__ import annotations

import io
import wave
from pathlib import Path

import pytest

from echopaths.audio.merger import AudioMerger
from echopaths.audio.pcm import decode_pcm, encode_wav
from echopaths.models.datatypes import DecodedAudio, StorySegment


def test_decode_pcm_reports_frames_and_duration() -> None:
    audio = decode_pcm(b"\x01\x00" * 12000)

    assert audio.sample_rate == 24000
    assert audio.channels == 1
    assert audio.frame_count == 12000
    assert audio.duration_seconds == pytest.approx(0.5)


@pytest.mark.parametrize("payload", [b"", b"\x00\x00\x00"])
def test_decode_pcm_rejects_empty_or_partial_frames(payload: bytes) -> None:
    with pytest.raises(ValueError):
        decode_pcm(payload)


def test_encode_wav_wraps_frames_in_readable_container() -> None:
    audio = decode_pcm(b"\x02\x00" * 480)

    with wave.open(io.BytesIO(encode_wav(audio)), "rb") as wav_file:
        assert wav_file.getframerate() == 24000
        assert wav_file.getnchannels() == 1
        assert wav_file.getsampwidth() == 2
        assert wav_file.readframes(480) == audio.frames


def test_merge_orders_segments_by_index(tmp_path: Path) -> None:
    segments = [
        StorySegment(index=3, text="c", audio=DecodedAudio(frames=b"\x03\x00" * 2)),
        StorySegment(index=1, text="a", audio=DecodedAudio(frames=b"\x01\x00" * 2)),
        StorySegment(index=2, text="b", audio=DecodedAudio(frames=b"\x02\x00" * 2)),
    ]

    output = AudioMerger().merge(segments, tmp_path / "nested" / "story.wav")

    with wave.open(str(output), "rb") as merged:
        frames = merged.readframes(merged.getnframes())
    assert frames == b"\x01\x00" * 2 + b"\x02\x00" * 2 + b"\x03\x00" * 2


def test_merge_of_nothing_writes_empty_wav(tmp_path: Path) -> None:
    output = AudioMerger().merge([], tmp_path / "story.wav")

    with wave.open(str(output), "rb") as merged:
        assert merged.getnframes() == 0


def test_merge_rejects_mixed_sample_rates(tmp_path: Path) -> None:
    segments = [
        StorySegment(index=1, text="a", audio=DecodedAudio(frames=b"\x00\x00")),
        StorySegment(index=2, text="b", audio=DecodedAudio(frames=b"\x00\x00", sample_rate=16000)),
    ]

    with pytest.raises(ValueError, match="segment 2"):
        AudioMerger().merge(segments, tmp_path / "story.wav")
