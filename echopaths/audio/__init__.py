"""Audio decoding and merge helpers."""

from .merger import AudioMerger
from .pcm import decode_pcm, encode_wav

__all__ = ["AudioMerger", "decode_pcm", "encode_wav"]
