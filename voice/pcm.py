# pcm.py
"""
Raw PCM helpers for speech returned by the TTS model.

Wire format: little-endian signed 16-bit PCM, mono, 24 kHz, usually base64
encoded when it travels inside JSON.

- decode_pcm16()     : base64 str / bytes -> float32 waveform in [-1.0, 1.0)
- encode_pcm16()     : float waveform -> int16 LE bytes
- pcm_to_wav_bytes() : wrap raw PCM in a WAV container (for HTTP responses)
"""

from __future__ import annotations
import base64
import io
from typing import Union

import numpy as np
import soundfile as sf

__all__ = [
    "SAMPLE_RATE", "PCM_SCALE",
    "to_pcm_bytes", "decode_pcm16", "encode_pcm16", "pcm_to_wav_bytes",
]

SAMPLE_RATE = 24000
PCM_SCALE = 32768.0

AudioData = Union[bytes, bytearray, memoryview, str]


def to_pcm_bytes(audio: AudioData) -> bytes:
    """Accept raw bytes or a base64 string; return raw PCM bytes."""
    if isinstance(audio, str):
        return base64.b64decode(audio)
    return bytes(audio)


def decode_pcm16(audio: AudioData) -> np.ndarray:
    """
    Decode int16 LE mono PCM to float32 samples (sample / 32768).
    A trailing odd byte is dropped.
    """
    raw = to_pcm_bytes(audio)
    if len(raw) % 2:
        raw = raw[:-1]
    ints = np.frombuffer(raw, dtype="<i2")
    return ints.astype(np.float32) / PCM_SCALE


def encode_pcm16(waveform: np.ndarray) -> bytes:
    x = np.asarray(waveform, dtype=np.float64)
    x = np.clip(x, -1.0, (PCM_SCALE - 1) / PCM_SCALE)
    return np.round(x * PCM_SCALE).astype("<i2").tobytes()


def pcm_to_wav_bytes(audio: AudioData, sample_rate: int = SAMPLE_RATE) -> bytes:
    buf = io.BytesIO()
    sf.write(buf, decode_pcm16(audio), sample_rate, format="WAV", subtype="PCM_16")
    return buf.getvalue()
