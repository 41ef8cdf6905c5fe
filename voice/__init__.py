"""Speech output: PCM decoding and single-flight playback."""

from .pcm import SAMPLE_RATE, decode_pcm16, encode_pcm16, pcm_to_wav_bytes
from .playback import AudioPlaybackEngine, PlaybackHandle

__all__ = [
    "SAMPLE_RATE",
    "decode_pcm16",
    "encode_pcm16",
    "pcm_to_wav_bytes",
    "AudioPlaybackEngine",
    "PlaybackHandle",
]
