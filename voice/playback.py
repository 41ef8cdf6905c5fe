# playback.py
"""
Single-flight playback of raw PCM speech.

- AudioPlaybackEngine.play(): stops whatever is playing, decodes the new clip,
  lazily opens the shared output context (resuming it if suspended) and starts
  the clip. Returns a PlaybackHandle whose ``done`` future resolves when the clip
  ends naturally and is cancelled when the clip is stopped.
- SoundDeviceContext: real output through sounddevice (imported lazily so the
  module loads on machines without PortAudio).

Env Vars (optional)
- AUDIO_OUTPUT_DEVICE=index or name       (default: system default output)
"""

from __future__ import annotations
import asyncio
import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional, Union

import numpy as np

from .pcm import SAMPLE_RATE, AudioData, decode_pcm16

__all__ = [
    "AudioSource", "OutputContext", "SoundDeviceContext",
    "PlaybackHandle", "AudioPlaybackEngine",
]

logger = logging.getLogger("voice.playback")

SUSPENDED = "suspended"
RUNNING = "running"


class AudioSource(ABC):
    """One clip being played by an output context."""

    @abstractmethod
    def stop(self) -> None:
        ...

    def close(self) -> None:
        pass


class OutputContext(ABC):
    """Shared output device; created once and reused for every clip."""

    state: str = SUSPENDED

    @abstractmethod
    async def resume(self) -> None:
        ...

    @abstractmethod
    def start(self, samples: np.ndarray, sample_rate: int, on_finished: Callable[[], None]) -> AudioSource:
        """Begin playing ``samples``; call ``on_finished`` (any thread) when they run out."""


# -----------------------------------------------------------------------------
# sounddevice backend
# -----------------------------------------------------------------------------

def _device_from_env() -> Optional[Union[int, str]]:
    raw = os.getenv("AUDIO_OUTPUT_DEVICE", "").strip()
    if not raw:
        return None
    return int(raw) if raw.isdigit() else raw


class _StreamSource(AudioSource):
    def __init__(self, sd, samples: np.ndarray, sample_rate: int, device, on_finished: Callable[[], None]):
        self._sd = sd
        self._samples = samples.astype(np.float32, copy=False).reshape(-1, 1)
        self._pos = 0
        self._aborted = False
        self._on_finished = on_finished
        self._stream = sd.OutputStream(
            samplerate=sample_rate,
            channels=1,
            dtype="float32",
            device=device,
            callback=self._callback,
            finished_callback=self._finished,
        )
        self._stream.start()

    def _callback(self, outdata, frames, time_info, status):
        chunk = self._samples[self._pos:self._pos + frames]
        n = len(chunk)
        outdata[:n] = chunk
        self._pos += n
        if n < frames:
            outdata[n:] = 0
            raise self._sd.CallbackStop()

    def _finished(self) -> None:
        # also fires after abort(); only a natural end counts as completion
        if not self._aborted:
            self._on_finished()

    def stop(self) -> None:
        self._aborted = True
        self._stream.abort()
        self._stream.close()

    def close(self) -> None:
        if not self._stream.closed:
            self._stream.close()


class SoundDeviceContext(OutputContext):
    def __init__(self, sample_rate: int = SAMPLE_RATE, device: Optional[Union[int, str]] = None):
        try:
            import sounddevice as sd  # type: ignore
        except Exception as e:
            raise RuntimeError(
                "Audio playback needs 'sounddevice' and a PortAudio library. "
                "Install with: pip install sounddevice"
            ) from e
        self._sd = sd
        self.sample_rate = sample_rate
        self.device = device if device is not None else _device_from_env()
        self.state = SUSPENDED

    async def resume(self) -> None:
        # raises if the device cannot take our format
        await asyncio.to_thread(
            self._sd.check_output_settings, device=self.device, channels=1,
            dtype="float32", samplerate=self.sample_rate,
        )
        self.state = RUNNING

    def start(self, samples: np.ndarray, sample_rate: int, on_finished: Callable[[], None]) -> AudioSource:
        return _StreamSource(self._sd, samples, sample_rate, self.device, on_finished)


# -----------------------------------------------------------------------------
# Engine
# -----------------------------------------------------------------------------

class PlaybackHandle:
    """Completion signal for one clip. ``await handle`` waits for a natural end."""

    def __init__(self, done: "asyncio.Future[None]", frames: int, sample_rate: int):
        self.done = done
        self.frames = frames
        self.sample_rate = sample_rate
        self.source: Optional[AudioSource] = None
        self.stopped = False

    @property
    def duration_seconds(self) -> float:
        return self.frames / float(self.sample_rate) if self.sample_rate else 0.0

    @property
    def active(self) -> bool:
        return not self.stopped and not self.done.done()

    def _finish(self) -> None:
        if self.stopped or self.done.done():
            return
        self.done.set_result(None)
        if self.source is not None:
            try:
                self.source.close()
            except Exception as e:
                logger.debug(f"close after playback failed: {e}")

    def stop(self) -> None:
        """Best-effort stop. Errors from an already-finished source are swallowed."""
        if self.stopped:
            return
        self.stopped = True
        if self.source is not None:
            try:
                self.source.stop()
            except Exception as e:
                logger.debug(f"stop on finished clip ignored: {e}")
        if not self.done.done():
            self.done.cancel()

    def __await__(self):
        return self.done.__await__()


class AudioPlaybackEngine:
    """
    Owns the shared output context and the single "currently playing" handle.
    One engine per orchestrator; tests inject a fake context_factory.
    """

    def __init__(
        self,
        context_factory: Callable[[int], OutputContext] = SoundDeviceContext,
        sample_rate: int = SAMPLE_RATE,
    ):
        self._context_factory = context_factory
        self.sample_rate = sample_rate
        self._context: Optional[OutputContext] = None
        self._current: Optional[PlaybackHandle] = None
        self._generation = 0
        self._state_lock = threading.Lock()
        self._play_lock: Optional[asyncio.Lock] = None

    @property
    def current(self) -> Optional[PlaybackHandle]:
        with self._state_lock:
            if self._current is not None and not self._current.active:
                self._current = None
            return self._current

    def _get_context(self) -> OutputContext:
        if self._context is None:
            logger.info(f"Opening audio output context at {self.sample_rate} Hz")
            self._context = self._context_factory(self.sample_rate)
        return self._context

    def stop(self) -> None:
        with self._state_lock:
            self._generation += 1
            handle, self._current = self._current, None
        if handle is not None:
            handle.stop()

    async def play(self, audio: AudioData, sample_rate: int = SAMPLE_RATE) -> Optional[PlaybackHandle]:
        """
        Play one clip, stopping any clip already playing.
        None for empty audio, or when stop() lands before the clip starts.
        """
        if not audio:
            return None
        if self._play_lock is None:
            self._play_lock = asyncio.Lock()

        async with self._play_lock:
            self.stop()
            with self._state_lock:
                generation = self._generation
            samples = decode_pcm16(audio)
            if samples.size == 0:
                return None

            ctx = self._get_context()
            if ctx.state == SUSPENDED:
                await ctx.resume()
                if generation != self._generation:
                    logger.debug("Playback stopped while resuming output; clip dropped")
                    return None

            loop = asyncio.get_running_loop()
            handle = PlaybackHandle(loop.create_future(), frames=int(samples.size), sample_rate=sample_rate)

            def _on_finished() -> None:
                loop.call_soon_threadsafe(handle._finish)

            with self._state_lock:
                if generation != self._generation:
                    return None
            handle.source = ctx.start(samples, sample_rate, _on_finished)
            with self._state_lock:
                stale = generation != self._generation
                if not stale:
                    self._current = handle
            if stale:
                handle.stop()
                return None
            logger.debug(f"Playing clip: {handle.duration_seconds:.2f}s")
            return handle
