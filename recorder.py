"""Microphone capture and playback adapter."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Any, Optional

from errors import CaptureUnavailable, NoRecordingAvailable
from models import AudioFrame, AudioHandle

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)


class CaptureStream:
    """An open input stream plus the frames collected from its callback."""

    def __init__(self, sample_rate: int, channels: int, max_frames: int) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.frames: list[AudioFrame] = []
        self.dropped_chunks = 0
        self.running = False
        self.stream: Any = None
        self._max_frames = max_frames
        self._lock = threading.Lock()

    def on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self.running or np is None:
            return
        payload = np.asarray(indata, dtype=np.int16).tobytes()
        frame = AudioFrame(
            pcm16_bytes=payload,
            sample_rate=self.sample_rate,
            channels=self.channels,
            timestamp_ms=int(time.time() * 1000),
        )
        with self._lock:
            if len(self.frames) >= self._max_frames:
                self.dropped_chunks += 1
                return
            self.frames.append(frame)

    def drain(self) -> bytes:
        with self._lock:
            pcm = b"".join(f.pcm16_bytes for f in self.frames)
            self.frames.clear()
        return pcm


class SoundDeviceCapture:
    """Audio capture port backed by PortAudio via ``sounddevice``.

    Only one input stream is open at a time; a second ``start_capture``
    while one is open fails with ``CaptureUnavailable``. Blocking
    PortAudio calls run in a worker thread.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
        max_capture_s: float = 30.0,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self._max_frames = max(1, int(max_capture_s * 1000 / chunk_ms))
        self._active: Optional[CaptureStream] = None
        self._lock = threading.Lock()

    async def request_permission(self) -> bool:
        return await asyncio.to_thread(self._has_input_device)

    async def start_capture(self) -> CaptureStream:
        return await asyncio.to_thread(self._open)

    async def stop_capture(self, stream: CaptureStream) -> AudioHandle:
        await asyncio.to_thread(self._close, stream)
        handle = AudioHandle(
            pcm16_bytes=stream.drain(),
            sample_rate=stream.sample_rate,
            channels=stream.channels,
        )
        if stream.dropped_chunks:
            logger.warning("capture_chunks_dropped", extra={"dropped": stream.dropped_chunks})
        return handle

    def release_audio(self, handle: AudioHandle) -> None:
        if handle.released:
            return
        handle.pcm16_bytes = b""
        handle.released = True

    def play(self, handle: AudioHandle) -> None:
        if handle.released:
            raise NoRecordingAvailable()
        if sd is None or np is None:
            raise RuntimeError("sounddevice is not installed")
        samples = np.frombuffer(handle.pcm16_bytes, dtype=np.int16)
        if handle.channels > 1:
            samples = samples.reshape(-1, handle.channels)
        sd.play(samples, samplerate=handle.sample_rate)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _has_input_device(self) -> bool:
        if sd is None:
            return False
        try:
            sd.check_input_settings(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
            )
        except Exception as exc:
            logger.warning("input_device_unavailable", extra={"error": str(exc)})
            return False
        return True

    def _open(self) -> CaptureStream:
        with self._lock:
            if sd is None:
                raise CaptureUnavailable("sounddevice is not installed")
            if self._active is not None:
                raise CaptureUnavailable("capture device is busy")
            capture = CaptureStream(self.sample_rate, self.channels, self._max_frames)
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            try:
                capture.stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype="int16",
                    blocksize=blocksize,
                    callback=capture.on_audio,
                )
                capture.running = True
                capture.stream.start()
            except Exception as exc:
                capture.running = False
                if capture.stream is not None:
                    capture.stream.close()
                raise CaptureUnavailable(str(exc), cause=exc) from exc
            self._active = capture
            return capture

    def _close(self, capture: CaptureStream) -> None:
        with self._lock:
            if not capture.running:
                return
            capture.running = False
            if self._active is capture:
                self._active = None
            stream, capture.stream = capture.stream, None
            if stream is not None:
                stream.stop()
                stream.close()
