"""State machine for a single practice attempt."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Optional

from errors import (
    CAPTURE_EMPTY,
    DEVICE_BUSY,
    PERMISSION_DENIED,
    CaptureUnavailable,
    InvalidTransition,
)
from interfaces import AudioCapturePort
from models import AudioHandle, PracticeTarget, SessionError, SessionState, SessionStatus

logger = logging.getLogger(__name__)

TransitionCallback = Callable[["RecordingSession", SessionState, SessionState], None]

DEFAULT_MAX_RECORDING_S = 5.0

_ALLOWED = {
    SessionState.IDLE: {SessionState.PERMISSION_PENDING, SessionState.CANCELLED},
    SessionState.PERMISSION_PENDING: {
        SessionState.RECORDING,
        SessionState.FAILED,
        SessionState.CANCELLED,
    },
    SessionState.RECORDING: {SessionState.STOPPING, SessionState.CANCELLED},
    SessionState.STOPPING: {
        SessionState.TRANSCRIBING,
        SessionState.FAILED,
        SessionState.CANCELLED,
    },
    SessionState.TRANSCRIBING: {
        SessionState.SCORED,
        SessionState.FAILED,
        SessionState.CANCELLED,
    },
    SessionState.SCORED: set(),
    SessionState.FAILED: set(),
    SessionState.CANCELLED: set(),
}


class RecordingSession:
    """Owns permission, capture stream, watchdog and audio handle of one attempt.

    The capture stream and the audio handle are each held in a single slot
    and taken out before any await that hands them on, so whichever path
    takes them (stop, cancel, transcription) is the only one that can
    release them.
    """

    def __init__(
        self,
        session_id: int,
        target: PracticeTarget,
        capture: AudioCapturePort,
        max_recording_s: float = DEFAULT_MAX_RECORDING_S,
        on_transition: Optional[TransitionCallback] = None,
        on_timeout: Optional[Callable[["RecordingSession"], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session_id = session_id
        self.target = target
        self._capture = capture
        self._max_recording_s = max_recording_s
        self._on_transition = on_transition
        self._on_timeout = on_timeout
        self._clock = clock

        self.state = SessionState.IDLE
        self.started_at: Optional[float] = None
        self.stopped_at: Optional[float] = None
        self.audio_handle: Optional[AudioHandle] = None
        self.transcript: Optional[str] = None
        self.score: Optional[int] = None
        self.error: Optional[SessionError] = None

        self._stream: Any = None
        self._watchdog: Optional[asyncio.TimerHandle] = None
        self._capture_closed = asyncio.Event()
        self._capture_closed.set()

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def watchdog_armed(self) -> bool:
        return self._watchdog is not None

    def snapshot(self) -> SessionStatus:
        elapsed = 0.0
        if self.started_at is not None:
            end = self.stopped_at if self.stopped_at is not None else self._clock()
            elapsed = max(0.0, end - self.started_at)
        return SessionStatus(
            session_id=self.session_id,
            state=self.state,
            target=self.target.word,
            elapsed_s=elapsed,
            transcript=self.transcript,
            score=self.score,
            error=self.error,
        )

    # ------------------------------------------------------------------
    # Capture lifecycle
    # ------------------------------------------------------------------

    async def begin(self) -> None:
        """Request permission and open the capture stream."""
        self._transition(SessionState.PERMISSION_PENDING)
        try:
            granted = await self._capture.request_permission()
        except Exception as exc:
            logger.exception("permission_request_failed", extra={"session_id": self.session_id})
            if self.state == SessionState.PERMISSION_PENDING:
                self.fail(PERMISSION_DENIED, str(exc), cause=exc)
            return
        if self.state != SessionState.PERMISSION_PENDING:
            return
        if not granted:
            self.fail(PERMISSION_DENIED)
            return

        self._capture_closed.clear()
        try:
            stream = await self._capture.start_capture()
        except CaptureUnavailable as exc:
            self._capture_closed.set()
            if self.state == SessionState.PERMISSION_PENDING:
                self.fail(DEVICE_BUSY, exc.message, cause=exc.cause or exc)
            return
        except Exception as exc:
            self._capture_closed.set()
            if self.state == SessionState.PERMISSION_PENDING:
                self.fail(DEVICE_BUSY, str(exc), cause=exc)
            return

        if self.state != SessionState.PERMISSION_PENDING:
            # cancelled while the stream was opening
            await self._close_stream(stream)
            return

        self._stream = stream
        self.started_at = self._clock()
        self._transition(SessionState.RECORDING)
        self._arm_watchdog()

    async def stop(self) -> Optional[AudioHandle]:
        """Run the stop sequence once; later calls return ``None``.

        On success the session is ``TRANSCRIBING`` and holds the audio
        handle, which the caller takes with ``take_audio()``.
        """
        if self.state != SessionState.RECORDING:
            return None
        self._disarm_watchdog()
        self._transition(SessionState.STOPPING)
        stream, self._stream = self._stream, None
        try:
            handle = await self._capture.stop_capture(stream)
        except Exception as exc:
            self._capture_closed.set()
            if self.state == SessionState.STOPPING:
                self.fail(CAPTURE_EMPTY, str(exc), cause=exc)
            return None
        self._capture_closed.set()

        if self.state != SessionState.STOPPING:
            if handle is not None:
                self._release(handle)
            return None
        if handle is None or handle.is_empty:
            if handle is not None:
                self._release(handle)
            self.fail(CAPTURE_EMPTY)
            return None

        self.audio_handle = handle
        self._transition(SessionState.TRANSCRIBING)
        return handle

    async def cancel(self) -> None:
        """Move to ``CANCELLED`` and give back the microphone and audio.

        On a session that is already terminal this only waits for a stream
        close still in flight, so the device is free once it returns.
        """
        if self.is_terminal:
            await self._capture_closed.wait()
            return
        previous = self.state
        self._disarm_watchdog()
        self._transition(SessionState.CANCELLED)

        if previous in (SessionState.PERMISSION_PENDING, SessionState.STOPPING):
            # an in-flight open/stop releases whatever it obtained
            await self._capture_closed.wait()
        stream, self._stream = self._stream, None
        if stream is not None:
            await self._close_stream(stream)
        handle = self.take_audio()
        if handle is not None:
            self._release(handle)

    def take_audio(self) -> Optional[AudioHandle]:
        """Hand over ownership of the captured audio."""
        handle, self.audio_handle = self.audio_handle, None
        return handle

    # ------------------------------------------------------------------
    # Outcomes
    # ------------------------------------------------------------------

    def complete(self, transcript: str, score: int) -> None:
        if self.state != SessionState.TRANSCRIBING:
            raise InvalidTransition(f"cannot score from {self.state.value}")
        self.transcript = transcript
        self.score = score
        self._transition(SessionState.SCORED)

    def fail(self, code: str, message: str = "", cause: Optional[BaseException] = None) -> None:
        self._disarm_watchdog()
        self.error = SessionError(code=code, message=message, cause=cause)
        try:
            self._transition(SessionState.FAILED)
        except InvalidTransition:
            self.error = None
            raise

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _arm_watchdog(self) -> None:
        loop = asyncio.get_running_loop()
        self._watchdog = loop.call_later(self._max_recording_s, self._fire_watchdog)

    def _disarm_watchdog(self) -> None:
        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None

    def _fire_watchdog(self) -> None:
        self._watchdog = None
        if self.state != SessionState.RECORDING:
            return
        logger.info(
            "watchdog_fired",
            extra={"session_id": self.session_id, "limit_s": self._max_recording_s},
        )
        if self._on_timeout is not None:
            self._on_timeout(self)

    async def _close_stream(self, stream: Any) -> None:
        try:
            handle = await self._capture.stop_capture(stream)
        except Exception:
            logger.exception("capture_close_failed", extra={"session_id": self.session_id})
            return
        finally:
            self._capture_closed.set()
        if handle is not None:
            self._release(handle)

    def _release(self, handle: AudioHandle) -> None:
        try:
            self._capture.release_audio(handle)
        except Exception:
            logger.exception(
                "audio_release_failed",
                extra={"session_id": self.session_id, "handle_id": handle.handle_id},
            )

    def _transition(self, to_state: SessionState) -> None:
        from_state = self.state
        if to_state not in _ALLOWED[from_state]:
            raise InvalidTransition(f"{from_state.value} -> {to_state.value}")
        self.state = to_state
        if from_state == SessionState.RECORDING:
            self.stopped_at = self._clock()
        logger.debug(
            "session_transition",
            extra={
                "session_id": self.session_id,
                "from_state": from_state.value,
                "to_state": to_state.value,
            },
        )
        if self._on_transition:
            self._on_transition(self, from_state, to_state)
