"""Assessment orchestration: one active practice session at a time."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from errors import (
    TRANSCRIPTION_FAILED,
    InvalidTarget,
    InvalidTransition,
    NoRecordingAvailable,
    TranscriptionFailed,
)
from interfaces import AudioCapturePort, PersistencePort, Scorer, TranscriptionPort
from models import AudioHandle, PracticeTarget, SessionState, SessionStatus
from scorer import LevenshteinScorer
from session import DEFAULT_MAX_RECORDING_S, RecordingSession
from transcription import TranscriptionRequestHandler

logger = logging.getLogger(__name__)

StateCallback = Callable[[SessionState, SessionState, SessionStatus], None]


class AssessmentOrchestrator:
    """Public surface consumed by the presentation layer.

    Every in-flight operation remembers the id of the session it was
    started for; results that come back after that session has been
    superseded are dropped without touching the active one.
    """

    def __init__(
        self,
        capture: AudioCapturePort,
        transcription: TranscriptionPort,
        scorer: Optional[Scorer] = None,
        persistence: Optional[PersistencePort] = None,
        max_recording_s: float = DEFAULT_MAX_RECORDING_S,
        on_state_change: Optional[StateCallback] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._capture = capture
        self._handler = TranscriptionRequestHandler(transcription, capture)
        self._scorer = scorer or LevenshteinScorer()
        self._persistence = persistence
        self._max_recording_s = max_recording_s
        self._on_state_change = on_state_change
        self._clock = clock

        self._session_id = 0
        self._session: Optional[RecordingSession] = None
        self._last_recording: Optional[AudioHandle] = None
        self._stop_task: Optional[asyncio.Task[None]] = None

    @property
    def session(self) -> Optional[RecordingSession]:
        return self._session

    def current_status(self) -> SessionStatus:
        session = self._session
        if session is None:
            return SessionStatus(session_id=0, state=SessionState.IDLE)
        return session.snapshot()

    async def select_target(self, word: str) -> SessionStatus:
        cleaned = (word or "").strip()
        if not cleaned:
            raise InvalidTarget()

        self._session_id += 1
        session_id = self._session_id
        await self._cancel_active("superseded")
        if session_id != self._session_id:
            # a later selection arrived while the previous session was closing
            logger.info(
                "target_superseded",
                extra={"session_id": session_id, "active_id": self._session_id, "word": cleaned},
            )
            return SessionStatus(session_id=session_id, state=SessionState.CANCELLED, target=cleaned)

        self._last_recording = None
        self._session = RecordingSession(
            session_id=session_id,
            target=PracticeTarget(cleaned),
            capture=self._capture,
            max_recording_s=self._max_recording_s,
            on_transition=self._handle_transition,
            on_timeout=self._handle_timeout,
            clock=self._clock,
        )
        logger.info("target_selected", extra={"session_id": self._session_id, "word": cleaned})
        return self._session.snapshot()

    async def begin_capture(self) -> SessionStatus:
        session = self._session
        if session is None or session.state != SessionState.IDLE:
            state = session.state.value if session else "no session"
            raise InvalidTransition(f"cannot begin capture from {state}")
        await session.begin()
        return session.snapshot()

    async def end_capture(self) -> SessionStatus:
        session = self._session
        if session is None:
            return self.current_status()
        await self._finish_capture(session)
        return session.snapshot()

    def replay_last_recording(self) -> None:
        handle = self._last_recording
        if handle is None or handle.released:
            raise NoRecordingAvailable()
        self._capture.play(handle)

    async def wait_idle(self) -> None:
        """Wait for a watchdog-triggered stop sequence to finish."""
        task = self._stop_task
        if task is not None and not task.done():
            await asyncio.shield(task)

    async def close(self) -> None:
        await self._cancel_active("closed")
        self._session = None
        self._last_recording = None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _is_current(self, session_id: int) -> bool:
        return self._session is not None and self._session.session_id == session_id

    async def _cancel_active(self, reason: str) -> None:
        session = self._session
        if session is None:
            return
        if not session.is_terminal:
            logger.info(
                "session_cancelled",
                extra={"session_id": session.session_id, "state": session.state.value, "reason": reason},
            )
        await session.cancel()

    def _handle_timeout(self, session: RecordingSession) -> None:
        self._stop_task = asyncio.ensure_future(self._finish_capture(session))

    async def _finish_capture(self, session: RecordingSession) -> None:
        session_id = session.session_id
        handle = await session.stop()
        if handle is None:
            return
        self._last_recording = handle
        audio = session.take_audio()
        if audio is None:
            return

        try:
            transcript = await self._handler.transcribe(audio)
        except TranscriptionFailed as exc:
            if self._discard_stale(session, "transcription_failed"):
                return
            session.fail(TRANSCRIPTION_FAILED, exc.message, cause=exc.cause or exc)
            return

        if self._discard_stale(session, "transcript"):
            return
        value = self._scorer.score(session.target.word, transcript)
        session.complete(transcript, value)
        logger.info(
            "attempt_scored",
            extra={"session_id": session_id, "word": session.target.word, "score": value},
        )
        await self._record_practiced(session.target.word, session.snapshot().elapsed_s)

    def _discard_stale(self, session: RecordingSession, result: str) -> bool:
        if self._is_current(session.session_id) and session.state == SessionState.TRANSCRIBING:
            return False
        logger.info(
            "stale_result_discarded",
            extra={"session_id": session.session_id, "active_id": self._session_id, "result": result},
        )
        return True

    async def _record_practiced(self, word: str, practiced_s: float) -> None:
        if self._persistence is None:
            return
        try:
            await asyncio.to_thread(self._persistence.record_word_practiced, word, practiced_s)
        except Exception:
            logger.exception("progress_write_failed", extra={"word": word})

    def _handle_transition(
        self, session: RecordingSession, from_state: SessionState, to_state: SessionState
    ) -> None:
        if to_state == SessionState.FAILED and session.error is not None:
            logger.warning(
                "session_failed",
                extra={"session_id": session.session_id, "code": session.error.code},
            )
        if not self._on_state_change:
            return
        try:
            self._on_state_change(from_state, to_state, session.snapshot())
        except Exception:
            logger.exception("state_callback_failed", extra={"session_id": session.session_id})
