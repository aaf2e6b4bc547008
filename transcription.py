"""Submits captured audio to the transcription port exactly once."""

from __future__ import annotations

import logging

from errors import TranscriptionFailed
from interfaces import AudioCapturePort, TranscriptionPort
from models import AudioHandle

logger = logging.getLogger(__name__)


class TranscriptionRequestHandler:
    """Consumes an audio handle and returns the recognised transcript.

    The handle is owned by this call from entry: it is released on success,
    on failure and on task cancellation, never by the caller. Failures are
    not retried; they surface as ``TranscriptionFailed`` with the original
    exception as ``cause``.
    """

    def __init__(self, port: TranscriptionPort, capture: AudioCapturePort) -> None:
        self._port = port
        self._capture = capture

    async def transcribe(self, handle: AudioHandle) -> str:
        logger.info(
            "transcription_submitted",
            extra={"handle_id": handle.handle_id, "duration_s": round(handle.duration_s, 2)},
        )
        try:
            transcript = await self._port.submit(handle)
        except TranscriptionFailed:
            raise
        except Exception as exc:
            logger.warning(
                "transcription_failed",
                extra={"handle_id": handle.handle_id, "error": f"{type(exc).__name__}: {exc}"},
            )
            raise TranscriptionFailed(str(exc), cause=exc) from exc
        finally:
            self._capture.release_audio(handle)

        if transcript is None:
            raise TranscriptionFailed("empty response from transcription service")
        return str(transcript).strip()
