"""Shared error codes, user-facing messages and pipeline exceptions."""

from __future__ import annotations

from typing import Optional

PERMISSION_DENIED = "PERMISSION_DENIED"
CAPTURE_EMPTY = "CAPTURE_EMPTY"
DEVICE_BUSY = "DEVICE_BUSY"
TRANSCRIPTION_FAILED = "TRANSCRIPTION_FAILED"
INVALID_TARGET = "INVALID_TARGET"
INVALID_TRANSITION = "INVALID_TRANSITION"
NO_RECORDING_AVAILABLE = "NO_RECORDING_AVAILABLE"

# Causes reported inside TRANSCRIPTION_FAILED
NETWORK_ERROR = "NETWORK_ERROR"
AUTH_FAILED = "AUTH_FAILED"
ASR_PROTOCOL_ERROR = "ASR_PROTOCOL_ERROR"

ERROR_MESSAGES = {
    PERMISSION_DENIED: "Microphone permission is required to practice.",
    CAPTURE_EMPTY: "Nothing was recorded, please try again.",
    DEVICE_BUSY: "The microphone is in use by another application.",
    TRANSCRIPTION_FAILED: "Could not recognise the recording, please try again.",
    INVALID_TARGET: "Please choose a word to practice.",
    INVALID_TRANSITION: "That action is not available right now.",
    NO_RECORDING_AVAILABLE: "There is no recording to play back.",
    NETWORK_ERROR: "Network failed, please retry.",
    AUTH_FAILED: "API key is invalid.",
    ASR_PROTOCOL_ERROR: "ASR response format is invalid.",
}


def classify_cause(exc: BaseException) -> str:
    """Map an SDK/network exception to a transcription cause code."""
    low = str(exc).lower()
    if "401" in low or "auth" in low or "api key" in low:
        return AUTH_FAILED
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return NETWORK_ERROR
    if "timeout" in low or "network" in low or "connection" in low:
        return NETWORK_ERROR
    return ASR_PROTOCOL_ERROR


class PipelineError(Exception):
    code = ""

    def __init__(self, message: str = "", cause: Optional[BaseException] = None) -> None:
        self.message = message or ERROR_MESSAGES.get(self.code, self.code)
        self.cause = cause
        super().__init__(self.message)


class InvalidTarget(PipelineError):
    code = INVALID_TARGET


class InvalidTransition(PipelineError):
    code = INVALID_TRANSITION


class NoRecordingAvailable(PipelineError):
    code = NO_RECORDING_AVAILABLE


class CaptureUnavailable(PipelineError):
    """Raised by capture adapters when the input device cannot be opened."""

    code = DEVICE_BUSY


class TranscriptionFailed(PipelineError):
    code = TRANSCRIPTION_FAILED

    def __init__(self, message: str = "", cause: Optional[BaseException] = None) -> None:
        super().__init__(message, cause)
        self.cause_code = classify_cause(cause) if cause is not None else ASR_PROTOCOL_ERROR
