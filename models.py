"""Core data models for the pronunciation pipeline."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

_handle_ids = itertools.count(1)


class SessionState(str, Enum):
    IDLE = "IDLE"
    PERMISSION_PENDING = "PERMISSION_PENDING"
    RECORDING = "RECORDING"
    STOPPING = "STOPPING"
    TRANSCRIBING = "TRANSCRIBING"
    SCORED = "SCORED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({SessionState.SCORED, SessionState.FAILED, SessionState.CANCELLED})


@dataclass(frozen=True)
class PracticeTarget:
    word: str


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass(eq=False)
class AudioHandle:
    """Captured PCM16 audio. Exactly one owner at a time; released once."""

    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    handle_id: int = field(default_factory=lambda: next(_handle_ids))
    released: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.pcm16_bytes

    @property
    def duration_s(self) -> float:
        frame_bytes = 2 * max(1, self.channels)
        return len(self.pcm16_bytes) / frame_bytes / float(self.sample_rate)


@dataclass(frozen=True)
class SessionError:
    code: str
    message: str = ""
    cause: Optional[BaseException] = None


@dataclass(frozen=True)
class SessionStatus:
    """Read-only view of the active session handed to the presentation layer."""

    session_id: int
    state: SessionState
    target: Optional[str] = None
    elapsed_s: float = 0.0
    transcript: Optional[str] = None
    score: Optional[int] = None
    error: Optional[SessionError] = None
