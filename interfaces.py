"""Protocol interfaces used by the assessment pipeline."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol

from models import AudioHandle


class AudioCapturePort(Protocol):
    async def request_permission(self) -> bool: ...

    async def start_capture(self) -> Any: ...

    async def stop_capture(self, stream: Any) -> AudioHandle: ...

    def release_audio(self, handle: AudioHandle) -> None: ...

    def play(self, handle: AudioHandle) -> None: ...


class TranscriptionPort(Protocol):
    async def submit(self, handle: AudioHandle) -> str: ...


class PersistencePort(Protocol):
    def record_word_practiced(self, word: str, practiced_s: float = 0.0) -> None: ...


class Scorer(Protocol):
    def score(self, target: str, candidate: str) -> int: ...


class ConfigStore(Protocol):
    def get_api_key(self) -> str: ...

    def set_api_key(self, key: str) -> None: ...

    def get_hotkey(self) -> str: ...

    def set_hotkey(self, hotkey: str) -> None: ...

    def get_max_recording_s(self) -> float: ...

    def get_model(self) -> str: ...

    def get_log_level(self) -> str: ...

    def get_progress_path(self) -> Path: ...
