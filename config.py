"""Simple JSON-based config store."""

from __future__ import annotations

import json
from pathlib import Path

DEFAULT_HOTKEY = "Key.alt_l"
DEFAULT_MODEL = "qwen3-asr-flash"
DEFAULT_MAX_RECORDING_S = 5.0


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "word_coach" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._path.parent

    def get_api_key(self) -> str:
        data = self._read_all()
        return str(data.get("api_key", ""))

    def set_api_key(self, key: str) -> None:
        data = self._read_all()
        data["api_key"] = key
        self._write_all(data)

    def get_hotkey(self) -> str:
        data = self._read_all()
        return str(data.get("hotkey", DEFAULT_HOTKEY))

    def set_hotkey(self, hotkey: str) -> None:
        data = self._read_all()
        data["hotkey"] = hotkey
        self._write_all(data)

    def get_max_recording_s(self) -> float:
        data = self._read_all()
        try:
            value = float(data.get("max_recording_s", DEFAULT_MAX_RECORDING_S))
        except (TypeError, ValueError):
            return DEFAULT_MAX_RECORDING_S
        return value if value > 0 else DEFAULT_MAX_RECORDING_S

    def get_model(self) -> str:
        data = self._read_all()
        return str(data.get("model", DEFAULT_MODEL))

    def get_log_level(self) -> str:
        data = self._read_all()
        return str(data.get("log_level", "INFO")).upper()

    def get_progress_path(self) -> Path:
        data = self._read_all()
        value = data.get("progress_path")
        if value:
            return Path(str(value)).expanduser()
        return self.directory / "progress.json"

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
