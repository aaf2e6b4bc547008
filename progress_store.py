"""Practice progress persisted as a small JSON document."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Callable, Optional


class JsonProgressStore:
    """Learned words, daily streak, attempt count and time spent speaking.

    The streak counts consecutive calendar days with at least one scored
    attempt: another attempt on the same day keeps it, the next day
    extends it, and any gap restarts it at 1.
    """

    def __init__(self, path: Path, today: Callable[[], date] = date.today) -> None:
        self._path = path
        self._today = today
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def record_word_practiced(self, word: str, practiced_s: float = 0.0) -> None:
        word = word.strip().lower()
        data = self._read_all()

        words = _as_words(data.get("learned_words"))
        if word and word not in words:
            words.append(word)
        data["learned_words"] = words
        data["practice_count"] = _as_int(data.get("practice_count")) + 1
        data["seconds_practiced"] = _as_float(data.get("seconds_practiced")) + max(0.0, practiced_s)

        today = self._today()
        previous = _as_date(data.get("last_practice_date"))
        streak = _as_int(data.get("streak"))
        if previous != today:
            if previous is not None and (today - previous).days == 1:
                streak += 1
            else:
                streak = 1
        data["streak"] = max(1, streak)
        data["last_practice_date"] = today.isoformat()
        self._write_all(data)

    def get_learned_words(self) -> list[str]:
        return _as_words(self._read_all().get("learned_words"))

    def get_streak(self) -> int:
        return _as_int(self._read_all().get("streak"))

    def get_practice_count(self) -> int:
        return _as_int(self._read_all().get("practice_count"))

    def get_hours_practiced(self) -> float:
        return _as_float(self._read_all().get("seconds_practiced")) / 3600.0

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


def _as_words(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(w) for w in value]


def _as_int(value: object) -> int:
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0
    return max(0, number)


def _as_float(value: object) -> float:
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    return number if number > 0 else 0.0


def _as_date(value: object) -> Optional[date]:
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None
