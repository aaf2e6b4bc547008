"""Application entrypoint: practice a list of words from the console."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import threading
from typing import Optional, Sequence

from config import JsonConfigStore
from errors import ERROR_MESSAGES
from hotkey import PushToTalkHotkey
from interfaces import ConfigStore
from models import SessionState, SessionStatus
from orchestrator import AssessmentOrchestrator
from progress_store import JsonProgressStore
from recognizer import DashscopeTranscriber
from recorder import SoundDeviceCapture

logger = logging.getLogger(__name__)

PRESS = "press"
RELEASE = "release"
ENTER = "enter"

_RECORD_FIELDS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class EventFormatter(logging.Formatter):
    """Append the fields passed through ``extra=`` as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = " ".join(
            f"{key}={value}" for key, value in vars(record).items() if key not in _RECORD_FIELDS
        )
        if not fields:
            return line
        head, sep, tail = line.partition("\n")
        return f"{head} {fields}{sep}{tail}"


def describe(status: SessionStatus) -> str:
    if status.state == SessionState.SCORED:
        return f"'{status.target}' -> heard '{status.transcript}', score {status.score}/100"
    if status.state == SessionState.FAILED and status.error is not None:
        message = status.error.message or ERROR_MESSAGES.get(status.error.code, status.error.code)
        return f"{status.error.code}: {message}"
    return status.state.value


class App:
    def __init__(self, config_store: ConfigStore, words: Sequence[str]) -> None:
        self.config_store = config_store
        self.words = list(words)
        self.progress = JsonProgressStore(config_store.get_progress_path())
        self.controller = AssessmentOrchestrator(
            capture=SoundDeviceCapture(),
            transcription=DashscopeTranscriber(
                api_key=config_store.get_api_key(),
                model=config_store.get_model(),
            ),
            persistence=self.progress,
            max_recording_s=config_store.get_max_recording_s(),
            on_state_change=self._on_state_change,
        )
        self._events: asyncio.Queue[str] = asyncio.Queue()
        self._hotkey: Optional[PushToTalkHotkey] = None

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def _start_input(self, loop: asyncio.AbstractEventLoop) -> str:
        events = self._events
        hotkey_name = self.config_store.get_hotkey()
        hotkey = PushToTalkHotkey(loop, hotkey_name=hotkey_name)
        if hotkey.available:
            try:
                hotkey.start(
                    on_press=lambda: events.put_nowait(PRESS),
                    on_release=lambda: events.put_nowait(RELEASE),
                )
                self._hotkey = hotkey
                return f"Hold {hotkey_name} while speaking"
            except Exception as exc:
                logger.warning("hotkey_disabled", extra={"error": str(exc)})

        def _read_stdin() -> None:
            for _ in sys.stdin:
                loop.call_soon_threadsafe(events.put_nowait, ENTER)

        threading.Thread(target=_read_stdin, daemon=True).start()
        return "Press Enter to start speaking and Enter again to stop"

    async def _next_event(self, wanted: str) -> None:
        while await self._events.get() not in (wanted, ENTER):
            continue

    # ------------------------------------------------------------------
    # Practice loop
    # ------------------------------------------------------------------

    async def practice(self, word: str, prompt: str) -> SessionStatus:
        await self.controller.select_target(word)
        print(f"\nWord: {word}  ({prompt})")
        await self._next_event(PRESS)
        status = await self.controller.begin_capture()
        if status.state != SessionState.RECORDING:
            return status

        session = self.controller.session
        while session is not None and session.state == SessionState.RECORDING:
            try:
                event = await asyncio.wait_for(self._events.get(), timeout=0.1)
            except asyncio.TimeoutError:
                continue
            if event in (RELEASE, ENTER):
                await self.controller.end_capture()
        await self.controller.wait_idle()
        return self.controller.current_status()

    async def run(self) -> int:
        prompt = self._start_input(asyncio.get_running_loop())
        try:
            for word in self.words:
                status = await self.practice(word, prompt)
                print(describe(status))
        finally:
            if self._hotkey is not None:
                self._hotkey.stop()
            await self.controller.close()
        print(
            f"\nStreak: {self.progress.get_streak()} day(s), "
            f"learned words: {len(self.progress.get_learned_words())}, "
            f"hours practiced: {self.progress.get_hours_practiced():.2f}"
        )
        return 0

    def _on_state_change(
        self, from_state: SessionState, to_state: SessionState, status: SessionStatus
    ) -> None:
        if to_state == SessionState.RECORDING:
            print("Listening...")
        elif to_state == SessionState.TRANSCRIBING:
            print("Processing...")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Pronunciation practice for single words.")
    parser.add_argument("words", nargs="+", help="words to practice, in order")
    parser.add_argument("--api-key", help="store a DashScope API key before starting")
    parser.add_argument("--hotkey", help="store a push-to-talk key, pynput format (e.g. Key.alt_l)")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    config_store = JsonConfigStore()
    if args.api_key:
        config_store.set_api_key(args.api_key)
    if args.hotkey:
        config_store.set_hotkey(args.hotkey)
    handler = logging.StreamHandler()
    handler.setFormatter(EventFormatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    logging.basicConfig(level=config_store.get_log_level(), handlers=[handler])
    app = App(config_store, args.words)
    try:
        return asyncio.run(app.run())
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
