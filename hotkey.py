"""Push-to-talk hotkey that reports presses onto an asyncio loop."""

from __future__ import annotations

import asyncio
import threading
from typing import Callable, Optional

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore


class PushToTalkHotkey:
    """Calls ``on_press`` once when the key goes down and ``on_release`` when it comes up.

    pynput delivers key events on its own listener thread; both callbacks
    are scheduled onto ``loop`` so they run alongside the pipeline. Key
    auto-repeat while held produces a single press.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, hotkey_name: str = "Key.alt_l") -> None:
        self._loop = loop
        self._hotkey_name = hotkey_name
        self._listener: Optional[object] = None
        self._pressed = False
        self._lock = threading.Lock()

    @property
    def available(self) -> bool:
        return keyboard is not None

    def start(self, on_press: Callable[[], None], on_release: Callable[[], None]) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")

        def _on_press(key: object) -> None:
            if str(key) != self._hotkey_name:
                return
            with self._lock:
                if self._pressed:
                    return
                self._pressed = True
            self._loop.call_soon_threadsafe(on_press)

        def _on_release(key: object) -> None:
            if str(key) != self._hotkey_name:
                return
            with self._lock:
                if not self._pressed:
                    return
                self._pressed = False
            self._loop.call_soon_threadsafe(on_release)

        self._listener = keyboard.Listener(on_press=_on_press, on_release=_on_release)
        self._listener.start()

    def stop(self) -> None:
        listener = self._listener
        if listener is not None:
            listener.stop()
            self._listener = None
