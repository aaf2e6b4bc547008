from __future__ import annotations

import asyncio
from unittest.mock import MagicMock, patch

import pytest

from hotkey import PushToTalkHotkey


@patch("hotkey.keyboard")
def test_press_and_release_are_delivered_once(mock_keyboard: MagicMock) -> None:
    loop = asyncio.new_event_loop()
    calls: list[str] = []
    try:
        hotkey = PushToTalkHotkey(loop, hotkey_name="Key.alt_l")
        hotkey.start(on_press=lambda: calls.append("press"), on_release=lambda: calls.append("release"))
        kwargs = mock_keyboard.Listener.call_args.kwargs

        kwargs["on_press"]("Key.alt_l")
        kwargs["on_press"]("Key.alt_l")  # auto-repeat
        kwargs["on_press"]("Key.shift")
        kwargs["on_release"]("Key.alt_l")
        kwargs["on_release"]("Key.alt_l")
        loop.run_until_complete(asyncio.sleep(0))

        hotkey.stop()
    finally:
        loop.close()

    assert calls == ["press", "release"]
    mock_keyboard.Listener.return_value.start.assert_called_once()
    mock_keyboard.Listener.return_value.stop.assert_called_once()


@patch("hotkey.keyboard", None)
def test_start_without_pynput_raises() -> None:
    loop = asyncio.new_event_loop()
    try:
        hotkey = PushToTalkHotkey(loop)
        assert hotkey.available is False
        with pytest.raises(RuntimeError, match="pynput is not installed"):
            hotkey.start(on_press=lambda: None, on_release=lambda: None)
    finally:
        loop.close()
