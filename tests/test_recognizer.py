"""Tests for DashscopeTranscriber."""

from __future__ import annotations

import asyncio
import base64
from unittest.mock import MagicMock, patch

import pytest

from models import AudioHandle
from recognizer import DashscopeTranscriber, _pcm_to_wav_base64


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

def _make_handle(n_samples: int = 1600) -> AudioHandle:
    """Generate a silent AudioHandle (all zeros)."""
    return AudioHandle(pcm16_bytes=b"\x00\x00" * n_samples, sample_rate=16000, channels=1)


def _response(text: str, status_code: int = 200) -> dict:
    return {
        "status_code": status_code,
        "output": {"choices": [{"message": {"content": [{"text": text}]}}]},
    }


# ---------------------------------------------------------------
# _pcm_to_wav_base64
# ---------------------------------------------------------------

def test_pcm_to_wav_base64_produces_valid_base64() -> None:
    pcm = b"\x00\x00" * 1600  # 100ms of silence at 16kHz
    result = _pcm_to_wav_base64(pcm, sample_rate=16000, channels=1)
    assert isinstance(result, str)
    decoded = base64.b64decode(result)
    # WAV header starts with RIFF
    assert decoded[:4] == b"RIFF"
    assert decoded[8:12] == b"WAVE"


# ---------------------------------------------------------------
# Successful request
# ---------------------------------------------------------------

@patch("recognizer.dashscope")
def test_submit_returns_text(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = _response("hello")

    transcriber = DashscopeTranscriber(api_key="test-key", model="qwen3-asr-flash")
    text = asyncio.run(transcriber.submit(_make_handle()))

    assert text == "hello"
    mock_ds.MultiModalConversation.call.assert_called_once()
    kwargs = mock_ds.MultiModalConversation.call.call_args.kwargs
    assert kwargs["api_key"] == "test-key"
    assert kwargs["model"] == "qwen3-asr-flash"
    audio = kwargs["messages"][1]["content"][0]["audio"]
    assert audio.startswith("data:audio/wav;base64,")


@patch("recognizer.dashscope")
def test_empty_choices_give_empty_text(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = {"status_code": 200, "output": {"choices": []}}

    transcriber = DashscopeTranscriber(api_key="test-key")
    assert asyncio.run(transcriber.submit(_make_handle())) == ""


# ---------------------------------------------------------------
# Failures
# ---------------------------------------------------------------

@patch("recognizer.dashscope")
def test_error_status_raises(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = {
        "status_code": 401,
        "code": "InvalidApiKey",
        "message": "Invalid API-key provided.",
    }

    transcriber = DashscopeTranscriber(api_key="bad-key")
    with pytest.raises(RuntimeError, match="401"):
        asyncio.run(transcriber.submit(_make_handle()))


@patch("recognizer.dashscope")
def test_network_error_propagates(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.side_effect = ConnectionError("network timeout")

    transcriber = DashscopeTranscriber(api_key="test-key")
    with pytest.raises(ConnectionError):
        asyncio.run(transcriber.submit(_make_handle()))


@patch("recognizer.dashscope", MagicMock())
@patch.dict("os.environ", {"DASHSCOPE_API_KEY": ""}, clear=False)
def test_missing_api_key_raises() -> None:
    transcriber = DashscopeTranscriber(api_key="")
    with pytest.raises(RuntimeError, match="No API key"):
        asyncio.run(transcriber.submit(_make_handle()))


@patch("recognizer.dashscope")
@patch.dict("os.environ", {"DASHSCOPE_API_KEY": "env-key"}, clear=False)
def test_api_key_falls_back_to_environment(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = _response("hi")

    transcriber = DashscopeTranscriber(api_key="")
    asyncio.run(transcriber.submit(_make_handle()))

    assert mock_ds.MultiModalConversation.call.call_args.kwargs["api_key"] == "env-key"


@patch("recognizer.dashscope", None)
def test_dashscope_not_installed_raises() -> None:
    transcriber = DashscopeTranscriber(api_key="test-key")
    with pytest.raises(RuntimeError, match="not installed"):
        asyncio.run(transcriber.submit(_make_handle()))


@patch("recognizer.dashscope")
def test_released_handle_is_rejected(mock_ds: MagicMock) -> None:
    handle = _make_handle()
    handle.released = True

    transcriber = DashscopeTranscriber(api_key="test-key")
    with pytest.raises(RuntimeError, match="released"):
        asyncio.run(transcriber.submit(handle))
    mock_ds.MultiModalConversation.call.assert_not_called()
