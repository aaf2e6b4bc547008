"""Transcription port backed by DashScope qwen3-asr-flash.

The model accepts a complete recording (file path, URL or base64 data URI)
and returns the recognised text in one response. The captured PCM is
wrapped in a WAV container and sent inline; the blocking SDK call runs in
a worker thread so the event loop keeps serving other sessions.
"""

from __future__ import annotations

import asyncio
import base64
import io
import logging
import os
import wave
from typing import Any

from models import AudioHandle

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger(__name__)


def _pcm_to_wav_base64(
    pcm: bytes,
    sample_rate: int = 16000,
    channels: int = 1,
    sample_width: int = 2,
) -> str:
    """Convert raw PCM bytes to a base64-encoded WAV string."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    wav_bytes = buf.getvalue()
    return base64.b64encode(wav_bytes).decode("ascii")


class DashscopeTranscriber:
    def __init__(
        self,
        api_key: str,
        model: str = "qwen3-asr-flash",
        language: str = "en",
        request_timeout_s: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._language = language
        self._request_timeout_s = request_timeout_s

    async def submit(self, handle: AudioHandle) -> str:
        if handle.released:
            raise RuntimeError("audio handle was already released")
        wav_b64 = _pcm_to_wav_base64(handle.pcm16_bytes, handle.sample_rate, handle.channels)
        return await asyncio.to_thread(self._recognize, wav_b64)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _recognize(self, wav_base64: str) -> str:
        if dashscope is None:
            raise RuntimeError("dashscope is not installed")
        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            raise RuntimeError("No API key configured")

        response = dashscope.MultiModalConversation.call(
            api_key=api_key,
            model=self._model,
            messages=[
                {"role": "system", "content": [{"text": ""}]},
                {"role": "user", "content": [{"audio": f"data:audio/wav;base64,{wav_base64}"}]},
            ],
            result_format="message",
            asr_options={"enable_itn": False, "language": self._language},
            timeout=self._request_timeout_s,
        )

        status = self._field(response, "status_code", 200)
        if status is not None and int(status) != 200:
            code = self._field(response, "code", "")
            message = self._field(response, "message", "")
            raise RuntimeError(f"{status} {code}: {message}".strip())

        text = self._extract_text(response)
        logger.debug("transcription_received", extra={"model": self._model, "chars": len(text)})
        return text

    @staticmethod
    def _field(response: Any, name: str, default: Any) -> Any:
        if isinstance(response, dict) and name in response:
            return response[name]
        return getattr(response, name, default)

    def _extract_text(self, response: object) -> str:
        """Pull text from a dashscope response dict."""
        if isinstance(response, dict):
            output = response.get("output") or {}
            choices = output.get("choices", [])
            if not choices:
                return ""
            message = choices[0].get("message", {})
            content = message.get("content", [])
            if not content:
                return ""
            value = content[0]
            if isinstance(value, dict):
                return str(value.get("text", ""))
        return ""
