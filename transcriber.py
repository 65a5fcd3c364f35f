"""Speech-to-text client using DashScope qwen3-asr-flash.

The qwen3-asr-flash model accepts complete audio (file path, URL, or base64)
and streams back recognition results via ``stream=True``.  The buffered PCM
frames of a session are wrapped into a WAV data URI and sent in one request.
Partial results are forwarded to ``on_partial`` as they arrive; the last
non-empty text is the transcript.

Transient failures (timeouts, dropped connections, 429/5xx) are retried once
with backoff. Auth failures and empty or silent audio fail immediately.
"""

from __future__ import annotations

import base64
import io
import math
import os
import time
import wave
from typing import Callable, Optional, Sequence

from errors import ASR_PROTOCOL_ERROR, AUTH_FAILED, EMPTY_AUDIO, NETWORK_ERROR, TranscriptionError
from logger import get_logger
from models import AudioFrame

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = get_logger(__name__)

API_KEY_ENV = "DASHSCOPE_API_KEY"


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


def pcm_rms(pcm: bytes) -> float:
    """Root-mean-square level of int16 PCM."""
    usable = len(pcm) - (len(pcm) % 2)
    if usable <= 0 or np is None:
        return 0.0
    samples = np.frombuffer(pcm[:usable], dtype=np.int16).astype(np.float64)
    return float(math.sqrt(float(np.mean(samples * samples))))


class DashscopeTranscriber:
    def __init__(
        self,
        api_key: str,
        model: str = "qwen3-asr-flash",
        request_timeout_s: float = 10.0,
        max_retries: int = 1,
        retry_backoff_s: float = 0.5,
        silence_rms: float = 200.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._request_timeout_s = request_timeout_s
        self._max_retries = max_retries
        self._retry_backoff_s = retry_backoff_s
        self._silence_rms = silence_rms
        self._sleep = sleep

    def transcribe(
        self,
        frames: Sequence[AudioFrame],
        on_partial: Optional[Callable[[str], None]] = None,
    ) -> str:
        pcm = b"".join(frame.pcm16_bytes for frame in frames)
        if not pcm:
            raise TranscriptionError("no audio captured", code=EMPTY_AUDIO)
        if np is not None and pcm_rms(pcm) < self._silence_rms:
            raise TranscriptionError("audio is silent", code=EMPTY_AUDIO)
        if dashscope is None:
            raise TranscriptionError("dashscope is not installed")

        api_key = self._api_key or os.getenv(API_KEY_ENV, "")
        if not api_key:
            raise TranscriptionError("No API key configured", code=AUTH_FAILED)

        first = frames[0]
        wav_b64 = _pcm_to_wav_base64(pcm, first.sample_rate, first.channels)
        logger.info("Transcribing %d bytes of audio with %s", len(pcm), self._model)

        attempt = 0
        while True:
            try:
                text = self._recognize_stream(api_key, wav_b64, on_partial)
                break
            except TranscriptionError as exc:
                if not exc.retryable or attempt >= self._max_retries:
                    logger.error("Transcription failed: %s (%s)", exc.message, exc.code)
                    raise
                delay = self._retry_backoff_s * (2 ** attempt)
                attempt += 1
                logger.warning(
                    "Transcription attempt %d failed (%s), retrying in %.2fs",
                    attempt,
                    exc.message,
                    delay,
                )
                self._sleep(delay)

        text = text.strip()
        if not text:
            raise TranscriptionError("empty transcription result", code=EMPTY_AUDIO)
        logger.info("Transcription complete (%d chars)", len(text))
        return text

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _recognize_stream(
        self,
        api_key: str,
        wav_base64: str,
        on_partial: Optional[Callable[[str], None]],
    ) -> str:
        """Send audio to dashscope and collect streamed partials."""
        try:
            response = dashscope.MultiModalConversation.call(
                api_key=api_key,
                model=self._model,
                messages=[
                    {"role": "system", "content": [{"text": ""}]},
                    {"role": "user", "content": [{"audio": f"data:audio/wav;base64,{wav_base64}"}]},
                ],
                result_format="message",
                asr_options={"enable_itn": False},
                stream=True,
                request_timeout=self._request_timeout_s,
            )
        except Exception as exc:
            raise self._to_error(exc) from exc

        latest_text = ""
        try:
            for chunk in response:
                self._check_status(chunk)
                text = self._extract_text(chunk)
                if text:
                    latest_text = text
                    if on_partial is not None:
                        on_partial(text)
        except TranscriptionError:
            raise
        except Exception as exc:
            raise self._to_error(exc) from exc
        return latest_text

    def _check_status(self, chunk: object) -> None:
        if not isinstance(chunk, dict):
            return
        status = chunk.get("status_code")
        if status is None or status == 200:
            return
        message = f"{status} {chunk.get('code', '')}: {chunk.get('message', '')}".strip()
        if status in (401, 403):
            raise TranscriptionError(message, code=AUTH_FAILED)
        if status == 429 or status >= 500:
            raise TranscriptionError(message, code=NETWORK_ERROR, retryable=True)
        raise TranscriptionError(message, code=ASR_PROTOCOL_ERROR)

    def _extract_text(self, chunk: object) -> str:
        """Pull text from a dashscope streaming chunk dict."""
        if isinstance(chunk, dict):
            output = chunk.get("output") or {}
            choices = output.get("choices") or []
            if not choices:
                return ""
            message = choices[0].get("message") or {}
            content = message.get("content") or []
            if not content:
                return ""
            value = content[0]
            if isinstance(value, dict):
                return str(value.get("text", ""))
        return ""

    def _to_error(self, exc: Exception) -> TranscriptionError:
        """Map an SDK/network exception to a TranscriptionError."""
        message = str(exc)
        low = message.lower()
        if "401" in low or "auth" in low or "api key" in low:
            return TranscriptionError(message, code=AUTH_FAILED)
        if (
            isinstance(exc, (ConnectionError, TimeoutError))
            or "timeout" in low
            or "timed out" in low
            or "network" in low
            or "connection" in low
        ):
            return TranscriptionError(message, code=NETWORK_ERROR, retryable=True)
        return TranscriptionError(message, code=ASR_PROTOCOL_ERROR)
