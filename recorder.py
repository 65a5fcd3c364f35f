"""Microphone recorder adapter."""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Optional

from errors import CAPTURE_FAILED, PERMISSION_DENIED, CaptureError
from logger import get_logger
from models import AudioFrame

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = get_logger(__name__)

FrameCallback = Callable[[AudioFrame], None]


class SoundDeviceRecorder:
    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
        device: Optional[int | str] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self.device = device
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self._on_frame: Optional[FrameCallback] = None
        self.overflow_count = 0

    @property
    def active_tracks(self) -> int:
        return 1 if self._stream is not None else 0

    def start(self, on_frame: FrameCallback) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None:
                raise CaptureError("sounddevice is not installed")
            self._on_frame = on_frame
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            try:
                self._stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype="int16",
                    blocksize=blocksize,
                    device=self.device,
                    callback=self._on_audio,
                )
                self._stream.start()
            except Exception as exc:
                self._close_stream()
                self._on_frame = None
                raise CaptureError(f"cannot open input stream: {exc}", code=_capture_code(exc)) from exc
            self._running = True
            logger.debug("Input stream opened (%d Hz, %d ch)", self.sample_rate, self.channels)

    def stop(self) -> None:
        with self._lock:
            self._running = False
            self._on_frame = None
            if self._stream is not None:
                self._close_stream()
                logger.debug("Input stream closed")

    def _close_stream(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
        except Exception as exc:
            logger.warning("Input stream stop failed: %s", exc)
        try:
            stream.close()
        except Exception as exc:
            logger.warning("Input stream close failed: %s", exc)

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        on_frame = self._on_frame
        if not self._running or on_frame is None:
            return
        if np is None:
            return
        if status:
            self.overflow_count += 1
        payload = np.asarray(indata, dtype=np.int16).tobytes()
        on_frame(
            AudioFrame(
                pcm16_bytes=payload,
                sample_rate=self.sample_rate,
                channels=self.channels,
                timestamp_ms=int(time.time() * 1000),
            )
        )


def _capture_code(exc: Exception) -> str:
    low = str(exc).lower()
    if "permission" in low or "not authorized" in low or "access" in low:
        return PERMISSION_DENIED
    return CAPTURE_FAILED
