"""Core data models for the app."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class SessionState(str, Enum):
    IDLE = "IDLE"
    CAPTURING = "CAPTURING"
    TRANSCRIBING = "TRANSCRIBING"
    FORMATTING = "FORMATTING"
    DELIVERING = "DELIVERING"


class FormatStyle(str, Enum):
    CHAT = "chat"
    EMAIL = "email"
    CODE = "code"
    PROSE = "prose"


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass
class ForegroundApp:
    name: str = ""
    handle: Optional[Any] = None


@dataclass
class Session:
    session_id: int
    state: SessionState = SessionState.IDLE
    started_at: float = field(default_factory=time.time)
    audio_buffer: list[AudioFrame] = field(default_factory=list)
    target: Optional[ForegroundApp] = None

    def payload(self) -> bytes:
        """Concatenate buffered chunks in capture order."""
        return b"".join(frame.pcm16_bytes for frame in self.audio_buffer)

    def duration_ms(self) -> int:
        if not self.audio_buffer:
            return 0
        first = self.audio_buffer[0]
        bytes_per_ms = first.sample_rate * first.channels * 2 / 1000.0
        return int(len(self.payload()) / bytes_per_ms)


@dataclass
class DeliveryResult:
    copied: bool
    pasted: bool
    reason: str = "ok"
