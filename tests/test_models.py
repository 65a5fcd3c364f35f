from __future__ import annotations

from errors import CAPTURE_FAILED, ERROR_MESSAGES, EMPTY_AUDIO, CaptureError, TranscriptionError
from models import AudioFrame, Session, SessionState


def test_session_payload_keeps_chunk_order() -> None:
    session = Session(session_id=1)
    session.audio_buffer.extend(
        [AudioFrame(pcm16_bytes=b"\x01\x00"), AudioFrame(pcm16_bytes=b"\x02\x00")]
    )

    assert session.payload() == b"\x01\x00\x02\x00"
    assert session.state == SessionState.IDLE


def test_session_duration() -> None:
    session = Session(session_id=1)
    assert session.duration_ms() == 0

    session.audio_buffer.append(AudioFrame(pcm16_bytes=b"\x00\x00" * 8000))
    assert session.duration_ms() == 500


def test_error_defaults_to_user_message() -> None:
    exc = CaptureError()
    assert exc.code == CAPTURE_FAILED
    assert exc.message == ERROR_MESSAGES[CAPTURE_FAILED]


def test_transcription_error_carries_retryable() -> None:
    exc = TranscriptionError("timeout", code=EMPTY_AUDIO, retryable=True)
    assert exc.retryable is True
    assert str(exc) == "timeout"
