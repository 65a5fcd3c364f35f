"""Tests for SoundDeviceRecorder."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from errors import CAPTURE_FAILED, PERMISSION_DENIED, CaptureError
from models import AudioFrame
from recorder import SoundDeviceRecorder


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

class _FakeNp:
    """Minimal numpy stand-in so recorder._on_audio doesn't bail."""

    class int16:
        pass

    @staticmethod
    def asarray(data, dtype=None):
        return data


class _FakeAudioInput:
    """Fake audio input similar to what sounddevice callback provides."""

    def __init__(self, n_samples: int = 1600) -> None:
        self._data = b"\x00\x00" * n_samples

    def tobytes(self) -> bytes:
        return self._data


# ---------------------------------------------------------------
# Basic start / stop
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_start_opens_stream_and_stop_releases_it(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream

    recorder = SoundDeviceRecorder()
    recorder.start(lambda frame: None)

    mock_sd.InputStream.assert_called_once()
    assert mock_sd.InputStream.call_args.kwargs["dtype"] == "int16"
    assert mock_sd.InputStream.call_args.kwargs["blocksize"] == 1600
    mock_stream.start.assert_called_once()
    assert recorder.active_tracks == 1

    recorder.stop()
    mock_stream.stop.assert_called_once()
    mock_stream.close.assert_called_once()
    assert recorder.active_tracks == 0


@patch("recorder.sd")
def test_start_is_idempotent(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    recorder = SoundDeviceRecorder()
    recorder.start(lambda frame: None)
    recorder.start(lambda frame: None)  # second call should be no-op

    assert mock_sd.InputStream.call_count == 1
    recorder.stop()


@patch("recorder.sd")
def test_stop_is_idempotent(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream

    recorder = SoundDeviceRecorder()
    recorder.start(lambda frame: None)
    recorder.stop()
    recorder.stop()

    mock_stream.close.assert_called_once()


def test_stop_without_start_is_noop() -> None:
    recorder = SoundDeviceRecorder()
    recorder.stop()
    assert recorder.active_tracks == 0


# ---------------------------------------------------------------
# Audio callback forwards frames
# ---------------------------------------------------------------

@patch("recorder.np", _FakeNp())
@patch("recorder.sd")
def test_callback_forwards_audio_frames(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()
    frames: list[AudioFrame] = []

    recorder = SoundDeviceRecorder(sample_rate=16000, channels=1, chunk_ms=100)
    recorder.start(frames.append)
    recorder._on_audio(_FakeAudioInput(1600), frames=1600, time_info=None, status=None)

    assert len(frames) == 1
    assert frames[0].sample_rate == 16000
    assert frames[0].channels == 1
    assert len(frames[0].pcm16_bytes) == 1600 * 2

    recorder.stop()


@patch("recorder.np", _FakeNp())
@patch("recorder.sd")
def test_callback_after_stop_is_noop(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()
    frames: list[AudioFrame] = []

    recorder = SoundDeviceRecorder()
    recorder.start(frames.append)
    recorder.stop()
    recorder._on_audio(_FakeAudioInput(1600), frames=1600, time_info=None, status=None)

    assert frames == []


@patch("recorder.np", _FakeNp())
@patch("recorder.sd")
def test_status_flags_are_counted(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    recorder = SoundDeviceRecorder()
    recorder.start(lambda frame: None)
    recorder._on_audio(_FakeAudioInput(), frames=1600, time_info=None, status="input overflow")

    assert recorder.overflow_count == 1
    recorder.stop()


# ---------------------------------------------------------------
# Failures
# ---------------------------------------------------------------

def test_start_raises_without_sounddevice(monkeypatch) -> None:  # noqa: ANN001
    import recorder as rec_mod
    monkeypatch.setattr(rec_mod, "sd", None)

    recorder = SoundDeviceRecorder()
    with pytest.raises(CaptureError, match="sounddevice is not installed"):
        recorder.start(lambda frame: None)


@patch("recorder.sd")
def test_device_error_becomes_capture_error(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.side_effect = RuntimeError("Error querying device -1")

    recorder = SoundDeviceRecorder()
    with pytest.raises(CaptureError) as info:
        recorder.start(lambda frame: None)

    assert info.value.code == CAPTURE_FAILED
    assert recorder.active_tracks == 0


@patch("recorder.sd")
def test_start_failure_closes_half_open_stream(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_stream.start.side_effect = RuntimeError("Permission denied")
    mock_sd.InputStream.return_value = mock_stream

    recorder = SoundDeviceRecorder()
    with pytest.raises(CaptureError) as info:
        recorder.start(lambda frame: None)

    assert info.value.code == PERMISSION_DENIED
    mock_stream.close.assert_called_once()
    assert recorder.active_tracks == 0
