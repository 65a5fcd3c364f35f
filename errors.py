"""Shared error codes, user-facing messages and session exceptions."""

from __future__ import annotations

PERMISSION_DENIED = "PERMISSION_DENIED"
CAPTURE_FAILED = "CAPTURE_FAILED"
NETWORK_ERROR = "NETWORK_ERROR"
AUTH_FAILED = "AUTH_FAILED"
EMPTY_AUDIO = "EMPTY_AUDIO"
ASR_PROTOCOL_ERROR = "ASR_PROTOCOL_ERROR"
FORMAT_FAILED = "FORMAT_FAILED"
NO_ACTIVE_TARGET = "NO_ACTIVE_TARGET"
DELIVERY_FAILED = "DELIVERY_FAILED"
CANCELLED = "CANCELLED"

ERROR_MESSAGES = {
    PERMISSION_DENIED: "Microphone or accessibility permission is required.",
    CAPTURE_FAILED: "Could not open the microphone.",
    NETWORK_ERROR: "Network failed, please retry.",
    AUTH_FAILED: "API key is invalid.",
    EMPTY_AUDIO: "Nothing was heard.",
    ASR_PROTOCOL_ERROR: "ASR response format is invalid.",
    FORMAT_FAILED: "Formatting failed, raw transcript used.",
    NO_ACTIVE_TARGET: "No active input target, result kept in clipboard.",
    DELIVERY_FAILED: "Clipboard unavailable, result shown in panel.",
    CANCELLED: "Recording cancelled.",
}


class VoicePasteError(Exception):
    """Base class for session errors carrying a UI error code."""

    default_code = ASR_PROTOCOL_ERROR

    def __init__(self, message: str = "", code: str | None = None) -> None:
        self.code = code or self.default_code
        self.message = message or ERROR_MESSAGES.get(self.code, self.code)
        super().__init__(self.message)


class CaptureError(VoicePasteError):
    default_code = CAPTURE_FAILED


class TranscriptionError(VoicePasteError):
    default_code = ASR_PROTOCOL_ERROR

    def __init__(
        self, message: str = "", code: str | None = None, retryable: bool = False
    ) -> None:
        super().__init__(message, code)
        self.retryable = retryable


class FormattingError(VoicePasteError):
    default_code = FORMAT_FAILED


class DeliveryError(VoicePasteError):
    default_code = DELIVERY_FAILED


class InvalidTransition(RuntimeError):
    def __init__(self, from_state: object, to_state: object) -> None:
        super().__init__(f"illegal transition {from_state} -> {to_state}")
        self.from_state = from_state
        self.to_state = to_state
