"""State-machine based session orchestration.

One session at a time walks IDLE -> CAPTURING -> TRANSCRIBING -> FORMATTING
-> DELIVERING -> IDLE. Capture and transcription failures abort straight back
to IDLE; formatting falls back to the raw transcript and delivery failures
only leave the text in the panel.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

from errors import (
    ASR_PROTOCOL_ERROR,
    CANCELLED,
    CAPTURE_FAILED,
    NO_ACTIVE_TARGET,
    CaptureError,
    DeliveryError,
    FormattingError,
    InvalidTransition,
    TranscriptionError,
)
from interfaces import ForegroundProbe, Formatter, PasteService, Recorder, Transcriber
from logger import get_logger
from models import AudioFrame, ForegroundApp, Session, SessionState

logger = get_logger(__name__)

StateCallback = Callable[[SessionState, SessionState], None]
TextCallback = Callable[[str], None]
ErrorCallback = Callable[[str, str], None]

TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.CAPTURING}),
    SessionState.CAPTURING: frozenset({SessionState.TRANSCRIBING, SessionState.IDLE}),
    SessionState.TRANSCRIBING: frozenset({SessionState.FORMATTING, SessionState.IDLE}),
    SessionState.FORMATTING: frozenset({SessionState.DELIVERING, SessionState.IDLE}),
    SessionState.DELIVERING: frozenset({SessionState.IDLE}),
}


class SessionController:
    def __init__(
        self,
        recorder: Recorder,
        transcriber: Transcriber,
        formatter: Formatter,
        paste_service: PasteService,
        probe: Optional[ForegroundProbe] = None,
        auto_paste: bool = True,
        min_capture_ms: int = 0,
        on_state_change: Optional[StateCallback] = None,
        on_partial: Optional[TextCallback] = None,
        on_result: Optional[TextCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._recorder = recorder
        self._transcriber = transcriber
        self._formatter = formatter
        self._paste_service = paste_service
        self._probe = probe
        self.auto_paste = auto_paste
        self.min_capture_ms = min_capture_ms
        self._on_state_change = on_state_change
        self._on_partial = on_partial
        self._on_result = on_result
        self._on_error = on_error

        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._session: Optional[Session] = None
        self._session_id = 0
        self._lookup_thread: Optional[threading.Thread] = None
        self.lookup_timeout_s = 2.0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Optional[Session]:
        return self._session

    def replace_transcriber(self, transcriber: Transcriber) -> None:
        with self._lock:
            self._transcriber = transcriber

    def replace_formatter(self, formatter: Formatter) -> None:
        with self._lock:
            self._formatter = formatter

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def start_session(self) -> None:
        with self._lock:
            if self._state != SessionState.IDLE:
                logger.debug("start ignored in state %s", self._state.value)
                return
            self._session_id += 1
            session = Session(session_id=self._session_id)
            self._session = session
            self._transition(SessionState.CAPTURING)
            try:
                self._recorder.start(lambda frame: self._on_frame(session, frame))
            except CaptureError as exc:
                self._abort(session, exc.code, exc.message)
                return
            except Exception as exc:
                logger.exception("Recorder start failed")
                self._abort(session, CAPTURE_FAILED, str(exc))
                return
            logger.info("Session %d capturing", session.session_id)
            # The foreground lookup can shell out for up to a second, so it
            # runs beside the already-open stream instead of before it.
            self._lookup_thread = self._start_target_lookup(session)

    def stop_session(self) -> None:
        """Stop capturing and run the pipeline on the calling thread."""
        with self._lock:
            if self._state != SessionState.CAPTURING or self._session is None:
                return
            session = self._session
            self._release_recorder()
            duration = session.duration_ms()
            if session.audio_buffer and duration < self.min_capture_ms:
                logger.info("Session %d discarded (%d ms)", session.session_id, duration)
                self._finish(session)
                return
            self._transition(SessionState.TRANSCRIBING)
            frames = list(session.audio_buffer)
            lookup_thread, self._lookup_thread = self._lookup_thread, None

        if lookup_thread is not None:
            lookup_thread.join(timeout=self.lookup_timeout_s)
        try:
            self._run_pipeline(session, frames)
        except Exception as exc:
            logger.exception("Session %d failed unexpectedly", session.session_id)
            self._abort(session, ASR_PROTOCOL_ERROR, str(exc))

    def toggle_session(self) -> None:
        """Start/stop control for the UI; ignored while a request is in flight."""
        state = self._state
        if state == SessionState.IDLE:
            self.start_session()
        elif state == SessionState.CAPTURING:
            self.stop_session()

    def cancel_session(self, reason: str) -> None:
        with self._lock:
            if self._state == SessionState.IDLE:
                return
            logger.info("Session cancelled: %s", reason)
            self._release_recorder()
            self._transition(SessionState.IDLE)
            self._session = None
            self._emit_error(CANCELLED, reason)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _run_pipeline(self, session: Session, frames: list[AudioFrame]) -> None:
        try:
            transcript = self._transcriber.transcribe(frames, on_partial=self._partial_sink(session))
        except TranscriptionError as exc:
            self._abort(session, exc.code, exc.message)
            return

        if not self._advance(session, SessionState.FORMATTING):
            return
        app_name = session.target.name if session.target else ""
        try:
            text = self._formatter.format(transcript, app_name)
        except FormattingError as exc:
            logger.warning("Formatting failed (%s), using raw transcript", exc.message)
            text = transcript
        except Exception:
            logger.exception("Formatter raised unexpectedly, using raw transcript")
            text = transcript

        if not self._advance(session, SessionState.DELIVERING):
            return
        self._emit_result(text)
        try:
            result = self._paste_service.deliver(text, session.target, paste=self.auto_paste)
        except DeliveryError as exc:
            logger.warning("Delivery failed: %s", exc.message)
            self._emit_error(exc.code, exc.message)
        else:
            if self.auto_paste and result.copied and not result.pasted:
                self._emit_error(NO_ACTIVE_TARGET, result.reason)
        self._finish(session)

    def _start_target_lookup(self, session: Session) -> Optional[threading.Thread]:
        if self._probe is None:
            return None
        thread = threading.Thread(target=self._capture_target, args=(session,), daemon=True)
        thread.start()
        return thread

    def _capture_target(self, session: Session) -> None:
        try:
            target = self._probe.capture()
        except Exception as exc:
            logger.warning("Foreground app lookup failed: %s", exc)
            return
        session.target = target
        if target is not None:
            logger.debug("Session %d target: %r", session.session_id, target.name)

    def _on_frame(self, session: Session, frame: AudioFrame) -> None:
        # Runs on the audio thread; taking the lock here would deadlock
        # against recorder.stop() waiting for this callback.
        if self._session is session and session.state == SessionState.CAPTURING:
            session.audio_buffer.append(frame)

    def _partial_sink(self, session: Session) -> TextCallback:
        def _sink(text: str) -> None:
            if self._session is session and self._on_partial:
                self._on_partial(text)

        return _sink

    def _advance(self, session: Session, to_state: SessionState) -> bool:
        with self._lock:
            if self._session is not session:
                logger.debug("Session %d abandoned before %s", session.session_id, to_state.value)
                return False
            self._transition(to_state)
            return True

    def _finish(self, session: Session) -> None:
        with self._lock:
            if self._session is not session:
                return
            self._transition(SessionState.IDLE)
            self._session = None
            logger.info("Session %d finished", session.session_id)

    def _abort(self, session: Session, code: str, message: str) -> None:
        with self._lock:
            if self._session is not session:
                return
            logger.error("Session %d aborted: %s (%s)", session.session_id, message, code)
            self._release_recorder()
            self._transition(SessionState.IDLE)
            self._session = None
            self._emit_error(code, message)

    def _emit_result(self, text: str) -> None:
        if self._on_result:
            self._on_result(text)

    def _emit_error(self, code: str, message: str) -> None:
        if self._on_error:
            self._on_error(code, message)

    def _release_recorder(self) -> None:
        try:
            self._recorder.stop()
        except Exception as exc:
            logger.warning("Recorder stop failed: %s", exc)

    def _transition(self, to_state: SessionState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        if to_state not in TRANSITIONS[from_state]:
            raise InvalidTransition(from_state, to_state)
        self._state = to_state
        if self._session is not None:
            self._session.state = to_state
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
