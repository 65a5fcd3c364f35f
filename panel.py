"""Panel showing status and the last result, with record and copy controls."""

from __future__ import annotations

from PySide6.QtCore import Qt, Signal
from PySide6.QtGui import QCloseEvent
from PySide6.QtWidgets import (
    QApplication,
    QHBoxLayout,
    QLabel,
    QPlainTextEdit,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from models import SessionState

_STATE_LABELS = {
    SessionState.IDLE: "Ready",
    SessionState.CAPTURING: "Recording...",
    SessionState.TRANSCRIBING: "Transcribing...",
    SessionState.FORMATTING: "Formatting...",
    SessionState.DELIVERING: "Pasting...",
}


class ResultPanel(QWidget):
    record_requested = Signal()
    quit_requested = Signal()
    shown = Signal()

    def __init__(self) -> None:
        super().__init__()
        self.setWindowTitle("voicepaste")
        self.setWindowFlags(Qt.Tool | Qt.WindowStaysOnTopHint)
        self.resize(320, 450)

        self._status = QLabel(_STATE_LABELS[SessionState.IDLE])
        self._access = QLabel("")
        self._text = QPlainTextEdit()
        self._text.setReadOnly(True)
        self._text.setPlaceholderText("Hold the hotkey and speak.")

        self._record_btn = QPushButton("Start Recording")
        self._record_btn.clicked.connect(self.record_requested.emit)
        self._copy_btn = QPushButton("Copy")
        self._copy_btn.clicked.connect(self.copy_result)
        self._quit_btn = QPushButton("Quit")
        self._quit_btn.clicked.connect(self.quit_requested.emit)

        buttons = QHBoxLayout()
        buttons.addWidget(self._record_btn)
        buttons.addWidget(self._copy_btn)
        buttons.addWidget(self._quit_btn)

        layout = QVBoxLayout(self)
        layout.addWidget(self._status)
        layout.addWidget(self._access)
        layout.addWidget(self._text, 1)
        layout.addLayout(buttons)
        self.set_state(SessionState.IDLE)

    @property
    def result_text(self) -> str:
        return self._text.toPlainText()

    def set_state(self, state: SessionState) -> None:
        self._status.setText(_STATE_LABELS.get(state, state.value))
        recording = state == SessionState.CAPTURING
        self._record_btn.setText("Stop Recording" if recording else "Start Recording")
        self._record_btn.setStyleSheet(
            "background-color: #ff4444;" if recording else "background-color: #4CAF50;"
        )
        self._record_btn.setEnabled(state in (SessionState.IDLE, SessionState.CAPTURING))

    def set_result(self, text: str) -> None:
        self._text.setPlainText(text)

    def set_accessibility(self, granted: bool) -> None:
        self._access.setText(f"Accessibility: {'Enabled' if granted else 'Disabled'}")
        self._access.setStyleSheet("color: #4CAF50;" if granted else "color: #ff4444;")

    def copy_result(self) -> None:
        text = self.result_text
        if text:
            QApplication.clipboard().setText(text)

    def showEvent(self, event) -> None:  # noqa: N802
        super().showEvent(event)
        self.shown.emit()

    def closeEvent(self, event: QCloseEvent) -> None:  # noqa: N802
        event.ignore()
        self.hide()
