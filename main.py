"""Application entrypoint."""

from __future__ import annotations

import sys
import threading

from dotenv import load_dotenv

from auto_paste import ClipboardPasteService
from config import AppSettings, JsonConfigStore
from foreground import ForegroundAppProbe
from formatter import DashscopeFormatter, PassthroughFormatter
from hotkey import GlobalHotkeyAdapter
from interfaces import HotkeySource
from logger import configure_logging, get_logger, shutdown_logging
from models import SessionState
from overlay import OverlayWindow
from permissions import check_accessibility_permissions, request_accessibility_permissions
from recorder import SoundDeviceRecorder
from session_controller import SessionController
from transcriber import DashscopeTranscriber

try:
    from PySide6.QtCore import QObject, Signal, QSize
    from PySide6.QtGui import QAction, QIcon, QPixmap, QPainter, QColor, QBrush
    from PySide6.QtWidgets import QApplication, QInputDialog, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

from panel import ResultPanel

logger = get_logger(__name__)


def _create_icon(color: str = "#888888", size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


ICON_IDLE = "#888888"      # grey
ICON_RECORDING = "#FF4444"  # red
ICON_BUSY = "#3388FF"      # blue
ICON_ERROR = "#FF8800"     # orange

TOOLTIPS = {
    SessionState.IDLE: "voicepaste — Ready",
    SessionState.CAPTURING: "voicepaste — Recording...",
    SessionState.TRANSCRIBING: "voicepaste — Transcribing...",
    SessionState.FORMATTING: "voicepaste — Formatting...",
    SessionState.DELIVERING: "voicepaste — Pasting...",
}


def build_formatter(api_key: str, settings: AppSettings):
    if not settings.formatting_enabled:
        return PassthroughFormatter()
    return DashscopeFormatter(api_key=api_key, model=settings.formatting_model)


class UIBridge(QObject):
    partial_signal = Signal(str)
    result_signal = Signal(str)
    error_signal = Signal(str, str)  # code, message
    state_signal = Signal(str, str)  # from_state, to_state


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store = JsonConfigStore()
        self.settings = self.config_store.get_settings()
        configure_logging(self.settings.log_level, self.settings.log_to_console)

        self.overlay = OverlayWindow()
        self.panel = ResultPanel()
        self.panel.record_requested.connect(self._toggle_recording)
        self.panel.quit_requested.connect(self.quit)
        self.panel.shown.connect(self._check_accessibility)

        self.ui = UIBridge()
        self.ui.partial_signal.connect(self._on_partial_ui)
        self.ui.result_signal.connect(self._on_result_ui)
        self.ui.error_signal.connect(self._on_error_ui)
        self.ui.state_signal.connect(self._on_state_change_ui)

        api_key = self.config_store.get_api_key()
        probe = ForegroundAppProbe()
        self.controller = SessionController(
            recorder=SoundDeviceRecorder(),
            transcriber=DashscopeTranscriber(api_key=api_key, model=self.settings.transcription_model),
            formatter=build_formatter(api_key, self.settings),
            paste_service=ClipboardPasteService(probe=probe, paste_delay_s=self.settings.paste_delay_s),
            probe=probe,
            auto_paste=self.settings.auto_paste,
            min_capture_ms=self.settings.min_capture_ms,
            on_state_change=self._on_state_change,
            on_partial=self._on_partial,
            on_result=self._on_result,
            on_error=self._on_error,
        )
        self._hotkey_name = self.config_store.get_hotkey()
        self.hotkey: HotkeySource = GlobalHotkeyAdapter(hotkey_name=self._hotkey_name)
        self._shut_down = False
        self.app.aboutToQuit.connect(self._shutdown)

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_IDLE))
        self.tray.setToolTip(TOOLTIPS[SessionState.IDLE])
        self.tray.activated.connect(self._on_tray_activated)
        self._setup_menu()
        self.tray.show()

    def _setup_menu(self) -> None:
        menu = QMenu()

        self._record_action = QAction("Start Recording", menu)
        self._record_action.triggered.connect(self._toggle_recording)
        menu.addAction(self._record_action)

        panel_action = QAction("Show Panel", menu)
        panel_action.triggered.connect(self._show_panel)
        menu.addAction(panel_action)

        copy_action = QAction("Copy Last Result", menu)
        copy_action.triggered.connect(self.panel.copy_result)
        menu.addAction(copy_action)

        menu.addSeparator()
        api_action = QAction("Set API Key", menu)
        api_action.triggered.connect(self._set_api_key)
        menu.addAction(api_action)

        hotkey_action = QAction("Set Hotkey", menu)
        hotkey_action.triggered.connect(self._set_hotkey)
        menu.addAction(hotkey_action)

        self._format_action = QAction("Format Transcripts", menu)
        self._format_action.setCheckable(True)
        self._format_action.setChecked(self.settings.formatting_enabled)
        self._format_action.toggled.connect(self._set_formatting)
        menu.addAction(self._format_action)

        access_action = QAction("Check Accessibility", menu)
        access_action.triggered.connect(self._check_accessibility)
        menu.addAction(access_action)

        menu.addSeparator()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self._menu = menu
        self.tray.setContextMenu(menu)

    def _set_api_key(self) -> None:
        value, ok = QInputDialog.getText(None, "API Key", "DashScope API Key")
        if not ok:
            return
        self.config_store.set_api_key(value)
        self.controller.replace_transcriber(
            DashscopeTranscriber(api_key=value, model=self.settings.transcription_model)
        )
        self.controller.replace_formatter(build_formatter(value, self.settings))
        QMessageBox.information(None, "Saved", "API Key saved and applied.")

    def _set_hotkey(self) -> None:
        value, ok = QInputDialog.getText(
            None, "Hotkey", "Use pynput hotkey format, e.g. <ctrl>+<shift>"
        )
        if not ok or not value:
            return
        self.config_store.set_hotkey(value)
        QMessageBox.information(None, "Saved", "Hotkey saved. Restart app to apply.")

    def _set_formatting(self, enabled: bool) -> None:
        self.config_store.set_value("formatting_enabled", enabled)
        self.settings.formatting_enabled = enabled
        self.controller.replace_formatter(
            build_formatter(self.config_store.get_api_key(), self.settings)
        )
        logger.info("Formatting %s", "enabled" if enabled else "disabled")

    def _check_accessibility(self) -> bool:
        granted = check_accessibility_permissions()
        self.panel.set_accessibility(granted)
        if not granted:
            self.tray.showMessage(
                "Accessibility Permission Required",
                "Enable accessibility in System Settings > Privacy & Security > Accessibility",
            )
            request_accessibility_permissions()
        return granted

    def _show_panel(self) -> None:
        self.panel.show()
        self.panel.raise_()

    def _on_tray_activated(self, reason: QSystemTrayIcon.ActivationReason) -> None:
        if reason != QSystemTrayIcon.Trigger:
            return
        if self.panel.isVisible():
            self.panel.hide()
        else:
            self._show_panel()

    def _toggle_recording(self) -> None:
        # stop_session blocks on network calls, keep it off the Qt thread
        threading.Thread(target=self.controller.toggle_session, daemon=True).start()

    # ------------------------------------------------------------------
    # Callbacks (called from worker threads → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_state_change(self, from_state: SessionState, to_state: SessionState) -> None:
        self.ui.state_signal.emit(from_state.value, to_state.value)

    def _on_partial(self, text: str) -> None:
        self.ui.partial_signal.emit(text)

    def _on_result(self, text: str) -> None:
        self.ui.result_signal.emit(text)

    def _on_error(self, code: str, message: str) -> None:
        self.ui.error_signal.emit(code, message)

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_partial_ui(self, text: str) -> None:
        self.overlay.set_text(text)

    def _on_result_ui(self, text: str) -> None:
        self.panel.set_result(text)

    def _on_error_ui(self, code: str, message: str) -> None:
        self.tray.setIcon(_create_icon(ICON_ERROR))
        self.overlay.show_error(f"{code}: {message}")

    def _on_state_change_ui(self, from_state: str, to_state: str) -> None:
        state = SessionState(to_state)
        self.tray.setToolTip(TOOLTIPS[state])
        self.panel.set_state(state)
        self._record_action.setText(
            "Stop Recording" if state == SessionState.CAPTURING else "Start Recording"
        )
        if state == SessionState.CAPTURING:
            self.tray.setIcon(_create_icon(ICON_RECORDING))
            self.overlay.set_text("🎙️ Listening...")
        elif state == SessionState.TRANSCRIBING:
            self.tray.setIcon(_create_icon(ICON_BUSY))
            self.overlay.set_text("Transcribing...")
        elif state == SessionState.IDLE:
            self.tray.setIcon(_create_icon(ICON_IDLE))
            self.overlay.hide_with_delay(400)

    # ------------------------------------------------------------------
    # Hotkey handlers
    # ------------------------------------------------------------------

    def _on_hotkey_press(self) -> None:
        self.controller.start_session()

    def _on_hotkey_release(self) -> None:
        # Run stop_session in a background thread so the pynput listener
        # keeps receiving events while the requests are in flight
        threading.Thread(
            target=self.controller.stop_session,
            daemon=True,
        ).start()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        self._check_accessibility()
        try:
            self.hotkey.start(
                on_press=self._on_hotkey_press,
                on_release=self._on_hotkey_release,
            )
        except Exception as exc:
            logger.error("Hotkey disabled: %s", exc)
            self.overlay.show_error(f"Hotkey disabled: {exc}")
        logger.info("voicepaste started (hotkey %s)", self._hotkey_name)
        return self.app.exec()

    def quit(self) -> None:
        logger.info("Quitting")
        self.app.quit()

    def _shutdown(self) -> None:
        # connected to aboutToQuit, so it also runs on session-manager exits
        if self._shut_down:
            return
        self._shut_down = True
        self.hotkey.stop()
        self.controller.cancel_session("app quit")
        self.overlay.hide()
        self.panel.hide()
        self.tray.hide()
        shutdown_logging()


def main() -> int:
    load_dotenv()
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
