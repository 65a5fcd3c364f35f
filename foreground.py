"""Foreground application lookup and re-activation.

The app name selects the formatting style; the handle is used to give focus
back to the original window before the paste keystroke is sent.
"""

from __future__ import annotations

import platform
import subprocess
from typing import Optional

from logger import get_logger
from models import ForegroundApp

logger = get_logger(__name__)

_MAC_FRONTMOST = (
    'tell application "System Events" to set p to first application process '
    "whose frontmost is true\n"
    'return (name of p) & "|" & (unix id of p)'
)


class ForegroundAppProbe:
    def __init__(self, system: Optional[str] = None, timeout_s: float = 1.0) -> None:
        self._system = system or platform.system()
        self._timeout_s = timeout_s

    def capture(self) -> Optional[ForegroundApp]:
        try:
            if self._system == "Darwin":
                return self._capture_macos()
            if self._system == "Linux":
                return self._capture_linux()
            if self._system == "Windows":
                return self._capture_windows()
        except (OSError, subprocess.SubprocessError, ValueError) as exc:
            logger.warning("Foreground app lookup failed: %s", exc)
            return None
        logger.debug("Foreground app lookup unsupported on %s", self._system)
        return None

    def activate(self, app: ForegroundApp) -> bool:
        if app.handle is None:
            return False
        try:
            if self._system == "Darwin":
                script = (
                    'tell application "System Events" to set frontmost of '
                    f"(first process whose unix id is {int(app.handle)}) to true"
                )
                return self._run(["osascript", "-e", script]).returncode == 0
            if self._system == "Linux":
                return self._run(["xdotool", "windowactivate", str(app.handle)]).returncode == 0
            if self._system == "Windows":
                import ctypes

                return bool(ctypes.windll.user32.SetForegroundWindow(int(app.handle)))
        except (OSError, subprocess.SubprocessError, ValueError) as exc:
            logger.warning("Could not re-activate %r: %s", app.name, exc)
        return False

    def _run(self, cmd: list[str]) -> subprocess.CompletedProcess:
        return subprocess.run(cmd, capture_output=True, text=True, timeout=self._timeout_s)

    def _capture_macos(self) -> Optional[ForegroundApp]:
        result = self._run(["osascript", "-e", _MAC_FRONTMOST])
        if result.returncode != 0:
            logger.debug("osascript failed: %s", result.stderr.strip())
            return None
        name, _, pid = result.stdout.strip().rpartition("|")
        if not name:
            return ForegroundApp(name=pid, handle=None)
        return ForegroundApp(name=name, handle=int(pid) if pid.isdigit() else None)

    def _capture_linux(self) -> Optional[ForegroundApp]:
        result = self._run(["xdotool", "getactivewindow"])
        if result.returncode != 0:
            return None
        window_id = result.stdout.strip()
        name = ""
        title = self._run(["xdotool", "getwindowname", window_id])
        if title.returncode == 0:
            name = title.stdout.strip()
        return ForegroundApp(name=name, handle=window_id or None)

    def _capture_windows(self) -> Optional[ForegroundApp]:
        import ctypes

        user32 = ctypes.windll.user32
        hwnd = user32.GetForegroundWindow()
        if not hwnd:
            return None
        length = user32.GetWindowTextLengthW(hwnd)
        buf = ctypes.create_unicode_buffer(length + 1)
        user32.GetWindowTextW(hwnd, buf, length + 1)
        return ForegroundApp(name=buf.value, handle=int(hwnd))
