"""macOS accessibility permission checks (no-ops elsewhere)."""

from __future__ import annotations

import platform
import subprocess

from logger import get_logger

logger = get_logger(__name__)

ACCESSIBILITY_PANE = (
    "x-apple.systempreferences:com.apple.preference.security?Privacy_Accessibility"
)


def check_accessibility_permissions() -> bool:
    if platform.system() != "Darwin":
        return True

    try:
        # Any System Events keystroke fails without the permission.
        result = subprocess.run(
            ["osascript", "-e", 'tell application "System Events" to keystroke ""'],
            capture_output=True,
            timeout=5,
        )
    except subprocess.TimeoutExpired:
        logger.warning("Accessibility permission check timed out")
        return False
    except OSError as exc:
        logger.warning("Failed to check accessibility permissions: %s", exc)
        return False
    trusted = result.returncode == 0
    logger.info("Accessibility permission granted: %s", trusted)
    return trusted


def request_accessibility_permissions() -> None:
    if platform.system() != "Darwin":
        return
    subprocess.run(["open", ACCESSIBILITY_PANE], check=False)
