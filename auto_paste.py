"""Clipboard delivery with an optional simulated paste keystroke."""

from __future__ import annotations

import platform
import time
from typing import Callable, Optional

from errors import DeliveryError
from interfaces import ForegroundProbe
from logger import get_logger
from models import DeliveryResult, ForegroundApp

try:
    import pyperclip
except Exception:  # pragma: no cover
    pyperclip = None  # type: ignore

try:
    from pynput.keyboard import Controller, Key
except Exception:  # pragma: no cover
    Controller = None  # type: ignore
    Key = None  # type: ignore

logger = get_logger(__name__)


class ClipboardPasteService:
    def __init__(
        self,
        probe: Optional[ForegroundProbe] = None,
        paste_delay_s: float = 0.15,
        system: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._probe = probe
        self._paste_delay_s = paste_delay_s
        self._system = system or platform.system()
        self._sleep = sleep

    def deliver(
        self, text: str, target: Optional[ForegroundApp], paste: bool = True
    ) -> DeliveryResult:
        if not text.strip():
            return DeliveryResult(copied=False, pasted=False, reason="empty text")
        if pyperclip is None:
            raise DeliveryError("clipboard dependency missing")

        try:
            pyperclip.copy(text)
        except Exception as exc:
            raise DeliveryError(f"clipboard unavailable: {exc}") from exc

        if not paste:
            return DeliveryResult(copied=True, pasted=False, reason="auto paste disabled")
        if target is None:
            return DeliveryResult(copied=True, pasted=False, reason="no target captured")
        if Controller is None or Key is None:
            return DeliveryResult(copied=True, pasted=False, reason="keyboard dependency missing")

        try:
            if self._probe is not None and not self._probe.activate(target):
                logger.debug("Target %r not re-activated, pasting into current focus", target.name)
            self._sleep(self._paste_delay_s)
            keyboard = Controller()
            modifier = Key.cmd if self._system == "Darwin" else Key.ctrl
            with keyboard.pressed(modifier):
                keyboard.press("v")
                keyboard.release("v")
        except Exception as exc:
            logger.warning("Paste keystroke failed: %s", exc)
            return DeliveryResult(copied=True, pasted=False, reason=f"paste failed: {exc}")

        logger.info("Pasted %d chars into %r", len(text), target.name)
        return DeliveryResult(copied=True, pasted=True)
