"""Global press-and-hold hotkey based on pynput.

Recording starts when every key of the accelerator is down and stops on the
key-up of any of them. That key-up is the only stop condition.
"""

from __future__ import annotations

import threading
from typing import Callable, Hashable, Iterable, Optional

from logger import get_logger

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

logger = get_logger(__name__)


class HoldGesture:
    """Tracks one key combination and reports its start and end edges."""

    def __init__(self, combo: Iterable[Hashable]) -> None:
        self._combo = frozenset(combo)
        if not self._combo:
            raise ValueError("hotkey combination is empty")
        self._down: set[Hashable] = set()
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def press(self, key: Hashable) -> bool:
        if key not in self._combo:
            return False
        self._down.add(key)
        if not self._active and self._down >= self._combo:
            self._active = True
            return True
        return False

    def release(self, key: Hashable) -> bool:
        if key not in self._combo:
            return False
        self._down.discard(key)
        if self._active:
            self._active = False
            return True
        return False

    def reset(self) -> None:
        self._down.clear()
        self._active = False


def parse_hotkey(accelerator: str) -> list:
    """Parse pynput accelerator syntax such as ``<ctrl>+<shift>`` or ``<shift>+z``."""
    if keyboard is None:
        raise RuntimeError("pynput is not installed")
    return keyboard.HotKey.parse(accelerator)


class GlobalHotkeyAdapter:
    def __init__(self, hotkey_name: str = "<ctrl>+<shift>") -> None:
        self._hotkey_name = hotkey_name
        self._listener: Optional[object] = None
        self._gesture: Optional[HoldGesture] = None
        self._lock = threading.Lock()

    @property
    def hotkey_name(self) -> str:
        return self._hotkey_name

    @property
    def is_trusted(self) -> bool:
        return bool(getattr(self._listener, "IS_TRUSTED", True))

    def start(self, on_press: Callable[[], None], on_release: Callable[[], None]) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        self._gesture = HoldGesture(parse_hotkey(self._hotkey_name))
        gesture = self._gesture

        def _on_press(key: object) -> None:
            with self._lock:
                fired = gesture.press(self._canonical(key))
            if fired:
                logger.debug("Hotkey %s down", self._hotkey_name)
                on_press()

        def _on_release(key: object) -> None:
            with self._lock:
                fired = gesture.release(self._canonical(key))
            if fired:
                logger.debug("Hotkey %s up", self._hotkey_name)
                on_release()

        self._listener = keyboard.Listener(on_press=_on_press, on_release=_on_release)
        self._listener.start()
        logger.info("Hotkey listener started for %s", self._hotkey_name)
        if not self.is_trusted:
            logger.warning("Hotkey listener is not trusted; accessibility permission missing")

    def stop(self) -> None:
        listener = self._listener
        if listener is not None:
            listener.stop()
            self._listener = None
        if self._gesture is not None:
            self._gesture.reset()

    def _canonical(self, key: object) -> object:
        listener = self._listener
        if listener is None or key is None:
            return key
        return listener.canonical(key)
