"""Protocol interfaces used by SessionController."""

from __future__ import annotations

from typing import Callable, Optional, Protocol, Sequence

from models import AudioFrame, DeliveryResult, ForegroundApp


class Recorder(Protocol):
    @property
    def active_tracks(self) -> int: ...

    def start(self, on_frame: Callable[[AudioFrame], None]) -> None: ...

    def stop(self) -> None: ...


class Transcriber(Protocol):
    def transcribe(
        self,
        frames: Sequence[AudioFrame],
        on_partial: Optional[Callable[[str], None]] = None,
    ) -> str: ...


class Formatter(Protocol):
    def format(self, text: str, app_name: str = "") -> str: ...


class PasteService(Protocol):
    def deliver(
        self, text: str, target: Optional[ForegroundApp], paste: bool = True
    ) -> DeliveryResult: ...


class ForegroundProbe(Protocol):
    def capture(self) -> Optional[ForegroundApp]: ...

    def activate(self, app: ForegroundApp) -> bool: ...


class HotkeySource(Protocol):
    """Press-and-hold gesture source; ``on_release`` is the only stop condition."""

    def start(self, on_press: Callable[[], None], on_release: Callable[[], None]) -> None: ...

    def stop(self) -> None: ...
