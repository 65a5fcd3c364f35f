"""Simple JSON-based config store."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

API_KEY_ENV = "DASHSCOPE_API_KEY"
DEFAULT_HOTKEY = "<ctrl>+<shift>"


def get_config_dir() -> Path:
    return Path.home() / ".config" / "voicepaste"


@dataclass
class AppSettings:
    transcription_model: str = "qwen3-asr-flash"
    formatting_model: str = "qwen-plus"
    formatting_enabled: bool = True
    auto_paste: bool = True
    paste_delay_s: float = 0.15
    min_capture_ms: int = 300
    log_level: str = "INFO"
    log_to_console: bool = False


_SETTING_TYPES = {f.name: type(getattr(AppSettings(), f.name)) for f in fields(AppSettings)}


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or get_config_dir() / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def get_api_key(self) -> str:
        data = self._read_all()
        return str(data.get("api_key", "")) or os.getenv(API_KEY_ENV, "")

    def set_api_key(self, key: str) -> None:
        data = self._read_all()
        data["api_key"] = key
        self._write_all(data)

    def get_hotkey(self) -> str:
        data = self._read_all()
        return str(data.get("hotkey", DEFAULT_HOTKEY))

    def set_hotkey(self, hotkey: str) -> None:
        data = self._read_all()
        data["hotkey"] = hotkey
        self._write_all(data)

    def get_settings(self) -> AppSettings:
        data = self._read_all()
        settings = AppSettings()
        for name, kind in _SETTING_TYPES.items():
            if name not in data:
                continue
            try:
                setattr(settings, name, _coerce(data[name], kind))
            except (TypeError, ValueError):
                continue
        return settings

    def set_value(self, key: str, value: Any) -> None:
        if key not in _SETTING_TYPES:
            raise KeyError(f"unknown setting: {key}")
        data = self._read_all()
        data[key] = _coerce(value, _SETTING_TYPES[key])
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def _coerce(value: Any, kind: type) -> Any:
    if kind is bool:
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    return kind(value)
