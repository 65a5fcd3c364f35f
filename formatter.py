"""Transcript post-processing through a DashScope text-completion model."""

from __future__ import annotations

import os
from typing import Optional

from errors import AUTH_FAILED, FORMAT_FAILED, NETWORK_ERROR, FormattingError
from logger import get_logger
from models import FormatStyle

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = get_logger(__name__)

API_KEY_ENV = "DASHSCOPE_API_KEY"

# Matched case-insensitively as substrings of the foreground app name.
STYLE_APPS: dict[FormatStyle, tuple[str, ...]] = {
    FormatStyle.CHAT: (
        "slack",
        "discord",
        "teams",
        "telegram",
        "whatsapp",
        "messages",
        "signal",
        "wechat",
        "messenger",
        "element",
        "mattermost",
    ),
    FormatStyle.EMAIL: ("mail", "outlook", "thunderbird", "spark", "superhuman"),
    FormatStyle.CODE: (
        "code",
        "cursor",
        "pycharm",
        "intellij",
        "xcode",
        "terminal",
        "iterm",
        "vim",
        "emacs",
        "sublime",
        "konsole",
        "alacritty",
        "kitty",
        "wezterm",
    ),
}

_BASE_RULES = (
    "You clean up dictated text. Fix punctuation, capitalisation and obvious "
    "speech-recognition mistakes, drop filler words, and keep the speaker's "
    "language and meaning. Reply with the rewritten text only, no preamble, "
    "no quotes, no Markdown."
)

STYLE_PROMPTS: dict[FormatStyle, str] = {
    FormatStyle.CHAT: _BASE_RULES
    + " The text is a chat message: keep it short and casual, no greeting or "
    "sign-off, lowercase is fine when the speaker sounds informal.",
    FormatStyle.EMAIL: _BASE_RULES
    + " The text goes into an email: use complete sentences and split it "
    "into paragraphs where the topic changes.",
    FormatStyle.CODE: _BASE_RULES
    + " The text goes into a code editor or terminal: keep identifiers, "
    "file names and commands verbatim and do not add trailing punctuation "
    "to commands.",
    FormatStyle.PROSE: _BASE_RULES + " Write clear, well-punctuated prose.",
}


def select_style(app_name: str) -> FormatStyle:
    low = (app_name or "").lower()
    if not low:
        return FormatStyle.PROSE
    for style, needles in STYLE_APPS.items():
        if any(needle in low for needle in needles):
            return style
    return FormatStyle.PROSE


class DashscopeFormatter:
    def __init__(
        self,
        api_key: str,
        model: str = "qwen-plus",
        request_timeout_s: float = 15.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._request_timeout_s = request_timeout_s

    def format(self, text: str, app_name: str = "") -> str:
        if not text.strip():
            return text
        if dashscope is None:
            raise FormattingError("dashscope is not installed")
        api_key = self._api_key or os.getenv(API_KEY_ENV, "")
        if not api_key:
            raise FormattingError("No API key configured", code=AUTH_FAILED)

        style = select_style(app_name)
        logger.info(
            "Formatting %d chars for %r with style %s", len(text), app_name, style.value
        )
        try:
            response = dashscope.Generation.call(
                api_key=api_key,
                model=self._model,
                messages=[
                    {"role": "system", "content": STYLE_PROMPTS[style]},
                    {"role": "user", "content": text},
                ],
                result_format="message",
                request_timeout=self._request_timeout_s,
            )
        except Exception as exc:
            raise FormattingError(str(exc), code=_error_code(str(exc))) from exc

        status = _get(response, "status_code")
        if status is not None and status != 200:
            message = f"{status} {_get(response, 'code') or ''}: {_get(response, 'message') or ''}"
            raise FormattingError(message, code=FORMAT_FAILED)

        formatted = self._extract_text(response).strip()
        if not formatted:
            raise FormattingError("empty completion", code=FORMAT_FAILED)
        return formatted

    def _extract_text(self, response: object) -> str:
        output = _get(response, "output") or {}
        choices = _get(output, "choices") or []
        if choices:
            message = _get(choices[0], "message") or {}
            content = _get(message, "content")
            if isinstance(content, str):
                return content
        # text-format responses carry ``output.text`` instead of choices
        text = _get(output, "text")
        return text if isinstance(text, str) else ""


class PassthroughFormatter:
    """Used when formatting is switched off."""

    def format(self, text: str, app_name: str = "") -> str:
        return text


def _get(obj: object, key: str) -> Optional[object]:
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def _error_code(message: str) -> str:
    low = message.lower()
    if "401" in low or "api key" in low:
        return AUTH_FAILED
    if "timeout" in low or "connection" in low or "network" in low:
        return NETWORK_ERROR
    return FORMAT_FAILED
