"""Tests for the transcript formatter and style selection."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from errors import AUTH_FAILED, FORMAT_FAILED, NETWORK_ERROR, FormattingError
from formatter import STYLE_PROMPTS, DashscopeFormatter, PassthroughFormatter, select_style
from models import FormatStyle


def _response(content: str, status: int = 200) -> dict:
    return {
        "status_code": status,
        "output": {"choices": [{"message": {"role": "assistant", "content": content}}]},
    }


@pytest.mark.parametrize(
    ("app_name", "style"),
    [
        ("Slack", FormatStyle.CHAT),
        ("Discord", FormatStyle.CHAT),
        ("Microsoft Teams", FormatStyle.CHAT),
        ("Mail", FormatStyle.EMAIL),
        ("Inbox - Outlook", FormatStyle.EMAIL),
        ("Visual Studio Code", FormatStyle.CODE),
        ("iTerm2", FormatStyle.CODE),
        ("Pages", FormatStyle.PROSE),
        ("", FormatStyle.PROSE),
    ],
)
def test_select_style(app_name: str, style: FormatStyle) -> None:
    assert select_style(app_name) == style


@patch("formatter.dashscope")
def test_format_uses_style_prompt_for_foreground_app(mock_ds: MagicMock) -> None:
    mock_ds.Generation.call.return_value = _response(" hey, running late \n")

    result = DashscopeFormatter(api_key="k").format("hey running late", app_name="Slack")

    assert result == "hey, running late"
    kwargs = mock_ds.Generation.call.call_args.kwargs
    assert kwargs["model"] == "qwen-plus"
    assert kwargs["result_format"] == "message"
    assert kwargs["messages"][0] == {"role": "system", "content": STYLE_PROMPTS[FormatStyle.CHAT]}
    assert kwargs["messages"][1] == {"role": "user", "content": "hey running late"}


@patch("formatter.dashscope")
def test_blank_text_skips_request(mock_ds: MagicMock) -> None:
    assert DashscopeFormatter(api_key="k").format("   ") == "   "
    mock_ds.Generation.call.assert_not_called()


@patch("formatter.dashscope")
def test_exception_becomes_formatting_error(mock_ds: MagicMock) -> None:
    mock_ds.Generation.call.side_effect = ConnectionError("connection refused")

    with pytest.raises(FormattingError) as info:
        DashscopeFormatter(api_key="k").format("hello")

    assert info.value.code == NETWORK_ERROR


@patch("formatter.dashscope")
def test_non_200_status_is_an_error(mock_ds: MagicMock) -> None:
    mock_ds.Generation.call.return_value = {
        "status_code": 429,
        "code": "Throttling",
        "message": "rate limited",
    }

    with pytest.raises(FormattingError) as info:
        DashscopeFormatter(api_key="k").format("hello")

    assert info.value.code == FORMAT_FAILED
    assert "rate limited" in info.value.message


@patch("formatter.dashscope")
def test_empty_completion_is_an_error(mock_ds: MagicMock) -> None:
    mock_ds.Generation.call.return_value = _response("")

    with pytest.raises(FormattingError):
        DashscopeFormatter(api_key="k").format("hello")


@patch("formatter.dashscope")
def test_text_format_response_is_accepted(mock_ds: MagicMock) -> None:
    mock_ds.Generation.call.return_value = {"status_code": 200, "output": {"text": "Hello."}}

    assert DashscopeFormatter(api_key="k").format("hello") == "Hello."


@patch("formatter.dashscope", MagicMock())
def test_missing_api_key(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.delenv("DASHSCOPE_API_KEY", raising=False)

    with pytest.raises(FormattingError) as info:
        DashscopeFormatter(api_key="").format("hello")

    assert info.value.code == AUTH_FAILED


@patch("formatter.dashscope", None)
def test_dashscope_not_installed() -> None:
    with pytest.raises(FormattingError, match="not installed"):
        DashscopeFormatter(api_key="k").format("hello")


def test_passthrough_returns_input() -> None:
    assert PassthroughFormatter().format("as spoken", app_name="Slack") == "as spoken"
