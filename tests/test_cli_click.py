"""
Tests for the Click CLI.
"""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from chat_bridge.chrome_utils import ChromeStatus
from chat_bridge.cli_click import cli
from chat_bridge.client import CompletionsError
from chat_bridge.constants import SiteName
from chat_bridge.profiles import UnknownSiteError

pytestmark = pytest.mark.unit


@pytest.fixture
def runner():
    """Create a Click test runner."""
    return CliRunner()


def test_cli_help(runner):
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "chat-bridge" in result.output
    for command in ("run", "sites", "ask", "chrome-status", "chrome-launch"):
        assert command in result.output


def test_sites_table(runner):
    result = runner.invoke(cli, ["sites"])
    assert result.exit_code == 0
    assert "chatgpt" in result.output
    assert "azure-openai" in result.output
    assert "https://chat.openai.com" in result.output


def test_sites_json(runner):
    result = runner.invoke(cli, ["sites", "--output", "json"])
    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert payload["chatgpt"]["insertStrategy"] == "assign"
    assert payload["azure-openai"]["origins"] == ["https://oai.azure.com"]


# --------------------------------------------------------------------------- #
# run                                                                         #
# --------------------------------------------------------------------------- #


def test_run_builds_config_from_options(runner, monkeypatch):
    monkeypatch.delenv("CHAT_BRIDGE_WS_URL", raising=False)
    with patch("chat_bridge.cli_click.run_bridge_sync") as mock_run:
        result = runner.invoke(
            cli,
            ["run", "--site", "azure-openai", "--url", "ws://bridge:9000", "--cdp-port", "9333"],
        )

    assert result.exit_code == 0, result.output
    config = mock_run.call_args.args[0]
    assert config.site is SiteName.AZURE_OPENAI
    assert config.ws_url == "ws://bridge:9000"
    assert config.cdp_port == 9333


def test_run_reads_ws_url_from_environment(runner, monkeypatch):
    monkeypatch.setenv("CHAT_BRIDGE_WS_URL", "ws://from-env:1234")
    with patch("chat_bridge.cli_click.run_bridge_sync") as mock_run:
        result = runner.invoke(cli, ["run"])

    assert result.exit_code == 0, result.output
    config = mock_run.call_args.args[0]
    assert config.ws_url == "ws://from-env:1234"
    assert config.site is None


def test_run_unknown_site_is_a_click_error(runner):
    with patch(
        "chat_bridge.cli_click.run_bridge_sync",
        side_effect=UnknownSiteError("No site profile for origin 'https://example.com'"),
    ):
        result = runner.invoke(cli, ["run"])

    assert result.exit_code == 1
    assert "No site profile" in result.output


def test_run_chrome_failure_is_a_click_error(runner):
    with patch(
        "chat_bridge.cli_click.run_bridge_sync",
        side_effect=RuntimeError("Chrome failed to expose a CDP endpoint in time."),
    ):
        result = runner.invoke(cli, ["run"])

    assert result.exit_code == 1
    assert "CDP endpoint" in result.output


def test_run_rejects_unknown_site_choice(runner):
    result = runner.invoke(cli, ["run", "--site", "bard"])
    assert result.exit_code == 2


# --------------------------------------------------------------------------- #
# ask                                                                         #
# --------------------------------------------------------------------------- #


def test_ask_prints_answer(runner):
    with patch("chat_bridge.cli_click.ask_sync", return_value="42") as mock_ask:
        result = runner.invoke(
            cli,
            ["ask", "What is the answer?", "--new-chat", "--endpoint", "http://x/v1/chat/completions"],
        )

    assert result.exit_code == 0, result.output
    assert result.output.strip() == "42"
    mock_ask.assert_called_once_with(
        "What is the answer?",
        url="http://x/v1/chat/completions",
        model="gpt-4",
        new_chat=True,
    )


def test_ask_reads_stdin(runner):
    with patch("chat_bridge.cli_click.ask_sync", return_value="ok") as mock_ask:
        result = runner.invoke(cli, ["ask", "--stdin"], input="from stdin\n")

    assert result.exit_code == 0, result.output
    assert mock_ask.call_args.args[0] == "from stdin\n"


def test_ask_requires_prompt(runner):
    result = runner.invoke(cli, ["ask"])
    assert result.exit_code == 2
    assert "prompt is required" in result.output


def test_ask_reports_endpoint_errors(runner):
    with patch(
        "chat_bridge.cli_click.ask_sync",
        side_effect=CompletionsError("HTTP 502 from http://x"),
    ):
        result = runner.invoke(cli, ["ask", "hi"])

    assert result.exit_code == 1
    assert "HTTP 502" in result.output


# --------------------------------------------------------------------------- #
# Chrome helpers                                                              #
# --------------------------------------------------------------------------- #


def test_chrome_status_with_debugging(runner):
    with patch(
        "chat_bridge.chrome_utils.scan_chrome_processes",
        return_value=ChromeStatus(True, True, 9222, (10, 11)),
    ):
        result = runner.invoke(cli, ["chrome-status"])

    assert result.exit_code == 0
    assert "9222" in result.output
    assert "10, 11" in result.output


def test_chrome_status_without_debugging_exits_1(runner):
    with patch(
        "chat_bridge.chrome_utils.scan_chrome_processes",
        return_value=ChromeStatus(True, False, None, (10,)),
    ):
        result = runner.invoke(cli, ["chrome-status"])

    assert result.exit_code == 1
    assert "Remote debugging flag: No" in result.output


def test_chrome_launch_quits_then_launches(runner):
    with (
        patch(
            "chat_bridge.chrome_utils.scan_chrome_processes",
            return_value=ChromeStatus(True, False, None, (10,)),
        ),
        patch("chat_bridge.chrome_utils.quit_chrome", return_value=True) as mock_quit,
        patch("chat_bridge.chrome_utils.launch_chrome") as mock_launch,
        patch("chat_bridge.chrome_utils.get_chrome_profile_dir", return_value="/tmp/p"),
    ):
        result = runner.invoke(cli, ["chrome-launch", "--cdp-port", "9444"])

    assert result.exit_code == 0, result.output
    mock_quit.assert_called_once_with((10,))
    mock_launch.assert_called_once_with(9444, "/tmp/p")
    assert "9444" in result.output
