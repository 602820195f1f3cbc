"""Tests for the async entry point wiring browser, controller and transport."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from chat_bridge.browser import PageHandle
from chat_bridge.cli import run_bridge
from chat_bridge.config import BridgeConfig
from chat_bridge.constants import SiteName
from chat_bridge.controller import BridgeController
from chat_bridge.models import Stop
from chat_bridge.profiles import PROFILES

pytestmark = pytest.mark.unit


@pytest.fixture
def adapter_cls(page):
    adapter = MagicMock()
    adapter.attach = AsyncMock(return_value=PageHandle(page, PROFILES[SiteName.CHATGPT]))
    with patch("chat_bridge.cli.BrowserAdapter") as mock_cls:
        mock_cls.return_value.__aenter__.return_value = adapter
        yield mock_cls


@pytest.mark.asyncio
async def test_run_bridge_wires_transport_to_controller(adapter_cls, page, fast_timings):
    page.evaluate.return_value = []  # every role present
    config = BridgeConfig(
        ws_url="ws://bridge", cdp_port=9333, site=SiteName.CHATGPT, timings=fast_timings
    )

    with patch("chat_bridge.cli.TransportClient") as transport_cls:
        transport = transport_cls.return_value
        transport.run = AsyncMock()
        transport.close = AsyncMock()
        transport.send = AsyncMock(return_value=True)

        with patch.object(BridgeController, "handle_envelope", new_callable=AsyncMock) as handle:
            await run_bridge(config)

            url, on_message = transport_cls.call_args.args
            await on_message({"id": "1"})
            handle.assert_awaited_once_with({"id": "1"})

    adapter_cls.assert_called_once_with(port=9333)
    adapter_cls.return_value.__aenter__.return_value.attach.assert_awaited_once_with(
        SiteName.CHATGPT
    )
    assert url == "ws://bridge"
    transport.run.assert_awaited_once()
    transport.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_bridge_warns_about_missing_roles(adapter_cls, page, fast_timings, caplog):
    page.evaluate.return_value = ["#prompt-textarea"]
    config = BridgeConfig(timings=fast_timings)

    with patch("chat_bridge.cli.TransportClient") as transport_cls:
        transport_cls.return_value.run = AsyncMock()
        transport_cls.return_value.close = AsyncMock()
        await run_bridge(config)

    assert "#prompt-textarea" in caplog.text


@pytest.mark.asyncio
async def test_controller_replies_through_transport(adapter_cls, page, fast_timings):
    page.evaluate.return_value = []
    config = BridgeConfig(timings=fast_timings)

    with patch("chat_bridge.cli.TransportClient") as transport_cls:
        transport = transport_cls.return_value
        transport.run = AsyncMock()
        transport.close = AsyncMock()
        transport.send = AsyncMock(return_value=True)
        await run_bridge(config)

    _, on_message = transport_cls.call_args.args
    controller = on_message.__self__
    assert isinstance(controller, BridgeController)

    assert await controller._send(Stop()) is True
    transport.send.assert_awaited_once_with(Stop())
