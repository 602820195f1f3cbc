"""
chat_bridge.cli
---------------

Async entry points behind the Click commands, plus the synchronous wrappers
the commands call.

The wiring for ``chat-bridge run`` lives here:

``BrowserAdapter`` → ``AutomationSurface`` → ``BridgeController`` ⇄ ``TransportClient``
"""

from __future__ import annotations

import asyncio
import logging

from .browser import BrowserAdapter, PageHandle
from .config import BridgeConfig
from .controller import BridgeController
from .models import OutboundMessage
from .surface import AutomationSurface
from .transport import TransportClient

_LOG = logging.getLogger(__name__)


async def _check_page(surface: AutomationSurface) -> None:
    """Warn early when the page does not look like an idle chat screen."""
    missing = await surface.missing_roles()
    if missing:
        _LOG.warning(
            "Selectors not found on %s (not logged in, or the site changed?): %s",
            surface.page.url,
            ", ".join(missing),
        )


async def run_bridge(config: BridgeConfig) -> None:
    """Attach to the chat page and serve the control channel until cancelled."""
    async with BrowserAdapter(port=config.cdp_port) as adapter:
        handle: PageHandle = await adapter.attach(config.site)
        surface = AutomationSurface(handle.page, handle.profile, timings=config.timings)
        await _check_page(surface)

        async def send(message: OutboundMessage) -> bool:
            return await transport.send(message)

        controller = BridgeController(surface, send, timings=config.timings)
        transport = TransportClient(
            config.ws_url, controller.handle_envelope, timings=config.timings
        )

        _LOG.info(
            "Bridging %s (%s) to %s",
            handle.profile.name.value,
            handle.page.url,
            config.ws_url,
        )
        try:
            await transport.run()
        finally:
            await transport.close()
            await controller.reset()


def run_bridge_sync(config: BridgeConfig) -> None:
    """Synchronous wrapper for :func:`run_bridge`; returns on Ctrl+C."""
    try:
        asyncio.run(run_bridge(config))
    except KeyboardInterrupt:
        _LOG.info("Interrupted, shutting down")
