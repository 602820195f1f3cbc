"""chat_bridge.browser
---------------------

Chrome adapter: connect to (or launch) a Google Chrome instance exposing the
Chrome DevTools Protocol (CDP) and hand out the Playwright ``Page`` of the
chat site the bridge should drive.

Example
-------
>>> async with BrowserAdapter() as ba:
...     handle = await ba.attach(SiteName.CHATGPT)
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import subprocess
import time
from dataclasses import dataclass
from typing import Optional

import aiohttp
from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    async_playwright,
    Error as PlaywrightError,
)

from .chrome_utils import (
    get_chrome_profile_dir,
    launch_chrome,
    quit_chrome,
    scan_chrome_processes,
)
from .constants import (
    AUTO_RELAUNCH_CHROME_ENV,
    CHROME_EXECUTABLE,
    CHROME_PROCESS_NAMES,
    CHROME_REMOTE_PORT,
    SiteName,
)
from .profiles import SiteProfile, UnknownSiteError, get_profile, origin_of, select_profile

_LOG = logging.getLogger(__name__)

# --------------------------------------------------------------------------- #
# Constants
# --------------------------------------------------------------------------- #

_CDP_BOOT_TIMEOUT = 8.0  # Seconds to wait for Chrome to expose CDP
_CDP_POLL_INTERVAL = 0.25  # Poll interval while waiting
_RELAUNCH_SETTLE = 3.0  # Extra time for a relaunched Chrome to load its profile


# --------------------------------------------------------------------------- #
# Data models                                                                 #
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class PageHandle:
    """A live chat page paired with the Site Profile that drives it."""

    page: Page
    profile: SiteProfile


# --------------------------------------------------------------------------- #
# Browser Adapter
# --------------------------------------------------------------------------- #


class BrowserAdapter:
    """
    Async context manager that guarantees a Playwright connection to Chrome.

    Responsibilities
    ----------------
    * Attach to an existing Chrome with remote-debugging enabled or start a
      new instance if none is found.
    * Find the open tab of a supported chat site, or open one on request.
    """

    def __init__(self, port: int = CHROME_REMOTE_PORT) -> None:
        self._port = port
        self._playwright = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._chrome_proc: subprocess.Popen[str] | None = None

    # ---------------- Context manager plumbing ---------------- #

    async def __aenter__(self) -> "BrowserAdapter":
        await self._ensure_connection()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        # Detach but leave a user-started Chrome running.
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()

        if self._chrome_proc and self._chrome_proc.poll() is None:
            with contextlib.suppress(ProcessLookupError):
                self._chrome_proc.kill()

    # ---------------- Public API ---------------- #

    def pages(self) -> list[Page]:
        if not self._browser:
            return []
        return [page for ctx in self._browser.contexts for page in ctx.pages]

    async def attach(self, site: SiteName | None = None) -> PageHandle:
        """
        Return the page the bridge should drive.

        Without *site*, the first open tab whose origin has a Site Profile is
        used and ``UnknownSiteError`` is raised when there is none.  With
        *site*, an open tab of that site is preferred; otherwise a new tab is
        opened on the site's landing page.
        """
        await self._ensure_connection()

        for page in self.pages():
            try:
                profile = select_profile(page.url)
            except UnknownSiteError:
                continue
            if site is None or profile.name is site:
                _LOG.info("Attached to %s tab: %s", profile.name.value, page.url)
                return PageHandle(page, profile)

        if site is None:
            origins = sorted({origin_of(p.url) for p in self.pages()} - {""})
            raise UnknownSiteError(
                "No open tab belongs to a supported chat site "
                f"(open origins: {', '.join(origins) or 'none'}). "
                "Open the site in Chrome or pass --site."
            )

        profile = get_profile(site)
        if self._context is None:  # pragma: no cover
            raise RuntimeError("Browser context not available")
        page = await self._context.new_page()
        # Avoid 'networkidle' which can hang on streaming sites.
        await page.goto(profile.landing_url, wait_until="load")
        # Redirects (login, regional hosts) must still land on a known origin.
        profile = select_profile(page.url)
        _LOG.info("Opened %s tab: %s", profile.name.value, page.url)
        return PageHandle(page, profile)

    # ---------------- Internal helpers ---------------- #

    async def _ensure_connection(self) -> None:
        """Attach to an existing CDP endpoint or launch/relaunch Chrome."""
        if self._browser:
            return

        self._playwright = await async_playwright().start()

        ws_endpoint = await self._get_websocket_endpoint()
        if ws_endpoint:
            try:
                self._browser = await self._playwright.chromium.connect_over_cdp(ws_endpoint)
            except PlaywrightError as exc:
                _LOG.debug("CDP connect failed: %s", exc)

        if self._browser:
            self._context = self._browser.contexts[0]
            return

        status = scan_chrome_processes(CHROME_PROCESS_NAMES)

        if status.running and not status.remote_debug:
            auto = os.getenv(AUTO_RELAUNCH_CHROME_ENV, "").lower() in {"1", "true", "yes"}
            if not auto:
                raise RuntimeError(
                    "Google Chrome is currently running without the "
                    f"'--remote-debugging-port={self._port}' flag.\n\n"
                    "Either quit Chrome completely and restart it with that flag, e.g.\n"
                    f"  {CHROME_EXECUTABLE} --remote-debugging-port={self._port}\n\n"
                    f"Or set the environment variable {AUTO_RELAUNCH_CHROME_ENV}=1 and "
                    "chat-bridge will perform the restart automatically."
                )
            _LOG.info("Quitting Chrome to relaunch it with remote debugging")
            quit_chrome(status.pids)
            self._launch_chrome()
            await asyncio.sleep(_RELAUNCH_SETTLE)
        elif not status.running:
            self._launch_chrome()
        else:
            raise RuntimeError(
                f"Unable to connect to Chrome remote debugging on port {self._port}"
                + (f" (Chrome listens on {status.debug_port})" if status.debug_port else "")
                + ". Set $CHROME_REMOTE_PORT or pass --cdp-port to match."
            )

        deadline = time.monotonic() + _CDP_BOOT_TIMEOUT
        while time.monotonic() < deadline:
            ws_endpoint = await self._get_websocket_endpoint()
            if ws_endpoint:
                try:
                    self._browser = await self._playwright.chromium.connect_over_cdp(
                        ws_endpoint
                    )
                    break
                except PlaywrightError:
                    pass
            await asyncio.sleep(_CDP_POLL_INTERVAL)

        if not self._browser:
            raise RuntimeError("Chrome failed to expose a CDP endpoint in time.")
        self._context = self._browser.contexts[0]

    async def _get_websocket_endpoint(self) -> Optional[str]:
        """Fetch the WebSocket debugger URL from Chrome's /json/version."""
        url = f"http://127.0.0.1:{self._port}/json/version"
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(url, timeout=aiohttp.ClientTimeout(total=2)) as resp:
                    if resp.status != 200:
                        return None
                    data = await resp.json()
                    return data.get("webSocketDebuggerUrl")
        except (aiohttp.ClientError, asyncio.TimeoutError):
            return None

    def _launch_chrome(self) -> None:
        if self._chrome_proc is not None:
            return  # already launched by this adapter
        self._chrome_proc = launch_chrome(self._port, get_chrome_profile_dir())
