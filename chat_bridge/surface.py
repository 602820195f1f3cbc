"""
chat_bridge.surface
-------------------

The UI Automation Surface: everything the bridge does to the chat page goes
through ``AutomationSurface``, which turns the roles of a ``SiteProfile``
into DOM operations on a Playwright ``Page``.

All bounded waits share one primitive, ``wait_until``, which polls an async
predicate and yields to the event loop between checks.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import time
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar

import pyperclip
from playwright.async_api import Page

from . import page_scripts
from .config import BridgeTimings
from .constants import MUTATION_BINDING, InsertStrategy
from .detector import Sample
from .profiles import SiteProfile

_LOG = logging.getLogger(__name__)

T = TypeVar("T")

MutationCallback = Callable[[int], None]


async def wait_until(
    predicate: Callable[[], Awaitable[T]],
    *,
    timeout: float,
    interval: float,
) -> Optional[T]:
    """
    Poll *predicate* until it returns a truthy value or *timeout* elapses.

    The predicate is evaluated at least once.  Returns the truthy value, or
    ``None`` on timeout.
    """
    deadline = time.monotonic() + timeout
    while True:
        result = await predicate()
        if result:
            return result
        if time.monotonic() >= deadline:
            return None
        await asyncio.sleep(interval)


class ControlState(str, Enum):
    MISSING = "missing"
    DISABLED = "disabled"
    ENABLED = "enabled"


class AutomationSurface:
    """
    Profile-driven operations on one chat page.

    Responsibilities
    ----------------
    * Locate elements and report whether controls are enabled.
    * Insert text with the profile's input strategy and click controls.
    * Start a new conversation.
    * Sample the last answer and attach/detach the mutation observer.
    """

    def __init__(
        self,
        page: Page,
        profile: SiteProfile,
        *,
        timings: BridgeTimings | None = None,
    ) -> None:
        self.page = page
        self.profile = profile
        self.timings = timings or BridgeTimings()
        self._binding_ready = False
        self._mutation_callback: MutationCallback | None = None

    # ---------------- Element probes ---------------- #

    async def control_state(self, selector: str) -> ControlState:
        raw = await self.page.evaluate(page_scripts.CONTROL_STATE_JS, [selector])
        return ControlState(raw)

    async def exists(self, selector: str) -> bool:
        return await self.control_state(selector) is not ControlState.MISSING

    async def wait_for_element(self, selector: str, timeout: float | None = None) -> bool:
        """Wait for *selector* to match; False on timeout."""

        async def present() -> bool:
            return await self.exists(selector)

        found = await wait_until(
            present,
            timeout=self.timings.element_timeout if timeout is None else timeout,
            interval=self.timings.poll_interval,
        )
        if not found:
            _LOG.debug("Element did not appear in time: %s", selector)
        return bool(found)

    async def wait_for_enabled(self, selector: str, timeout: float | None = None) -> bool:
        """Wait for *selector* to match an enabled control; False on timeout."""

        async def enabled() -> bool:
            state = await self.control_state(selector)
            if state is not ControlState.ENABLED:
                _LOG.debug("Control %s is %s, waiting", selector, state.value)
            return state is ControlState.ENABLED

        ok = await wait_until(
            enabled,
            timeout=self.timings.send_timeout if timeout is None else timeout,
            interval=self.timings.poll_interval,
        )
        return bool(ok)

    async def missing_roles(self) -> list[str]:
        """Selectors of the idle-page roles that currently match nothing."""
        selectors = [
            self.profile.prompt_input,
            self.profile.conversation_root,
            self.profile.new_chat_button,
        ]
        return await self.page.evaluate(page_scripts.MISSING_SELECTORS_JS, [selectors])

    # ---------------- Actions ---------------- #

    async def click(self, selector: str) -> bool:
        clicked = bool(await self.page.evaluate(page_scripts.CLICK_JS, [selector]))
        if clicked:
            _LOG.debug("Clicked %s", selector)
        else:
            _LOG.warning("Nothing to click for %s", selector)
        return clicked

    async def insert_text(self, text: str) -> bool:
        """Write *text* into the prompt input using the profile's strategy."""
        selector = self.profile.prompt_input
        strategy = self.profile.insert_strategy

        if strategy is InsertStrategy.ASSIGN:
            ok = await self.page.evaluate(page_scripts.INSERT_ASSIGN_JS, [selector, text])
        elif strategy is InsertStrategy.PASTE:
            ok = await self.page.evaluate(page_scripts.INSERT_PASTE_JS, [selector, text])
        else:
            ok = await self._paste_from_clipboard(selector, text)

        _LOG.debug("Inserted %d chars via %s: %s", len(text), strategy.name, bool(ok))
        return bool(ok)

    async def _paste_from_clipboard(self, selector: str, text: str) -> bool:
        await self.page.focus(selector)
        try:
            await self.page.bring_to_front()
        except Exception as exc:
            _LOG.debug("bring_to_front failed: %s", exc)

        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as exc:
            # No clipboard backend (headless Linux): type it instead.
            _LOG.debug("Clipboard unavailable (%s); inserting via keyboard", exc)
            await self.page.keyboard.insert_text(text)
        else:
            modifier = "Meta" if sys.platform == "darwin" else "Control"
            await self.page.keyboard.press(f"{modifier}+V")
        return True

    async def start_new_conversation(self) -> bool:
        """
        Click the profile's new-conversation control (and its confirmation,
        when the site asks for one), then wait for the prompt input.

        Returns False when any step timed out.
        """
        profile = self.profile
        if not await self.wait_for_element(profile.new_chat_button):
            _LOG.error("New chat control not found: %s", profile.new_chat_button)
            return False
        await self.click(profile.new_chat_button)

        if profile.new_chat_confirm:
            if not await self.wait_for_element(
                profile.new_chat_confirm, timeout=self.timings.send_timeout
            ):
                _LOG.error("New chat confirmation not found: %s", profile.new_chat_confirm)
                return False
            await self.click(profile.new_chat_confirm)

        if not await self.wait_for_element(profile.prompt_input):
            _LOG.error("Prompt input not found after starting a new chat")
            return False
        return True

    # ---------------- Observation ---------------- #

    async def sample(self) -> Sample:
        profile = self.profile
        raw = await self.page.evaluate(
            page_scripts.SAMPLE_JS,
            [
                profile.conversation_root,
                profile.answer_container,
                profile.answer_text,
                profile.send_button,
            ],
        )
        return Sample(
            text=raw.get("text"),
            ready=bool(raw.get("ready")),
            turns=int(raw.get("turns") or 0),
        )

    async def observe(self, callback: MutationCallback) -> bool:
        """
        Route mutations under the conversation root to *callback*.

        Returns False when the conversation root is not on the page.
        """
        if not self._binding_ready:
            # A binding can only be exposed once per page; it survives
            # navigations, the observer itself does not.
            await self.page.expose_binding(MUTATION_BINDING, self._on_mutation)
            self._binding_ready = True

        self._mutation_callback = callback
        attached = await self.page.evaluate(
            page_scripts.OBSERVE_JS, [self.profile.conversation_root, MUTATION_BINDING]
        )
        if not attached:
            self._mutation_callback = None
            _LOG.error("Conversation root not found: %s", self.profile.conversation_root)
            return False
        _LOG.debug("Observing %s", self.profile.conversation_root)
        return True

    async def detach(self) -> None:
        self._mutation_callback = None
        try:
            await self.page.evaluate(page_scripts.DETACH_JS)
        except Exception as exc:
            _LOG.debug("Observer detach failed (page gone?): %s", exc)

    def _on_mutation(self, _source, count: int = 0) -> None:
        callback = self._mutation_callback
        if callback is not None:
            callback(count)
