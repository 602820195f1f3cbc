"""Shared pytest fixtures for tests."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from chat_bridge.config import BridgeTimings
from chat_bridge.constants import SiteName
from chat_bridge.detector import Sample
from chat_bridge.profiles import PROFILES


def make_envelope(prompt="Hello", *, new_chat=False, request_id="req-1", **extra):
    """Build an inbound control-channel record."""
    body = {"messages": [{"role": "user", "content": prompt}], "model": "gpt-4"}
    if new_chat:
        body["newChat"] = True
    body.update(extra)
    return {"id": request_id, "text": json.dumps(body)}


class FakeSurface:
    """
    Scriptable stand-in for AutomationSurface.

    ``sample()`` returns *baseline* from the moment a request looks for the
    prompt input until the send control is clicked, then walks through
    *samples* (repeating the last one).  While observed, a pump task fires a
    mutation notification every *pump_interval* seconds; with
    *pump_interval* None the page never notifies.
    """

    def __init__(self, samples=(), *, baseline=None, pump_interval=0.03):
        self.profile = PROFILES[SiteName.CHATGPT]
        self.samples = list(samples)
        self.baseline = baseline or Sample(text=None, ready=True)
        self.pump_interval = pump_interval

        self.prompt_present = True
        self.send_enabled = True
        self.busy_appears = True
        self.observe_ok = True
        self.new_chat_ok = True

        self.calls = []
        self.inserted = []
        self.inserted_at = []
        self.callback = None
        self._submitted = False
        self._pump = None

    async def start_new_conversation(self):
        self.calls.append("new_chat")
        return self.new_chat_ok

    async def wait_for_element(self, selector, timeout=None):
        if selector == self.profile.prompt_input:
            self._submitted = False
            return self.prompt_present
        if selector == self.profile.busy_indicator:
            return self.busy_appears
        return True

    async def wait_for_enabled(self, selector, timeout=None):
        self.calls.append("wait_enabled")
        return self.send_enabled

    async def insert_text(self, text):
        self.calls.append("insert")
        self.inserted.append(text)
        self.inserted_at.append(asyncio.get_running_loop().time())
        return True

    async def click(self, selector):
        self.calls.append(("click", selector))
        if selector == self.profile.send_button:
            self._submitted = True
        return True

    async def sample(self):
        if not self._submitted:
            return self.baseline
        if len(self.samples) > 1:
            return self.samples.pop(0)
        return self.samples[0] if self.samples else Sample(text=None, ready=False)

    async def observe(self, callback):
        self.calls.append("observe")
        if not self.observe_ok:
            return False
        self.callback = callback
        if self.pump_interval is not None:
            self._pump = asyncio.ensure_future(self._mutations())
        return True

    async def detach(self):
        self.calls.append("detach")
        self.callback = None
        if self._pump is not None:
            self._pump.cancel()
            self._pump = None

    async def _mutations(self):
        while self.callback is not None:
            self.callback(1)
            await asyncio.sleep(self.pump_interval)


class SentRecorder:
    """Async ``send`` replacement that records outbound messages."""

    def __init__(self):
        self.messages = []

    async def __call__(self, message):
        self.messages.append(message)
        return True

    @property
    def types(self):
        return [m.type for m in self.messages]

    @property
    def answers(self):
        return [m.text for m in self.messages if m.type == "answer"]


@pytest.fixture
def fast_timings():
    """Timings shrunk so the whole request cycle runs in milliseconds."""
    return BridgeTimings(
        poll_interval=0.005,
        element_timeout=0.05,
        send_timeout=0.05,
        new_chat_settle=0.0,
        input_settle=0.0,
        debounce_delay=0.01,
        resample_interval=0.05,
        stall_timeout=1.0,
        reconnect_base_delay=0.01,
        reconnect_max_delay=0.04,
        heartbeat_interval=0.02,
    )


@pytest.fixture
def sent():
    return SentRecorder()


@pytest.fixture
def page():
    """Mock Playwright page; ``evaluate`` is awaitable."""
    mock_page = MagicMock()
    mock_page.url = "https://chatgpt.com/"
    mock_page.evaluate = AsyncMock(return_value=True)
    mock_page.expose_binding = AsyncMock()
    mock_page.focus = AsyncMock()
    mock_page.bring_to_front = AsyncMock()
    mock_page.keyboard.press = AsyncMock()
    mock_page.keyboard.insert_text = AsyncMock()
    return mock_page


@pytest.fixture(name="make_envelope")
def make_envelope_fixture():
    return make_envelope


@pytest.fixture
def make_surface():
    return FakeSurface
