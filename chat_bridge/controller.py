"""
chat_bridge.controller
----------------------

The Bridge Controller: takes one request from the control channel, drives the
page to submit it, and reports the answer back.

States
~~~~~~
``IDLE → SUBMITTING → AWAITING → COMPLETING → IDLE``

* Only one request is active at a time; a request arriving while another is
  in flight is rejected (logged, no reply).
* A malformed request, a page that does not become ready in time, or an
  answer that stops making progress ends the attempt without any reply; the
  caller sees silence.
* Every debounced change of the answer text is sent as an ``answer``
  message; exactly one ``stop`` follows once the page is ready again.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol

from .config import BridgeTimings
from .constants import BridgeState
from .detector import (
    Completed,
    CompletionDetector,
    DebouncedWatcher,
    DetectorEvent,
    Interim,
    Sample,
)
from .models import Answer, BridgeRequest, OutboundMessage, RequestError, Stop, parse_envelope
from .profiles import SiteProfile

_LOG = logging.getLogger(__name__)

SendFn = Callable[[OutboundMessage], Awaitable[bool]]


class _Abandoned(RuntimeError):
    """The page did not become ready in time; the request is dropped."""


class Surface(Protocol):
    """The subset of AutomationSurface the controller depends on."""

    profile: SiteProfile

    async def start_new_conversation(self) -> bool: ...

    async def wait_for_element(self, selector: str, timeout: float | None = None) -> bool: ...

    async def wait_for_enabled(self, selector: str, timeout: float | None = None) -> bool: ...

    async def insert_text(self, text: str) -> bool: ...

    async def click(self, selector: str) -> bool: ...

    async def sample(self) -> Sample: ...

    async def observe(self, callback: Callable[[int], None]) -> bool: ...

    async def detach(self) -> None: ...


class BridgeController:
    """
    Orchestrates one conversation turn at a time.

    Parameters
    ----------
    surface : Surface
        Automation surface bound to the chat page.
    send : coroutine function
        Outbound sink, normally ``TransportClient.send``.
    timings : BridgeTimings, optional
        Debounce delay and per-wait bounds.
    """

    def __init__(
        self,
        surface: Surface,
        send: SendFn,
        *,
        timings: BridgeTimings | None = None,
    ) -> None:
        self.surface = surface
        self._send = send
        self.timings = timings or BridgeTimings()
        self.state = BridgeState.IDLE
        self.current_request: Optional[BridgeRequest] = None
        self._watcher: DebouncedWatcher | None = None
        self._stop_sent = False

    @property
    def busy(self) -> bool:
        return self.state is not BridgeState.IDLE

    # ---------------- Entry point ---------------- #

    async def handle_envelope(self, envelope: Mapping[str, Any]) -> bool:
        """
        Process one inbound record end to end.

        Returns True when the request ran to completion (a ``stop`` was
        sent), False when it was rejected or abandoned.
        """
        if self.busy:
            _LOG.warning(
                "Rejecting request %s: request %s is still %s",
                envelope.get("id") if isinstance(envelope, Mapping) else None,
                self.current_request.id if self.current_request else "?",
                self.state.name,
            )
            return False

        try:
            request = parse_envelope(envelope)
        except RequestError as exc:
            _LOG.error("Dropping request: %s", exc)
            return False

        try:
            return await self.run_request(request)
        except _Abandoned as exc:
            _LOG.error("Request %s abandoned: %s", request.id, exc)
        except Exception:
            _LOG.exception("Request %s failed", request.id)
        await self.reset()
        return False

    async def run_request(self, request: BridgeRequest) -> bool:
        """Submit *request* and report its answer; see module docstring."""
        self.state = BridgeState.SUBMITTING
        self.current_request = request
        self._stop_sent = False
        await self._drop_watcher()
        _LOG.info("Request %s: submitting %d chars", request.id, len(request.prompt))

        baseline = await self._submit(request)

        self.state = BridgeState.AWAITING
        watcher = DebouncedWatcher(
            CompletionDetector(baseline=baseline.text, turns=baseline.turns),
            self.surface.sample,
            self._on_detector_event,
            delay=self.timings.debounce_delay,
            resample_interval=self.timings.resample_interval,
            stall_timeout=self.timings.stall_timeout,
        )
        self._watcher = watcher
        if not await self.surface.observe(watcher.notify):
            raise _Abandoned("conversation root not found")
        watcher.kick()

        completed = await watcher.wait()
        if watcher.stalled:
            raise _Abandoned(f"no answer progress for {self.timings.stall_timeout:.0f}s")
        if completed:
            _LOG.info("Request %s: completed", request.id)
        await self.reset()
        return completed

    async def reset(self) -> None:
        """Tear down any observer/detector and return to IDLE."""
        await self._drop_watcher()
        self.current_request = None
        self.state = BridgeState.IDLE

    async def _drop_watcher(self) -> None:
        watcher, self._watcher = self._watcher, None
        if watcher is not None:
            watcher.close()
            await self.surface.detach()

    # ---------------- Submission ---------------- #

    async def _submit(self, request: BridgeRequest) -> Sample:
        """
        Drive the page through one submission.

        Returns the page reading taken before the submission, used as the
        detector's baseline.  Raises ``_Abandoned`` when the page is not
        ready in time.
        """
        surface = self.surface
        profile = surface.profile

        if request.new_conversation:
            _LOG.info("Request %s: starting a new conversation", request.id)
            if not await surface.start_new_conversation():
                _LOG.warning("New conversation not confirmed; continuing in the current one")
            await asyncio.sleep(self.timings.new_chat_settle)

        if not await surface.wait_for_element(
            profile.prompt_input, timeout=self.timings.element_timeout
        ):
            raise _Abandoned(f"prompt input not found ({profile.prompt_input})")
        await asyncio.sleep(self.timings.input_settle)

        baseline = await surface.sample()

        if not await surface.insert_text(request.prompt):
            raise _Abandoned("could not insert the prompt")

        confirmed = await surface.wait_for_enabled(
            profile.send_button, timeout=self.timings.send_timeout
        )
        if not confirmed:
            _LOG.error("Request %s: send control never became enabled", request.id)
        clicked = await surface.click(profile.send_button)

        busy = await surface.wait_for_element(
            profile.busy_indicator, timeout=self.timings.send_timeout
        )
        if not busy:
            if not (confirmed and clicked):
                raise _Abandoned("page did not accept the submission")
            _LOG.warning("Request %s: busy indicator not seen; observing anyway", request.id)
        return baseline

    # ---------------- Detector events ---------------- #

    async def _on_detector_event(self, event: DetectorEvent) -> None:
        request_id = self.current_request.id if self.current_request else "?"
        if isinstance(event, Interim):
            _LOG.debug("Request %s: answer update (%d chars)", request_id, len(event.text))
            await self._send(Answer(text=event.text))
        elif isinstance(event, Completed):
            self.state = BridgeState.COMPLETING
            if self._stop_sent:
                return
            self._stop_sent = True
            _LOG.info("Request %s: answer complete, sending stop", request_id)
            await self._send(Stop())
