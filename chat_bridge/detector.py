"""
chat_bridge.detector
--------------------

Response completion detection.

The chat page never says "the answer is finished".  What it does offer is a
noisy stream of DOM mutations while tokens arrive, and a send control that
disappears (or is disabled) while generating and comes back once the page is
ready for new input.  Detection therefore has two layers:

``CompletionDetector``
    A pure state machine fed with one ``Sample`` per quiet period.  Changed
    text produces an ``Interim`` event; the send control being ready produces
    a single ``Completed`` event.  Identical consecutive texts are dropped.

``DebouncedWatcher``
    Turns raw mutation notifications into samples: every notification
    restarts a timer, and only when the timer survives a full quiet period
    is the page sampled and the result fed to the detector.  It also owns
    liveness: after a stretch without notifications the page is sampled
    anyway (the observed node may have been replaced), and once the answer
    makes no progress for too long the watch is given up.

Example
-------
>>> det = CompletionDetector()
>>> det.feed(Sample("Hel", ready=False))
[Interim(text='Hel')]
>>> det.feed(Sample("Hello", ready=True))
[Interim(text='Hello'), Completed(text='Hello')]
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Union

_LOG = logging.getLogger(__name__)

__all__ = [
    "Completed",
    "CompletionDetector",
    "DebouncedWatcher",
    "DetectorEvent",
    "Interim",
    "Sample",
]


# --------------------------------------------------------------------------- #
# Data models                                                                 #
# --------------------------------------------------------------------------- #


@dataclass(slots=True, frozen=True)
class Sample:
    """One settled reading of the page."""

    text: Optional[str]
    ready: bool  # send control present and enabled
    turns: int = 0  # number of answer containers on the page


@dataclass(slots=True, frozen=True)
class Interim:
    text: str


@dataclass(slots=True, frozen=True)
class Completed:
    text: Optional[str]


DetectorEvent = Union[Interim, Completed]


# --------------------------------------------------------------------------- #
# State machine                                                               #
# --------------------------------------------------------------------------- #


class CompletionDetector:
    """
    Decide from a sequence of samples when a streamed answer is complete.

    *baseline* is the answer text visible before the prompt was submitted
    and *turns* the number of answers on the page at that time.  The baseline
    text counts as already reported until a new answer container shows up;
    from then on the text is reported even when it repeats the previous
    answer word for word.
    """

    def __init__(self, baseline: Optional[str] = None, turns: int = 0) -> None:
        self.last_text: Optional[str] = baseline
        self.turns = turns
        self.done = False

    def feed(self, sample: Sample) -> list[DetectorEvent]:
        if self.done:
            _LOG.debug("Sample after completion ignored")
            return []

        if sample.turns > self.turns:
            self.turns = sample.turns
            self.last_text = None

        changed = bool(sample.text) and sample.text != self.last_text
        if not changed and not sample.ready:
            _LOG.debug("No new text and send control not ready; still generating")
            return []

        events: list[DetectorEvent] = []
        if changed:
            self.last_text = sample.text
            events.append(Interim(sample.text))
        if sample.ready:
            self.done = True
            events.append(Completed(self.last_text))
        return events


# --------------------------------------------------------------------------- #
# Debounced driver                                                            #
# --------------------------------------------------------------------------- #

Sampler = Callable[[], Awaitable[Sample]]
EventHandler = Callable[[DetectorEvent], Awaitable[None]]


class DebouncedWatcher:
    """
    Feed *detector* one sample per quiet period of *delay* seconds.

    ``notify()`` is wired to the page's mutation observer.  Evaluations run
    one at a time in the order their timers fired; events are delivered to
    *on_event* in the order the detector produced them.

    With *resample_interval* set, a page that stops notifying is still
    sampled every *resample_interval* seconds.  With *stall_timeout* set,
    the watch closes and ``stalled`` turns True once the detector has
    produced no event for that long.
    """

    def __init__(
        self,
        detector: CompletionDetector,
        sampler: Sampler,
        on_event: EventHandler,
        *,
        delay: float,
        resample_interval: float | None = None,
        stall_timeout: float | None = None,
    ) -> None:
        self.detector = detector
        self._sampler = sampler
        self._on_event = on_event
        self._delay = delay
        self._resample_interval = resample_interval
        self._stall_timeout = stall_timeout
        self._timer: asyncio.TimerHandle | None = None
        self._fallback: asyncio.TimerHandle | None = None
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()
        self._finished = asyncio.Event()
        self._closed = False
        self._stalled = False
        self._last_activity = 0.0
        self._last_progress = 0.0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def stalled(self) -> bool:
        return self._stalled

    def notify(self, *_args) -> None:
        """Register one raw change notification and restart the quiet timer."""
        if self._closed or self.detector.done:
            return
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._last_activity = loop.time()
        self._timer = loop.call_later(self._delay, self._fire)

    def kick(self) -> None:
        """Sample once right away and start the liveness timer."""
        if self._closed:
            return
        self._last_progress = asyncio.get_running_loop().time()
        self._fire()
        self._arm_fallback(self._next_check())

    async def wait(self) -> bool:
        """Block until completion or close; True when completion was seen."""
        await self._finished.wait()
        return self.detector.done

    def close(self) -> None:
        """Cancel the timer and any pending evaluation."""
        self._closed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._fallback is not None:
            self._fallback.cancel()
            self._fallback = None
        for task in list(self._tasks):
            if task is not asyncio.current_task():
                task.cancel()
        self._finished.set()

    # ---------------- Internal helpers ---------------- #

    def _next_check(self) -> float | None:
        bounds = [b for b in (self._resample_interval, self._stall_timeout) if b is not None]
        return min(bounds) if bounds else None

    def _arm_fallback(self, delay: float | None) -> None:
        if delay is None or self._closed:
            return
        loop = asyncio.get_running_loop()
        self._fallback = loop.call_later(delay, self._on_fallback)

    def _on_fallback(self) -> None:
        self._fallback = None
        if self._closed or self.detector.done:
            return
        now = asyncio.get_running_loop().time()

        if self._stall_timeout is not None and now - self._last_progress >= self._stall_timeout:
            _LOG.warning("No answer progress for %.1fs; giving up", now - self._last_progress)
            self._stalled = True
            self.close()
            return

        if self._resample_interval is not None:
            idle = now - self._last_activity
            if idle >= self._resample_interval and self._timer is None:
                _LOG.debug("No mutations for %.1fs; sampling anyway", idle)
                self._fire()
        self._arm_fallback(self._next_check())

    def _fire(self) -> None:
        self._timer = None
        self._last_activity = asyncio.get_running_loop().time()
        task = asyncio.ensure_future(self._evaluate())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _evaluate(self) -> None:
        async with self._lock:
            if self._closed or self.detector.done:
                return
            try:
                sample = await self._sampler()
            except Exception as exc:
                # Page mid-navigation or detached; the next mutation retries.
                _LOG.warning("Sampling the page failed: %s", exc)
                return

            _LOG.debug("Sample: ready=%s, %d chars", sample.ready, len(sample.text or ""))
            events = self.detector.feed(sample)
            if events:
                self._last_progress = asyncio.get_running_loop().time()
            for event in events:
                await self._on_event(event)
                if isinstance(event, Completed):
                    self._finished.set()
