"""
chat_bridge.config
------------------

Runtime configuration: the tunable timing constants bundled into one value
that is handed to the transport, the controller and the detector, plus the
launch-level settings resolved from the environment.

Resolution order for launch settings
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
1. Explicit arguments (CLI flags).
2. Environment variables, including a ``.env`` discovered from the current
   working directory upwards.
3. Defaults from ``chat_bridge.constants``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from dotenv import find_dotenv, load_dotenv

from .constants import (
    CHROME_REMOTE_PORT,
    COMPLETIONS_URL_ENV,
    DEBOUNCE_DELAY,
    DEFAULT_COMPLETIONS_URL,
    DEFAULT_WS_URL,
    ELEMENT_TIMEOUT,
    HEARTBEAT_INTERVAL,
    INPUT_SETTLE,
    NEW_CHAT_SETTLE,
    POLL_INTERVAL,
    RECONNECT_BASE_DELAY,
    RECONNECT_MAX_DELAY,
    RESAMPLE_INTERVAL,
    SEND_TIMEOUT,
    STALL_TIMEOUT,
    WS_URL_ENV,
    SiteName,
)

_LOG = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class BridgeTimings:
    """Every delay and bound used by the bridge, in seconds."""

    poll_interval: float = POLL_INTERVAL
    element_timeout: float = ELEMENT_TIMEOUT
    send_timeout: float = SEND_TIMEOUT
    new_chat_settle: float = NEW_CHAT_SETTLE
    input_settle: float = INPUT_SETTLE
    debounce_delay: float = DEBOUNCE_DELAY
    resample_interval: float = RESAMPLE_INTERVAL
    stall_timeout: float = STALL_TIMEOUT
    reconnect_base_delay: float = RECONNECT_BASE_DELAY
    reconnect_max_delay: float = RECONNECT_MAX_DELAY
    heartbeat_interval: float = HEARTBEAT_INTERVAL

    def __post_init__(self) -> None:
        for name in self.__slots__:
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        if self.reconnect_max_delay < self.reconnect_base_delay:
            raise ValueError("reconnect_max_delay must be >= reconnect_base_delay")


@dataclass(slots=True)
class BridgeConfig:
    """Launch-level settings for ``chat-bridge run``."""

    ws_url: str = DEFAULT_WS_URL
    cdp_port: int = CHROME_REMOTE_PORT
    site: SiteName | None = None
    timings: BridgeTimings = field(default_factory=BridgeTimings)


def load_dotenv_once() -> None:
    """Best-effort ``.env`` discovery relative to the working directory."""
    try:
        discovered = find_dotenv(usecwd=True)
        if discovered:
            load_dotenv(discovered)
            _LOG.debug("Loaded .env: %s", discovered)
    except OSError as exc:
        _LOG.warning("Failed to load .env file: %s", exc)


def load_config(
    ws_url: str | None = None,
    cdp_port: int | None = None,
    site: SiteName | str | None = None,
) -> BridgeConfig:
    """Merge explicit arguments with the environment into a BridgeConfig."""
    load_dotenv_once()

    if isinstance(site, str):
        site = SiteName(site)

    return BridgeConfig(
        ws_url=ws_url or os.environ.get(WS_URL_ENV, DEFAULT_WS_URL),
        cdp_port=cdp_port or int(os.environ.get("CHROME_REMOTE_PORT", CHROME_REMOTE_PORT)),
        site=site,
    )


def completions_url(explicit: str | None = None) -> str:
    """Endpoint used by the demo ``ask`` command."""
    if explicit:
        return explicit
    load_dotenv_once()
    return os.environ.get(COMPLETIONS_URL_ENV, DEFAULT_COMPLETIONS_URL)
