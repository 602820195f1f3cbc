"""
chat_bridge.constants
---------------------

Centralised constants shared across the chat-bridge code-base.
"""

from enum import Enum, auto
from typing import Final
import os
import sys

# --------------------------------------------------------------------------- #
# Enumerations                                                                #
# --------------------------------------------------------------------------- #


class SiteName(str, Enum):
    """Chat front-ends a Site Profile exists for."""

    CHATGPT = "chatgpt"
    AZURE_OPENAI = "azure-openai"


class InsertStrategy(Enum):
    """How a prompt is written into the site's input element."""

    PASTE = auto()  # synthetic paste event carrying a DataTransfer
    ASSIGN = auto()  # textContent + input/change/keyup events
    CLIPBOARD = auto()  # system clipboard + keyboard shortcut


class ConnectionState(Enum):
    """Lifecycle of the control-channel socket."""

    DISCONNECTED = auto()
    CONNECTING = auto()
    OPEN = auto()
    CLOSING = auto()
    CLOSED = auto()


class ConnectionStatus(str, Enum):
    """Values reported to the status callback of the transport."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class BridgeState(Enum):
    """Per-request state of the bridge controller."""

    IDLE = auto()
    SUBMITTING = auto()
    AWAITING = auto()
    COMPLETING = auto()


# --------------------------------------------------------------------------- #
# Timing defaults (seconds)                                                   #
# --------------------------------------------------------------------------- #

# Poll interval used by every bounded wait.
POLL_INTERVAL: Final[float] = 0.5

# Upper bound for the prompt input / new-chat control to appear.
ELEMENT_TIMEOUT: Final[float] = 10.0

# Upper bound for the send control to become enabled and for the busy
# indicator to show up after the click.
SEND_TIMEOUT: Final[float] = 5.0

# Pause after a new conversation was started, before typing.
NEW_CHAT_SETTLE: Final[float] = 1.0

# Pause after the prompt input appeared, before inserting, so the editor is
# wired up.
INPUT_SETTLE: Final[float] = 1.0

# Quiet period that must elapse after the last DOM mutation before the
# conversation is sampled.
DEBOUNCE_DELAY: Final[float] = 1.0

# Without mutations for this long, the watcher samples the page anyway.
RESAMPLE_INTERVAL: Final[float] = 5.0

# A request whose answer makes no progress for this long is abandoned.
STALL_TIMEOUT: Final[float] = 300.0

RECONNECT_BASE_DELAY: Final[float] = 2.0
RECONNECT_MAX_DELAY: Final[float] = 30.0

HEARTBEAT_INTERVAL: Final[float] = 30.0

# --------------------------------------------------------------------------- #
# Control channel / demo client                                               #
# --------------------------------------------------------------------------- #

DEFAULT_WS_URL: Final[str] = "ws://localhost:8765"
WS_URL_ENV: Final[str] = "CHAT_BRIDGE_WS_URL"

DEFAULT_COMPLETIONS_URL: Final[str] = "http://localhost:8766/v1/chat/completions"
COMPLETIONS_URL_ENV: Final[str] = "CHAT_BRIDGE_COMPLETIONS_URL"

# Model name forwarded by the demo client; the page ignores it.
DEFAULT_MODEL: Final[str] = "gpt-4"

# Timeout for one demo completion round-trip.
COMPLETIONS_TIMEOUT: Final[float] = 300.0

# Name of the Playwright binding the in-page mutation observer calls.
MUTATION_BINDING: Final[str] = "__chatBridgeMutation"

# --------------------------------------------------------------------------- #
# Chrome                                                                      #
# --------------------------------------------------------------------------- #

# Default CDP remote-debugging port Chrome will listen on.
CHROME_REMOTE_PORT: Final[int] = int(os.environ.get("CHROME_REMOTE_PORT", "9222"))

if sys.platform == "darwin":
    _DEFAULT_CHROME = "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome"
else:
    _DEFAULT_CHROME = "google-chrome"

# Path to Chrome executable. Override via $GOOGLE_CHROME.
CHROME_EXECUTABLE: Final[str] = os.environ.get("GOOGLE_CHROME", _DEFAULT_CHROME)

# Substrings matched against ``ps`` command lines to find Chrome processes.
CHROME_PROCESS_NAMES: Final[tuple[str, ...]] = (
    "Google Chrome",
    "google-chrome",
    "chromium",
)

# When "1", "true" or "yes", a Chrome running without the remote-debugging
# flag is quit and relaunched with it.
AUTO_RELAUNCH_CHROME_ENV: Final[str] = "CHAT_BRIDGE_AUTO_RELAUNCH_CHROME"

# Environment variable that overrides Chrome's --user-data-dir.
CHROME_PROFILE_DIR_ENV: Final[str] = "GOOGLE_CHROME_PROFILE_DIR"
