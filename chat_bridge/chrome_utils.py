"""Chrome process discovery and launch helpers."""

from __future__ import annotations

import logging
import os
import re
import subprocess
import sys
import time
from pathlib import Path
from typing import Iterable, NamedTuple, Optional

from .constants import CHROME_EXECUTABLE, CHROME_PROFILE_DIR_ENV

_LOG = logging.getLogger(__name__)

_PORT_FLAG = re.compile(r"--remote-debugging-port(?:=(\d+))?")


class ChromeStatus(NamedTuple):
    """Status of Chrome processes on the system."""

    running: bool
    remote_debug: bool
    debug_port: Optional[int]
    pids: tuple[int, ...]


def scan_chrome_processes(names: Iterable[str]) -> ChromeStatus:
    """
    Check whether Chrome is running and whether it exposes remote debugging.

    Parameters
    ----------
    names : Iterable[str]
        Substrings identifying a Chrome process in its command line.
    """
    names = tuple(names)
    try:
        result = subprocess.run(
            ["ps", "-axo", "pid,command"], capture_output=True, text=True, check=True
        )
    except (subprocess.SubprocessError, OSError) as exc:
        _LOG.debug("Process scan failed: %s", exc)
        return ChromeStatus(False, False, None, ())

    pids: list[int] = []
    port: Optional[int] = None
    remote_debug = False

    for line in result.stdout.splitlines():
        if not any(name in line for name in names):
            continue
        parts = line.strip().split(None, 1)
        if len(parts) < 2 or not parts[0].isdigit():
            continue
        pids.append(int(parts[0]))

        match = _PORT_FLAG.search(parts[1])
        if match:
            remote_debug = True
            if match.group(1) and port is None:
                port = int(match.group(1))

    return ChromeStatus(bool(pids), remote_debug, port, tuple(pids))


def quit_chrome(pids: Iterable[int], grace: float = 2.0) -> bool:
    """SIGTERM every pid, then SIGKILL whatever survived *grace* seconds."""
    pids = tuple(pids)
    if not pids:
        return True

    try:
        for pid in pids:
            try:
                os.kill(pid, 15)
            except ProcessLookupError:
                pass
        time.sleep(grace)

        for pid in pids:
            try:
                os.kill(pid, 0)
                os.kill(pid, 9)
            except ProcessLookupError:
                pass
        return True
    except OSError as exc:
        _LOG.warning("Failed to quit Chrome: %s", exc)
        return False


def get_chrome_profile_dir() -> str:
    """
    Return the ``--user-data-dir`` used when chat-bridge launches Chrome.

    $GOOGLE_CHROME_PROFILE_DIR wins; otherwise a dedicated profile so logins
    made in the bridge's Chrome persist between runs.
    """
    env_dir = os.environ.get(CHROME_PROFILE_DIR_ENV)
    if env_dir:
        return os.path.expanduser(env_dir)
    if sys.platform == "darwin":
        return os.path.expanduser("~/Library/Application Support/Google/Chrome-ChatBridge")
    return os.path.expanduser("~/.config/chat-bridge/chrome-profile")


def build_launch_args(port: int, profile_dir: str | Path) -> list[str]:
    return [
        CHROME_EXECUTABLE,
        f"--remote-debugging-port={port}",
        f"--user-data-dir={profile_dir}",
        "--disable-background-timer-throttling",
        "--no-first-run",
        "--no-default-browser-check",
    ]


def launch_chrome(port: int, profile_dir: str | Path) -> subprocess.Popen[str]:
    """Start a head-ful Chrome listening for CDP on *port*."""
    args = build_launch_args(port, profile_dir)
    _LOG.info("Launching Chrome: %s", " ".join(args))
    return subprocess.Popen(
        args,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        text=True,
        env=os.environ.copy(),
    )
