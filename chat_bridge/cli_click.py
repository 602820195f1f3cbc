"""
chat_bridge.cli_click
---------------------

User-facing Click command-line interface.

Commands
--------
run          : Attach to a chat page and serve the control channel
sites        : List the supported chat sites
ask          : Send one prompt through the completions endpoint (demo client)
chrome-status: Show whether Chrome exposes remote debugging
chrome-launch: Relaunch Chrome with remote debugging
"""

from __future__ import annotations

import json
import logging
import sys
from importlib import metadata
from typing import Optional

import click

from chat_bridge.client import CompletionsError, ask_sync
from chat_bridge.cli import run_bridge_sync
from chat_bridge.config import completions_url, load_config, load_dotenv_once
from chat_bridge.constants import DEFAULT_MODEL, SiteName
from chat_bridge.profiles import PROFILES, UnknownSiteError

_LOG = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # Frame-level chatter from the socket library drowns out our own logs.
    logging.getLogger("websockets").setLevel(logging.INFO if verbose else logging.WARNING)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging.")
@click.version_option(metadata.version("chat-bridge"))
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """chat-bridge – drive a browser chat UI from a WebSocket control channel."""
    _configure_logging(verbose)
    load_dotenv_once()
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


# --------------------------------------------------------------------------- #
# run command                                                                 #
# --------------------------------------------------------------------------- #


@cli.command("run")
@click.option(
    "-s",
    "--site",
    type=click.Choice([s.value for s in SiteName], case_sensitive=False),
    help="Site to drive. Defaults to whichever supported site is open in Chrome.",
)
@click.option("--url", "ws_url", help="WebSocket URL of the transport server.")
@click.option("--cdp-port", type=int, help="Chrome remote-debugging port.")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging.")
def cmd_run(
    site: Optional[str],
    ws_url: Optional[str],
    cdp_port: Optional[int],
    verbose: bool,
) -> None:
    """Attach to the chat page and relay requests until interrupted."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = load_config(ws_url=ws_url, cdp_port=cdp_port, site=site)
    try:
        run_bridge_sync(config)
    except UnknownSiteError as exc:
        raise click.ClickException(str(exc)) from exc
    except RuntimeError as exc:
        # Chrome unreachable or running without remote debugging.
        raise click.ClickException(f"Chrome: {exc}") from exc


# --------------------------------------------------------------------------- #
# sites command                                                               #
# --------------------------------------------------------------------------- #


@cli.command("sites")
@click.option(
    "-o",
    "--output",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    show_default=True,
    help="Output format.",
)
def cmd_sites(output: str) -> None:
    """List the chat sites a profile exists for."""
    if output == "json":
        payload = {
            name.value: {
                "origins": list(profile.origins),
                "landingUrl": profile.landing_url,
                "insertStrategy": profile.insert_strategy.name.lower(),
            }
            for name, profile in PROFILES.items()
        }
        click.echo(json.dumps(payload, indent=2))
        return

    header = f"{'Site':14}  {'Input':9}  Origins"
    click.echo(header)
    click.echo("-" * len(header))
    for name, profile in PROFILES.items():
        click.echo(
            f"{name.value:14}  {profile.insert_strategy.name.lower():9}  "
            f"{', '.join(profile.origins)}"
        )


# --------------------------------------------------------------------------- #
# ask command                                                                 #
# --------------------------------------------------------------------------- #


@cli.command("ask")
@click.argument("prompt", required=False)
@click.option("-n", "--new-chat", is_flag=True, help="Start a new conversation first.")
@click.option("-m", "--model", default=DEFAULT_MODEL, show_default=True, help="Model name to send.")
@click.option("--endpoint", help="Chat-completions URL ($CHAT_BRIDGE_COMPLETIONS_URL).")
@click.option("--stdin", "from_stdin", is_flag=True, help="Read the prompt from STDIN.")
def cmd_ask(
    prompt: Optional[str],
    new_chat: bool,
    model: str,
    endpoint: Optional[str],
    from_stdin: bool,
) -> None:
    """Send PROMPT through the bridge and print the answer."""
    if from_stdin:
        prompt = sys.stdin.read()
    if not prompt or not prompt.strip():
        raise click.UsageError("A prompt is required (argument or --stdin).")

    url = completions_url(endpoint)
    try:
        answer = ask_sync(prompt, url=url, model=model, new_chat=new_chat)
    except CompletionsError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(answer)


# --------------------------------------------------------------------------- #
# Chrome helpers                                                              #
# --------------------------------------------------------------------------- #


@cli.command("chrome-status")
def cmd_chrome_status() -> None:
    """Display whether Chrome is running and if remote debugging is enabled.

    Exit status:
        0 → Chrome is running with --remote-debugging-port
        1 → Chrome not running or missing the flag
    """
    from chat_bridge.constants import CHROME_PROCESS_NAMES
    from chat_bridge.chrome_utils import scan_chrome_processes

    status = scan_chrome_processes(CHROME_PROCESS_NAMES)

    click.echo(f"Chrome running       : {'Yes' if status.running else 'No'}")
    click.echo(f"Remote debugging flag: {'Yes' if status.remote_debug else 'No'}")
    if status.remote_debug:
        click.echo(f"Remote debugging port: {status.debug_port or '(unspecified)'}")
    click.echo(f"PIDs                 : {', '.join(map(str, status.pids)) or '-'}")

    if not (status.running and status.remote_debug):
        sys.exit(1)


@cli.command("chrome-launch")
@click.option("--cdp-port", type=int, help="Remote-debugging port (default $CHROME_REMOTE_PORT).")
def cmd_chrome_launch(cdp_port: Optional[int]) -> None:
    """Force-quit any running Chrome instance and relaunch with remote debugging."""
    from chat_bridge.constants import CHROME_PROCESS_NAMES, CHROME_REMOTE_PORT
    from chat_bridge.chrome_utils import (
        get_chrome_profile_dir,
        launch_chrome,
        quit_chrome,
        scan_chrome_processes,
    )

    port = cdp_port or CHROME_REMOTE_PORT
    status = scan_chrome_processes(CHROME_PROCESS_NAMES)

    if status.running:
        click.echo("Quitting existing Chrome instance…")
        if quit_chrome(status.pids):
            click.echo("✓ Chrome exited")
        else:
            click.echo("⚠️  Failed to quit Chrome – attempting to continue", err=True)

    click.echo("Launching Chrome with --remote-debugging-port…")
    try:
        launch_chrome(port, get_chrome_profile_dir())
    except OSError as exc:
        raise click.ClickException(f"Could not start Chrome: {exc}") from exc
    click.echo(f"✓ Chrome launched and listening on port {port}")


if __name__ == "__main__":  # pragma: no cover
    cli()
