"""
chat_bridge.client
------------------

Minimal client for the chat-completions endpoint that fronts the transport
server.  Used by ``chat-bridge ask`` to push one prompt through the whole
pipeline and print the answer.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

import aiohttp

from .constants import COMPLETIONS_TIMEOUT, DEFAULT_MODEL

_LOG = logging.getLogger(__name__)


class CompletionsError(RuntimeError):
    """The endpoint was unreachable or returned an unusable response."""


def build_payload(prompt: str, *, model: str = DEFAULT_MODEL, new_chat: bool = False) -> dict:
    return {
        "messages": [{"role": "user", "content": prompt}],
        "model": model,
        "newChat": new_chat,
    }


def extract_content(payload: Mapping[str, Any]) -> str:
    """Return ``choices[0].message.content`` from a completions response."""
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise CompletionsError("response has no choices[0].message.content") from exc
    if not isinstance(content, str):
        raise CompletionsError("message content is not a string")
    return content


async def ask(
    prompt: str,
    *,
    url: str,
    model: str = DEFAULT_MODEL,
    new_chat: bool = False,
    timeout: float = COMPLETIONS_TIMEOUT,
) -> str:
    """POST *prompt* to *url* and return the assistant's reply."""
    payload = build_payload(prompt, model=model, new_chat=new_chat)
    _LOG.debug("POST %s (%d chars, newChat=%s)", url, len(prompt), new_chat)
    try:
        async with aiohttp.ClientSession() as session:
            async with session.post(
                url, json=payload, timeout=aiohttp.ClientTimeout(total=timeout)
            ) as resp:
                if resp.status != 200:
                    body = await resp.text()
                    raise CompletionsError(f"HTTP {resp.status} from {url}: {body[:200]}")
                data = await resp.json()
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        raise CompletionsError(f"Request to {url} failed: {exc}") from exc
    return extract_content(data)


def ask_sync(prompt: str, **kwargs: Any) -> str:
    """Synchronous wrapper around :func:`ask`."""
    return asyncio.run(ask(prompt, **kwargs))
