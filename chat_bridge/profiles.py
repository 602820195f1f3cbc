"""
chat_bridge.profiles
--------------------

Site Profiles: one immutable record per supported chat front-end, mapping the
abstract UI roles the bridge needs to the concrete CSS selectors of that site.

The profile is selected once, at startup, by matching the origin of the page
the bridge is attached to.  There is no fallback profile: driving a page with
the wrong selector set silently corrupts the automation.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional
from urllib.parse import urlsplit

from .constants import InsertStrategy, SiteName
from .sites import azure_openai, chatgpt

__all__ = [
    "SiteProfile",
    "UnknownSiteError",
    "PROFILES",
    "get_profile",
    "origin_of",
    "select_profile",
]


class UnknownSiteError(RuntimeError):
    """No Site Profile is registered for the page origin."""


@dataclass(slots=True, frozen=True)
class SiteProfile:
    """Selectors and input strategy for one target site."""

    name: SiteName
    origins: tuple[str, ...]
    landing_url: str
    insert_strategy: InsertStrategy
    prompt_input: str
    send_button: str
    busy_indicator: str
    conversation_root: str
    answer_container: str
    new_chat_button: str
    # Element inside the last answer container holding the text; the
    # container itself is read when unset.
    answer_text: Optional[str] = None
    # Second control to click after new_chat_button (confirmation dialogs).
    new_chat_confirm: Optional[str] = None

    def matches(self, url: str) -> bool:
        return origin_of(url) in self.origins


def origin_of(url: str) -> str:
    """Return ``scheme://host[:port]`` for *url*, lower-cased."""
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return ""
    return f"{parts.scheme}://{parts.netloc}".lower()


# --------------------------------------------------------------------------- #
# Registry                                                                    #
# --------------------------------------------------------------------------- #

_REGISTRY: dict[SiteName, SiteProfile] = {
    SiteName.CHATGPT: SiteProfile(
        name=SiteName.CHATGPT,
        origins=chatgpt.ORIGINS,
        landing_url=chatgpt.LANDING_URL,
        insert_strategy=InsertStrategy.ASSIGN,
        prompt_input=chatgpt.PROMPT_INPUT,
        send_button=chatgpt.SEND_BUTTON,
        busy_indicator=chatgpt.BUSY_INDICATOR,
        conversation_root=chatgpt.CONVERSATION_ROOT,
        answer_container=chatgpt.ANSWER_CONTAINER,
        answer_text=chatgpt.ANSWER_TEXT,
        new_chat_button=chatgpt.NEW_CHAT_BUTTON,
    ),
    SiteName.AZURE_OPENAI: SiteProfile(
        name=SiteName.AZURE_OPENAI,
        origins=azure_openai.ORIGINS,
        landing_url=azure_openai.LANDING_URL,
        insert_strategy=InsertStrategy.PASTE,
        prompt_input=azure_openai.PROMPT_INPUT,
        send_button=azure_openai.SEND_BUTTON,
        busy_indicator=azure_openai.BUSY_INDICATOR,
        conversation_root=azure_openai.CONVERSATION_ROOT,
        answer_container=azure_openai.ANSWER_CONTAINER,
        answer_text=azure_openai.ANSWER_TEXT,
        new_chat_button=azure_openai.NEW_CHAT_BUTTON,
        new_chat_confirm=azure_openai.NEW_CHAT_CONFIRM,
    ),
}

PROFILES: Mapping[SiteName, SiteProfile] = MappingProxyType(_REGISTRY)


def get_profile(name: SiteName | str) -> SiteProfile:
    """
    Return the profile registered under *name*.

    Raises
    ------
    UnknownSiteError
        If no profile carries that name.
    """
    try:
        return PROFILES[SiteName(name)]
    except (KeyError, ValueError) as exc:
        raise UnknownSiteError(f"Unknown site: {name}") from exc


def select_profile(url: str, registry: Mapping[SiteName, SiteProfile] = PROFILES) -> SiteProfile:
    """
    Pick the profile whose origins contain the origin of *url*.

    Raises
    ------
    UnknownSiteError
        If the page origin is not registered.
    """
    for profile in registry.values():
        if profile.matches(url):
            return profile
    known = ", ".join(o for p in registry.values() for o in p.origins)
    raise UnknownSiteError(
        f"No site profile for origin '{origin_of(url) or url}'. Supported: {known}"
    )
