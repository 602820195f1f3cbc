"""
chat_bridge.models
------------------

Wire models for the control channel.

Inbound records look like ``{"id": "...", "text": "<json>"}`` where *text* is
itself a JSON document ``{"messages": [...], "model": "...", "newChat": true}``.
Outbound records are one of ``heartbeat``, ``answer`` or ``stop``.
"""

from __future__ import annotations

import json
from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

__all__ = [
    "Answer",
    "BridgeRequest",
    "ChatMessage",
    "Heartbeat",
    "OutboundMessage",
    "RequestError",
    "Stop",
    "parse_envelope",
]


class RequestError(ValueError):
    """Raised when an inbound record cannot be turned into a BridgeRequest."""


# --------------------------------------------------------------------------- #
# Inbound                                                                     #
# --------------------------------------------------------------------------- #


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: str = "user"
    content: str


class BridgeRequest(BaseModel):
    """One conversation turn requested over the control channel."""

    model_config = ConfigDict(
        extra="ignore", populate_by_name=True, protected_namespaces=()
    )

    id: str = ""
    messages: list[ChatMessage]
    model: Optional[str] = None
    new_conversation: bool = Field(default=False, alias="newChat")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @property
    def prompt(self) -> str:
        """Text submitted to the page: the content of the last message."""
        return self.messages[-1].content


def parse_envelope(envelope: Mapping[str, Any]) -> BridgeRequest:
    """
    Decode an inbound channel record into a validated BridgeRequest.

    Raises
    ------
    RequestError
        If the record, the embedded JSON body or the messages list is
        malformed, or if the last message carries no content.
    """
    if not isinstance(envelope, Mapping):
        raise RequestError(f"expected a JSON object, got {type(envelope).__name__}")

    body = envelope.get("text")
    if not isinstance(body, str):
        raise RequestError("record has no 'text' field")

    try:
        payload = json.loads(body)
    except json.JSONDecodeError as exc:
        raise RequestError(f"'text' is not valid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise RequestError("request body must be a JSON object")

    try:
        request = BridgeRequest.model_validate({**payload, "id": envelope.get("id")})
    except ValidationError as exc:
        raise RequestError(f"invalid request: {exc.error_count()} error(s)") from exc

    if not request.messages:
        raise RequestError("messages array is empty")
    if not request.prompt:
        raise RequestError("last message has no content")
    return request


# --------------------------------------------------------------------------- #
# Outbound                                                                    #
# --------------------------------------------------------------------------- #


class OutboundMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str

    def to_json(self) -> str:
        return self.model_dump_json()


class Heartbeat(OutboundMessage):
    type: Literal["heartbeat"] = "heartbeat"


class Answer(OutboundMessage):
    type: Literal["answer"] = "answer"
    text: str


class Stop(OutboundMessage):
    type: Literal["stop"] = "stop"
