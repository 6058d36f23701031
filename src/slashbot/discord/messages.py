from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Union

from .constants import DISCORD_EPHEMERAL_FLAG, DISCORD_MAX_MESSAGE_LENGTH

TRUNCATION_SUFFIX = "..."


def truncate_for_discord(text: str, max_len: int = DISCORD_MAX_MESSAGE_LENGTH) -> str:
    if not text:
        return ""
    if max_len <= 0:
        raise ValueError("max_len must be positive")
    if len(text) <= max_len:
        return text
    if max_len <= len(TRUNCATION_SUFFIX):
        return TRUNCATION_SUFFIX[:max_len]
    limit = max_len - len(TRUNCATION_SUFFIX)
    head = text[:limit]
    # Prefer cutting on a line or word boundary in the last quarter.
    for separator in ("\n", " "):
        cut = head.rfind(separator)
        if cut >= limit * 3 // 4:
            head = head[:cut]
            break
    return f"{head.rstrip()}{TRUNCATION_SUFFIX}"


def format_embed_timestamp(timestamp: float) -> str:
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return moment.isoformat(timespec="seconds")


@dataclass
class Embed:
    """Rich embed attached to a message.

    ``color`` and ``timestamp`` use 0 to mean "unset"; unset fields are left
    out of the payload entirely.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    footer: Optional[str] = None
    color: int = 0
    timestamp: float = 0

    def set_footer(self, text: Optional[str]) -> "Embed":
        self.footer = text
        return self

    def set_timestamp(self, timestamp: float) -> "Embed":
        self.timestamp = timestamp
        return self

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.title:
            payload["title"] = self.title
        if self.description:
            payload["description"] = self.description
        if self.footer:
            payload["footer"] = {"text": self.footer}
        if self.color:
            payload["color"] = self.color
        if self.timestamp:
            payload["timestamp"] = format_embed_timestamp(self.timestamp)
        return payload


@dataclass
class Message:
    """Outbound reply: optional content, at most one embed, ephemeral flag."""

    content: Optional[str] = None
    ephemeral: bool = False
    embed: Optional[Embed] = None

    def set_embed(self, embed: Optional[Embed]) -> "Message":
        self.embed = embed
        return self

    @property
    def is_empty(self) -> bool:
        return not self.content and (self.embed is None or not self.embed.to_payload())

    def to_payload(self, *, include_flags: bool = True) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.content:
            payload["content"] = truncate_for_discord(self.content)
        if self.embed is not None:
            embed_payload = self.embed.to_payload()
            if embed_payload:
                payload["embeds"] = [embed_payload]
        if include_flags and self.ephemeral:
            payload["flags"] = DISCORD_EPHEMERAL_FLAG
        return payload


Reply = Union[Message, str, None]


def create_message(content: Optional[str] = None, ephemeral: bool = False) -> Message:
    return Message(content=content, ephemeral=ephemeral)


def create_embed(
    title: Optional[str] = None,
    description: Optional[str] = None,
    color: int = 0,
) -> Embed:
    return Embed(title=title, description=description, color=color)


def coerce_reply(reply: object) -> Optional[Message]:
    """Normalize a handler's return value to a ``Message`` or ``None``.

    Plain strings become non-ephemeral content messages; empty strings and
    empty messages count as "no reply".
    """
    if reply is None:
        return None
    if isinstance(reply, Message):
        return None if reply.is_empty else reply
    if isinstance(reply, str):
        return Message(content=reply) if reply else None
    raise TypeError(
        f"command handler returned unsupported reply type {type(reply).__name__}"
    )
