from __future__ import annotations

from typing import Any, Optional

from .constants import (
    INTERACTION_CALLBACK_CHANNEL_MESSAGE_WITH_SOURCE,
    INTERACTION_TYPE_APPLICATION_COMMAND,
)
from .messages import Message


def _as_id(value: object) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    token = str(value).strip()
    return token or None


def is_application_command(interaction_payload: dict[str, Any]) -> bool:
    interaction_type = interaction_payload.get("type")
    return interaction_type == INTERACTION_TYPE_APPLICATION_COMMAND


def extract_command_name(interaction_payload: dict[str, Any]) -> Optional[str]:
    data = interaction_payload.get("data")
    if not isinstance(data, dict):
        return None
    name = data.get("name")
    if not isinstance(name, str) or not name:
        return None
    return name


def extract_command_options(interaction_payload: dict[str, Any]) -> dict[str, Any]:
    data = interaction_payload.get("data")
    if not isinstance(data, dict):
        return {}
    options = data.get("options")
    if not isinstance(options, list):
        return {}
    parsed: dict[str, Any] = {}
    for item in options:
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        if not isinstance(name, str) or not name:
            continue
        parsed[name] = item.get("value")
    return parsed


def extract_interaction_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(interaction_payload.get("id"))


def extract_interaction_token(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(interaction_payload.get("token"))


def extract_channel_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(interaction_payload.get("channel_id"))


def extract_guild_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(interaction_payload.get("guild_id"))


def extract_user_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    member = interaction_payload.get("member")
    if isinstance(member, dict):
        member_user = member.get("user")
        if isinstance(member_user, dict):
            user_id = _as_id(member_user.get("id"))
            if user_id:
                return user_id
    user = interaction_payload.get("user")
    if isinstance(user, dict):
        return _as_id(user.get("id"))
    return None


def build_interaction_response(message: Message) -> dict[str, Any]:
    return {
        "type": INTERACTION_CALLBACK_CHANNEL_MESSAGE_WITH_SOURCE,
        "data": message.to_payload(),
    }
