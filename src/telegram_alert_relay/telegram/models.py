"""Data models for Telegram updates."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ChatType(Enum):
    """Kind of conversation an update came from."""

    PRIVATE = "private"
    GROUP = "group"
    OTHER = "other"

    @classmethod
    def from_api(cls, value: Any) -> ChatType:
        """Map a Bot API chat type string."""
        if value == "private":
            return cls.PRIVATE
        if value in ("group", "supergroup"):
            return cls.GROUP
        return cls.OTHER


@dataclass(frozen=True)
class BotIdentity:
    """The bot account behind the configured token."""

    id: int
    username: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BotIdentity:
        """Create a BotIdentity from a ``getMe`` result."""
        return cls(id=int(data.get("id", 0)), username=str(data.get("username", "")))


@dataclass(frozen=True)
class InboundEvent:
    """An update pushed by the Bot API, reduced to what the relay uses.

    Attributes:
        update_id: Monotonic update identifier.
        chat_id: Chat of the update's message, None if it carries none.
        chat_type: Kind of chat the message belongs to.
        new_member_usernames: Usernames of members added to the chat.
    """

    update_id: int
    chat_id: int | None = None
    chat_type: ChatType = ChatType.OTHER
    new_member_usernames: tuple[str, ...] = ()

    @property
    def is_group(self) -> bool:
        """Return True if the update came from a group chat."""
        return self.chat_type == ChatType.GROUP

    @classmethod
    def from_update(cls, update: dict[str, Any]) -> InboundEvent:
        """Create an InboundEvent from a raw ``getUpdates`` entry."""
        update_id = int(update.get("update_id", 0))
        message = update.get("message")
        if not isinstance(message, dict):
            return cls(update_id=update_id)

        chat = message.get("chat") or {}
        chat_id = chat.get("id")

        members = message.get("new_chat_members")
        if not isinstance(members, list):
            # Older payloads carry a single member
            single = message.get("new_chat_member")
            members = [single] if isinstance(single, dict) else []

        usernames = tuple(
            str(m["username"]) for m in members if isinstance(m, dict) and m.get("username")
        )

        return cls(
            update_id=update_id,
            chat_id=int(chat_id) if chat_id is not None else None,
            chat_type=ChatType.from_api(chat.get("type")),
            new_member_usernames=usernames,
        )
