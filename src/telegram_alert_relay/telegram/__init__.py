"""Telegram Bot API integration - message sending and inbound updates."""

from telegram_alert_relay.telegram.client import TelegramApiError, TelegramClient
from telegram_alert_relay.telegram.listener import (
    InboundEventListener,
    ListenerState,
    ListenerStats,
)
from telegram_alert_relay.telegram.models import BotIdentity, ChatType, InboundEvent
from telegram_alert_relay.telegram.updates import (
    ListenerTransportError,
    PollerStats,
    UpdatePoller,
)

__all__ = [
    "BotIdentity",
    "ChatType",
    "InboundEvent",
    "InboundEventListener",
    "ListenerState",
    "ListenerStats",
    "ListenerTransportError",
    "PollerStats",
    "TelegramApiError",
    "TelegramClient",
    "UpdatePoller",
]
