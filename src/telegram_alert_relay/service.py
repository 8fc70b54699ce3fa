"""Request handling for the relay, independent of the HTTP layer."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from telegram_alert_relay import metrics
from telegram_alert_relay.alerter.models import AlertGroup, ComposedMessage

if TYPE_CHECKING:
    from telegram_alert_relay.alerter.delivery import DeliveryAdapter, DeliveryResult
    from telegram_alert_relay.alerter.formatter import MessageComposer

logger = logging.getLogger(__name__)

PING_TEXT = "Some HTTP triggered notification by telegram alert relay... {chat_id}"

# Telegram chat IDs are signed 64-bit integers
CHAT_ID_MIN = -(2**63)
CHAT_ID_MAX = 2**63 - 1

# ASCII digits only, no whitespace or underscores
CHAT_ID_PATTERN = re.compile(r"[+-]?[0-9]+")


class MalformedInputError(ValueError):
    """Raised when a chat ID is not a valid integer."""


def parse_chat_id(raw: str) -> int:
    """Parse a chat ID from a URL path segment.

    Raises:
        MalformedInputError: If the value is not a signed 64-bit integer.
    """
    if not isinstance(raw, str) or not CHAT_ID_PATTERN.fullmatch(raw):
        raise MalformedInputError(f"Invalid chat id {raw!r}")

    chat_id = int(raw)
    if not CHAT_ID_MIN <= chat_id <= CHAT_ID_MAX:
        raise MalformedInputError(f"Chat id {raw!r} out of range")
    return chat_id


class AlertRelayService:
    """Turns webhook calls into Telegram messages.

    Stateless apart from its collaborators, so one instance serves all
    concurrent requests.
    """

    def __init__(self, composer: MessageComposer, delivery: DeliveryAdapter) -> None:
        """Initialize the service.

        Args:
            composer: Message composer.
            delivery: Delivery adapter.
        """
        self._composer = composer
        self._delivery = delivery

    async def handle_ping(self, chat_id: int) -> DeliveryResult:
        """Send a fixed test message to a chat."""
        logger.info("Bot test: %d", chat_id)
        message = ComposedMessage(text=PING_TEXT.format(chat_id=chat_id))
        return await self._delivery.deliver(chat_id, message, kind="ping", notify_failure=False)

    async def handle_alert(self, chat_id: int, raw_payload: bytes) -> DeliveryResult:
        """Compose and deliver the message for one webhook payload.

        Args:
            chat_id: Target chat ID.
            raw_payload: Raw webhook body.

        Returns:
            DeliveryResult of the single delivery attempt.

        Raises:
            InvalidPayloadError: If the body is not a JSON object.
            TemplateRenderError: If the configured template fails.
        """
        logger.info("Bot alert post: %d", chat_id)

        group = AlertGroup.from_json(raw_payload)
        metrics.ALERTS_RECEIVED.labels(status=group.status or "unknown").inc()
        logger.debug("Alert: %s", group)

        message = self._composer.compose(group)
        logger.debug("Message: %s", message.text)

        return await self._delivery.deliver(chat_id, message)
