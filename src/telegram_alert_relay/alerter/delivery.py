"""Delivery of composed messages to Telegram chats."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from telegram_alert_relay import metrics
from telegram_alert_relay.telegram.client import TelegramApiError

if TYPE_CHECKING:
    from telegram_alert_relay.alerter.models import ComposedMessage
    from telegram_alert_relay.telegram.client import TelegramClient

logger = logging.getLogger(__name__)

FAILURE_NOTICE = "Error sending message, checkout logs"


class DeliveryOutcome(Enum):
    """Outcome of a delivery attempt."""

    DELIVERED = "delivered"
    FAILED = "failed"


@dataclass(frozen=True)
class DeliveryResult:
    """Result of delivering one message.

    Attributes:
        outcome: Whether the message was delivered.
        chat_id: Target chat.
        text: The message text that was sent or attempted.
        receipt: Telegram message object on success.
        diagnostic: Platform error description on failure.
    """

    outcome: DeliveryOutcome
    chat_id: int
    text: str
    receipt: dict[str, Any] | None = None
    diagnostic: str | None = None

    @property
    def delivered(self) -> bool:
        """Return True if the message was delivered."""
        return self.outcome == DeliveryOutcome.DELIVERED


class DeliveryAdapter:
    """Sends composed messages and classifies the result.

    Makes exactly one attempt per message. On failure a short notice is
    sent to the same chat on a best-effort basis so that the chat learns an
    alert went missing.
    """

    def __init__(self, client: TelegramClient, *, failure_notice: str = FAILURE_NOTICE) -> None:
        """Initialize the adapter.

        Args:
            client: Telegram API client.
            failure_notice: Plain text sent after a failed delivery.
        """
        self._client = client
        self._failure_notice = failure_notice

    async def deliver(
        self,
        chat_id: int,
        message: ComposedMessage,
        *,
        kind: str = "alert",
        notify_failure: bool = True,
    ) -> DeliveryResult:
        """Deliver a message to a chat.

        Args:
            chat_id: Target chat ID.
            message: Message to send.
            kind: Message kind, used as a metrics label.
            notify_failure: Send the failure notice if delivery fails.

        Returns:
            DeliveryResult describing the outcome.
        """
        try:
            receipt = await self._client.send_message(
                chat_id,
                message.text,
                parse_mode=message.parse_mode,
                disable_web_page_preview=message.disable_web_page_preview,
            )
        except TelegramApiError as e:
            metrics.record_send(kind, ok=False)
            logger.error("Error sending message to chat %d: %s", chat_id, e)
            if notify_failure:
                await self._send_failure_notice(chat_id)
            return DeliveryResult(
                outcome=DeliveryOutcome.FAILED,
                chat_id=chat_id,
                text=message.text,
                diagnostic=str(e),
            )

        metrics.record_send(kind, ok=True)
        logger.info("Telegram message sent to chat %d", chat_id)
        return DeliveryResult(
            outcome=DeliveryOutcome.DELIVERED,
            chat_id=chat_id,
            text=message.text,
            receipt=receipt,
        )

    async def _send_failure_notice(self, chat_id: int) -> None:
        """Best-effort notice after a failed delivery; errors are only logged."""
        try:
            await self._client.send_message(chat_id, self._failure_notice)
        except TelegramApiError as e:
            metrics.record_send("notice", ok=False)
            logger.warning("Failure notice to chat %d was not delivered: %s", chat_id, e)
        else:
            metrics.record_send("notice", ok=True)
