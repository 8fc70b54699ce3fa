"""Listener announcing chat IDs to groups the bot joins.

Operators add the bot to a group and read the group's numeric ID from the
announcement, then use it in the Alertmanager webhook URL.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from telegram_alert_relay import metrics
from telegram_alert_relay.telegram.client import TelegramApiError, TelegramClient
from telegram_alert_relay.telegram.models import InboundEvent
from telegram_alert_relay.telegram.updates import (
    DEFAULT_POLL_TIMEOUT,
    DEFAULT_RETRY_DELAY,
    UpdatePoller,
)

logger = logging.getLogger(__name__)

ANNOUNCEMENT_TEXT = "Chat id is '{chat_id}'"


class ListenerState(Enum):
    """Listener states."""

    IDLE = "idle"
    ANNOUNCING = "announcing"


@dataclass
class ListenerStats:
    """Statistics about consumed events."""

    events_received: int = 0
    announcements_sent: int = 0
    announcement_failures: int = 0


class InboundEventListener:
    """Single worker consuming inbound Telegram events.

    Reacts to the bot being added to a group by posting the group's chat ID
    into it. Every other event is ignored. A failed announcement is logged
    and never stops the worker.

    Example:
        >>> listener = InboundEventListener(client, bot_username="relay_bot")
        >>> await listener.start()  # establishes the update stream
        >>> ...
        >>> await listener.stop()
    """

    def __init__(
        self,
        client: TelegramClient,
        bot_username: str,
        *,
        queue: asyncio.Queue[InboundEvent] | None = None,
        poll_timeout: int = DEFAULT_POLL_TIMEOUT,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ) -> None:
        """Initialize the listener.

        Args:
            client: Telegram API client used for announcements and polling.
            bot_username: Username of the bot itself.
            queue: Event queue, a fresh unbounded one if omitted.
            poll_timeout: Long-poll timeout in seconds.
            retry_delay: Seconds between failed polls.
        """
        self._client = client
        self._bot_username = bot_username
        self._queue: asyncio.Queue[InboundEvent] = queue if queue is not None else asyncio.Queue()
        self._poller = UpdatePoller(
            client,
            self._queue,
            poll_timeout=poll_timeout,
            retry_delay=retry_delay,
        )

        self._state = ListenerState.IDLE
        self._stats = ListenerStats()
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> ListenerState:
        """Current listener state."""
        return self._state

    @property
    def stats(self) -> ListenerStats:
        """Listener statistics."""
        return self._stats

    @property
    def is_running(self) -> bool:
        """Return True if the worker is running."""
        return self._running

    def is_self_added(self, event: InboundEvent) -> bool:
        """Return True if the event reports the bot joining a group."""
        return event.is_group and self._bot_username in event.new_member_usernames

    async def handle_event(self, event: InboundEvent) -> None:
        """Process a single inbound event."""
        self._stats.events_received += 1
        metrics.LISTENER_EVENTS.inc()

        if event.chat_id is None or not self.is_self_added(event):
            logger.debug("Ignoring update %d", event.update_id)
            return

        self._state = ListenerState.ANNOUNCING
        try:
            await self._client.send_message(
                event.chat_id,
                ANNOUNCEMENT_TEXT.format(chat_id=event.chat_id),
            )
        except TelegramApiError as e:
            self._stats.announcement_failures += 1
            metrics.record_send("announcement", ok=False)
            logger.warning("Failed to announce chat id to %d: %s", event.chat_id, e)
        else:
            self._stats.announcements_sent += 1
            metrics.record_send("announcement", ok=True)
            logger.info("Announced chat id to group %d", event.chat_id)
        finally:
            self._state = ListenerState.IDLE

    async def _consume_loop(self) -> None:
        """Drain the event queue until stopped."""
        while self._running:
            event = await self._queue.get()
            try:
                await self.handle_event(event)
            except Exception as e:
                logger.error("Error handling update %d: %s", event.update_id, e)
            finally:
                self._queue.task_done()

    async def start(self) -> None:
        """Establish the update stream and start consuming it.

        Raises:
            ListenerTransportError: If the update stream cannot be established.
        """
        if self._running:
            logger.warning("Listener already running")
            return

        await self._poller.establish()

        self._running = True
        self._task = asyncio.create_task(self._consume_loop())
        await self._poller.start()
        logger.info("Inbound event listener started for @%s", self._bot_username)

    async def stop(self) -> None:
        """Stop polling and consuming."""
        if not self._running:
            return

        self._running = False
        await self._poller.stop()

        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

        self._state = ListenerState.IDLE
        logger.info("Inbound event listener stopped")

    async def __aenter__(self) -> InboundEventListener:
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.stop()
