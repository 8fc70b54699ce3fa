"""Long-polling producer of inbound Telegram events."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Any

from telegram_alert_relay.telegram.client import TelegramApiError, TelegramClient
from telegram_alert_relay.telegram.models import InboundEvent

logger = logging.getLogger(__name__)

DEFAULT_POLL_TIMEOUT = 60  # seconds
DEFAULT_RETRY_DELAY = 3.0  # seconds


class ListenerTransportError(Exception):
    """Raised when the update stream cannot be established."""


@dataclass
class PollerStats:
    """Statistics about the update stream."""

    polls: int = 0
    updates_received: int = 0
    poll_errors: int = 0
    malformed_updates: int = 0
    last_error: str | None = None


class UpdatePoller:
    """Feeds Telegram updates into an asyncio queue.

    Polls ``getUpdates`` with a long-poll timeout, advancing the offset past
    every update it hands over. Failures after the stream was established
    are logged and polling resumes after ``retry_delay``.

    Example:
        >>> queue: asyncio.Queue[InboundEvent] = asyncio.Queue()
        >>> poller = UpdatePoller(client, queue)
        >>> await poller.establish()
        >>> await poller.start()
    """

    def __init__(
        self,
        client: TelegramClient,
        queue: asyncio.Queue[InboundEvent],
        *,
        poll_timeout: int = DEFAULT_POLL_TIMEOUT,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ) -> None:
        """Initialize the poller.

        Args:
            client: Telegram API client.
            queue: Queue receiving one InboundEvent per update.
            poll_timeout: Long-poll timeout in seconds.
            retry_delay: Seconds to wait after a failed poll.
        """
        self._client = client
        self._queue = queue
        self._poll_timeout = poll_timeout
        self._retry_delay = retry_delay

        self._offset: int | None = None
        self._stats = PollerStats()
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        """Return True if the poll loop is running."""
        return self._running

    @property
    def offset(self) -> int | None:
        """Next update ID to request."""
        return self._offset

    @property
    def stats(self) -> PollerStats:
        """Poller statistics."""
        return self._stats

    async def establish(self) -> None:
        """Check that updates can be fetched at all.

        Performs one non-blocking poll and queues whatever it returns.

        Raises:
            ListenerTransportError: If the Bot API rejects or cannot serve
                the request.
        """
        try:
            await self.poll_once(timeout=0)
        except TelegramApiError as e:
            raise ListenerTransportError(f"Cannot establish update stream: {e}") from e
        logger.info("Telegram update stream established")

    async def poll_once(self, timeout: int | None = None) -> int:
        """Fetch one batch of updates and queue them.

        Args:
            timeout: Long-poll timeout override.

        Returns:
            Number of updates queued.
        """
        updates = await self._client.get_updates(
            offset=self._offset,
            timeout=self._poll_timeout if timeout is None else timeout,
        )
        self._stats.polls += 1

        for update in updates:
            await self._enqueue(update)

        return len(updates)

    async def _enqueue(self, update: dict[str, Any]) -> None:
        """Queue one update, skipping it if it cannot be read."""
        update_id = update.get("update_id")
        if isinstance(update_id, int) and not isinstance(update_id, bool):
            # Acknowledge the update even if it turns out malformed
            self._offset = update_id + 1
        self._stats.updates_received += 1

        try:
            event = InboundEvent.from_update(update)
        except (AttributeError, TypeError, ValueError) as e:
            self._stats.malformed_updates += 1
            logger.warning("Skipping malformed update %r: %s", update_id, e)
            return

        self._offset = event.update_id + 1
        await self._queue.put(event)

    async def _poll_loop(self) -> None:
        """Poll until stopped."""
        while self._running:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                break
            except TelegramApiError as e:
                self._stats.poll_errors += 1
                self._stats.last_error = str(e)
                logger.warning(
                    "Polling updates failed: %s, retrying in %.1fs", e, self._retry_delay
                )
                await asyncio.sleep(self._retry_delay)
            except Exception as e:
                self._stats.poll_errors += 1
                self._stats.last_error = str(e)
                logger.error("Error in update loop: %s", e)
                await asyncio.sleep(self._retry_delay)

    async def start(self) -> None:
        """Start polling in a background task."""
        if self._running:
            logger.warning("Update poller already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.info("Polling Telegram updates (timeout %ds)", self._poll_timeout)

    async def stop(self) -> None:
        """Stop polling."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        logger.info("Update poller stopped")
