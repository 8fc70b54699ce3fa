"""Tests for the inbound event listener."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from telegram_alert_relay.telegram.client import TelegramApiError
from telegram_alert_relay.telegram.listener import (
    InboundEventListener,
    ListenerState,
)
from telegram_alert_relay.telegram.models import ChatType, InboundEvent
from telegram_alert_relay.telegram.updates import ListenerTransportError

BOT = "relay_bot"


@pytest.fixture
def mock_client() -> MagicMock:
    """Create a mock Telegram client."""
    client = MagicMock()
    client.send_message = AsyncMock(return_value={"message_id": 1})
    client.get_updates = AsyncMock(return_value=[])
    return client


def _event(
    chat_type: ChatType = ChatType.GROUP,
    members: tuple[str, ...] = (BOT,),
    chat_id: int | None = -4001,
) -> InboundEvent:
    return InboundEvent(
        update_id=1, chat_id=chat_id, chat_type=chat_type, new_member_usernames=members
    )


class TestHandleEvent:
    """Tests for InboundEventListener.handle_event."""

    @pytest.mark.asyncio
    async def test_announces_chat_id(self, mock_client: MagicMock) -> None:
        """Test joining a group posts the group's chat ID."""
        listener = InboundEventListener(mock_client, BOT)

        await listener.handle_event(_event())

        mock_client.send_message.assert_awaited_once_with(-4001, "Chat id is '-4001'")
        assert listener.stats.announcements_sent == 1
        assert listener.state == ListenerState.IDLE

    @pytest.mark.asyncio
    async def test_other_member_added(self, mock_client: MagicMock) -> None:
        """Test someone else joining is ignored."""
        listener = InboundEventListener(mock_client, BOT)

        await listener.handle_event(_event(members=("someone_else",)))

        mock_client.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_username_match_is_exact(self, mock_client: MagicMock) -> None:
        """Test a differently cased username does not match."""
        listener = InboundEventListener(mock_client, BOT)

        await listener.handle_event(_event(members=("Relay_Bot",)))

        mock_client.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_private_chat_ignored(self, mock_client: MagicMock) -> None:
        """Test non-group chats are ignored."""
        listener = InboundEventListener(mock_client, BOT)

        await listener.handle_event(_event(chat_type=ChatType.PRIVATE))

        mock_client.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_event_without_chat_ignored(self, mock_client: MagicMock) -> None:
        """Test updates without a chat are ignored."""
        listener = InboundEventListener(mock_client, BOT)

        await listener.handle_event(InboundEvent(update_id=2))

        mock_client.send_message.assert_not_awaited()
        assert listener.stats.events_received == 1

    @pytest.mark.asyncio
    async def test_failed_announcement_swallowed(self, mock_client: MagicMock) -> None:
        """Test a send failure is counted and does not raise."""
        mock_client.send_message.side_effect = TelegramApiError(
            "sendMessage", "Forbidden", 403
        )
        listener = InboundEventListener(mock_client, BOT)

        await listener.handle_event(_event())

        assert listener.stats.announcement_failures == 1
        assert listener.state == ListenerState.IDLE


class TestListenerLifecycle:
    """Tests for starting and stopping the listener."""

    @pytest.mark.asyncio
    async def test_announces_polled_update(self, mock_client: MagicMock) -> None:
        """Test an update fetched while establishing is announced."""
        update = {
            "update_id": 50,
            "message": {
                "chat": {"id": -77, "type": "group"},
                "new_chat_members": [{"username": BOT}],
            },
        }

        async def poll(offset: int | None = None, timeout: int = 0) -> list[dict[str, object]]:
            if offset is None:
                return [update]
            await asyncio.sleep(10)
            return []

        mock_client.get_updates.side_effect = poll
        listener = InboundEventListener(mock_client, BOT, retry_delay=0)

        async with listener:
            assert listener.is_running is True
            for _ in range(50):
                if mock_client.send_message.await_count:
                    break
                await asyncio.sleep(0.01)

        assert listener.is_running is False
        mock_client.send_message.assert_awaited_once_with(-77, "Chat id is '-77'")

    @pytest.mark.asyncio
    async def test_start_fails_without_stream(self, mock_client: MagicMock) -> None:
        """Test start raises when updates cannot be fetched."""
        mock_client.get_updates.side_effect = TelegramApiError("getUpdates", "Unauthorized", 401)
        listener = InboundEventListener(mock_client, BOT)

        with pytest.raises(ListenerTransportError):
            await listener.start()

        assert listener.is_running is False

    @pytest.mark.asyncio
    async def test_stop_when_not_running(self, mock_client: MagicMock) -> None:
        """Test stop is a no-op before start."""
        listener = InboundEventListener(mock_client, BOT)

        await listener.stop()

        assert listener.is_running is False
