"""Telegram Bot API client."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from telegram_alert_relay.telegram.models import BotIdentity

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.telegram.org"
DEFAULT_TIMEOUT = 10.0


class TelegramApiError(Exception):
    """Raised when a Bot API call fails.

    Covers both error replies from the API and transport failures, in
    which case ``error_code`` is None.
    """

    def __init__(self, method: str, description: str, error_code: int | None = None) -> None:
        self.method = method
        self.description = description
        self.error_code = error_code
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.error_code is None:
            return f"Telegram {self.method} failed: {self.description}"
        return f"Telegram {self.method} failed: {self.error_code} {self.description}"


class TelegramClient:
    """Minimal asynchronous Telegram Bot API client.

    Only the calls the relay needs are implemented: ``getMe``,
    ``sendMessage`` and ``getUpdates``. Every call makes exactly one HTTP
    request; retrying is left to the caller.
    """

    def __init__(
        self,
        bot_token: str,
        *,
        api_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the client.

        Args:
            bot_token: Telegram bot token.
            api_url: Bot API base URL.
            timeout: HTTP timeout in seconds for regular calls.
        """
        self.bot_token = bot_token
        self.timeout = timeout
        self._base_url = f"{api_url.rstrip('/')}/bot{bot_token}"

    async def _call(
        self,
        method: str,
        payload: dict[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> Any:
        """Invoke a Bot API method and return its ``result`` field."""
        url = f"{self._base_url}/{method}"
        try:
            async with httpx.AsyncClient(timeout=timeout or self.timeout) as client:
                response = await client.post(url, json=payload or {})
                result = response.json()
        except httpx.HTTPError as e:
            # The URL embeds the token, keep it out of the error text
            raise TelegramApiError(method, type(e).__name__) from e
        except ValueError as e:
            raise TelegramApiError(method, f"Invalid response: {e}") from e

        if not isinstance(result, dict):
            raise TelegramApiError(method, "Invalid response: not a JSON object")

        if not result.get("ok"):
            raise TelegramApiError(
                method,
                str(result.get("description", "Unknown error")),
                error_code=result.get("error_code"),
            )

        return result.get("result")

    async def get_me(self) -> BotIdentity:
        """Return the identity of the bot owning the token."""
        result = await self._call("getMe")
        identity = BotIdentity.from_dict(result or {})
        logger.debug("Bot identity: %s (%d)", identity.username, identity.id)
        return identity

    async def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        parse_mode: str | None = None,
        disable_web_page_preview: bool = False,
    ) -> dict[str, Any]:
        """Send a text message to a chat.

        Args:
            chat_id: Target chat ID.
            text: Message text.
            parse_mode: Optional parse mode, e.g. ``"HTML"``.
            disable_web_page_preview: Suppress link previews.

        Returns:
            The sent Telegram message object.

        Raises:
            TelegramApiError: If the message was not accepted.
        """
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        if disable_web_page_preview:
            payload["link_preview_options"] = {"is_disabled": True}

        result = await self._call("sendMessage", payload)
        logger.debug("Telegram message delivered to chat %d", chat_id)
        return result if isinstance(result, dict) else {}

    async def get_updates(
        self,
        *,
        offset: int | None = None,
        timeout: int = 0,
    ) -> list[dict[str, Any]]:
        """Long-poll for incoming updates.

        Args:
            offset: First update ID to return.
            timeout: Long-poll timeout in seconds; 0 returns immediately.

        Returns:
            List of raw update objects.
        """
        payload: dict[str, Any] = {"timeout": timeout}
        if offset is not None:
            payload["offset"] = offset

        # Leave the HTTP timeout some headroom over the long-poll timeout
        result = await self._call("getUpdates", payload, timeout=timeout + self.timeout)
        return [u for u in result or [] if isinstance(u, dict)]
