"""Telegram Alert Relay - Alertmanager webhooks delivered to Telegram chats."""

__version__ = "0.1.0"
