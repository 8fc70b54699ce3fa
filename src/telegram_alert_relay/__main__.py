"""CLI entry point for Telegram Alert Relay.

Usage:
    python -m telegram_alert_relay [options]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import logging.config
import sys
from typing import TYPE_CHECKING, NoReturn

from pydantic import ValidationError

from telegram_alert_relay import __version__
from telegram_alert_relay.alerter.delivery import DeliveryAdapter
from telegram_alert_relay.alerter.formatter import (
    MessageComposer,
    TemplateLoadError,
    load_template,
)
from telegram_alert_relay.config import Settings, clear_settings_cache, get_settings
from telegram_alert_relay.server import RelayServer
from telegram_alert_relay.service import AlertRelayService
from telegram_alert_relay.shutdown import GracefulShutdown
from telegram_alert_relay.telegram.client import TelegramApiError, TelegramClient
from telegram_alert_relay.telegram.listener import InboundEventListener
from telegram_alert_relay.telegram.updates import ListenerTransportError

if TYPE_CHECKING:
    import jinja2

APP_NAME = "Telegram Alert Relay"
APP_VERSION = __version__

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def parse_listen_address(value: str) -> tuple[str, int]:
    """Parse a ``[HOST]:PORT`` listen address.

    An empty host binds all interfaces.
    """
    host, sep, port = value.rpartition(":")
    if not sep:
        raise argparse.ArgumentTypeError(f"invalid listen address {value!r}, expected HOST:PORT")
    try:
        port_number = int(port)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid port in listen address {value!r}") from e
    if not 1 <= port_number <= 65535:
        raise argparse.ArgumentTypeError(f"port out of range in listen address {value!r}")
    return host.strip("[]") or "0.0.0.0", port_number


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        prog="telegram-alert-relay",
        description="Relay Alertmanager webhook notifications to Telegram chats.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m telegram_alert_relay                        Run the relay
  python -m telegram_alert_relay --config-check         Validate config and exit
  python -m telegram_alert_relay -l :9087 -t alert.j2   Custom address and template
  python -m telegram_alert_relay --log-level DEBUG      Enable debug logging
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {APP_VERSION}",
    )

    parser.add_argument(
        "--config-check",
        action="store_true",
        help="Validate configuration and template, then exit",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level (default: from settings)",
    )

    parser.add_argument(
        "-l",
        "--listen",
        type=parse_listen_address,
        default=None,
        metavar="HOST:PORT",
        help="Override listen address (default: from settings)",
    )

    parser.add_argument(
        "-t",
        "--template",
        default=None,
        metavar="PATH",
        help="Override message template file (default: from settings)",
    )

    return parser


def configure_logging(level: str) -> None:
    """Configure logging for the application.

    Args:
        level: Logging level string (DEBUG, INFO, etc.)
    """
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "detailed" if level == "DEBUG" else "standard",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        # httpx logs request URLs, which embed the bot token
        "loggers": {
            "httpx": {"level": "WARNING"},
            "httpcore": {"level": "WARNING"},
            "aiohttp.access": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(config)


def print_config_summary(settings: Settings) -> None:
    """Print a summary of the configuration.

    Args:
        settings: Application settings.
    """
    summary = settings.redacted_summary()
    print(f"{APP_NAME} v{APP_VERSION}")
    print("Configuration:")
    print(f"  Bot Token: {summary['bot_token']}")
    print(f"  API URL: {summary['api_url']}")
    print(f"  Listen: {summary['listen']}")
    print(f"  Template: {summary['template_path']}")
    print(f"  Poll Timeout: {summary['poll_timeout']}s")
    print(f"  Log Level: {summary['log_level']}")
    print()


def validate_config() -> Settings | None:
    """Validate and load configuration.

    Returns:
        Settings instance if valid, None if invalid.
    """
    try:
        clear_settings_cache()
        return get_settings()
    except ValidationError as e:
        print("Configuration validation failed:", file=sys.stderr)
        for error in e.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            msg = error["msg"]
            print(f"  {field}: {msg}", file=sys.stderr)
        return None


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Return settings with command line overrides applied."""
    updates: dict[str, object] = {}
    if args.log_level:
        updates["log_level"] = args.log_level
    if args.listen:
        updates["listen_host"], updates["listen_port"] = args.listen
    if args.template:
        updates["template_path"] = args.template
    return settings.model_copy(update=updates) if updates else settings


def prepare_template(settings: Settings) -> jinja2.Template | None:
    """Load the configured message template, if any.

    Raises:
        TemplateLoadError: If the template cannot be loaded.
    """
    if not settings.template_path:
        return None
    return load_template(settings.template_path)


def run_config_check(settings: Settings) -> int:
    """Run configuration check and exit.

    Args:
        settings: Validated settings.

    Returns:
        Exit code.
    """
    print("Configuration is valid!")
    print()
    print_config_summary(settings)

    try:
        template = prepare_template(settings)
    except TemplateLoadError as e:
        print(f"Template check failed: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    print(f"  Template: {'loaded' if template is not None else 'built-in layout'}")
    print()
    print("All checks passed. Ready to run.")
    return EXIT_SUCCESS


async def run_relay(settings: Settings, template: jinja2.Template | None) -> int:
    """Run the HTTP server and the inbound event listener until shutdown.

    Args:
        settings: Application settings.
        template: Optional compiled message template.

    Returns:
        Exit code.
    """
    logger = logging.getLogger(__name__)

    client = TelegramClient(
        settings.telegram.bot_token.get_secret_value(),
        api_url=settings.telegram.api_url,
    )

    try:
        identity = await client.get_me()
    except TelegramApiError as e:
        logger.error("Bot authorization failed: %s", e)
        return EXIT_CONFIG_ERROR
    logger.info("Authorized on account %s", identity.username)

    composer = MessageComposer(template)
    logger.info(
        "Composing messages with %s",
        "custom template" if composer.uses_template else "built-in layout",
    )
    service = AlertRelayService(composer, DeliveryAdapter(client))
    listener = InboundEventListener(
        client,
        identity.username,
        poll_timeout=settings.telegram.poll_timeout,
    )
    server = RelayServer(
        service,
        host=settings.listen_host,
        port=settings.listen_port,
        bot_username=identity.username,
        listener=listener,
    )

    try:
        async with GracefulShutdown() as shutdown:
            await listener.start()
            shutdown.register_cleanup(listener.stop)

            await server.start()
            shutdown.register_cleanup(server.stop)

            logger.info("Relay running. Press Ctrl+C to stop.")
            await shutdown.wait()
            logger.info("Shutdown signal received, stopping relay...")

        return EXIT_SUCCESS
    except ListenerTransportError as e:
        logger.error("%s", e)
        return EXIT_ERROR
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.exception("Relay failed: %s", e)
        return EXIT_ERROR


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    settings = validate_config()
    if settings is None:
        sys.exit(EXIT_CONFIG_ERROR)
    settings = apply_overrides(settings, args)

    configure_logging(settings.log_level)

    if args.config_check:
        sys.exit(run_config_check(settings))

    try:
        template = prepare_template(settings)
    except TemplateLoadError as e:
        logging.getLogger(__name__).error("%s", e)
        sys.exit(EXIT_CONFIG_ERROR)

    print_config_summary(settings)

    exit_code = asyncio.run(run_relay(settings, template))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
