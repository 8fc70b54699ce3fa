"""HTTP endpoints of the relay.

Routes:
    GET  /ping/{chat_id}   send a test message
    POST /alert/{chat_id}  deliver an Alertmanager webhook payload
    GET  /health           liveness and listener state
    GET  /metrics          Prometheus metrics
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from aiohttp import web
from prometheus_client import generate_latest

from telegram_alert_relay.alerter.formatter import TemplateRenderError
from telegram_alert_relay.alerter.models import InvalidPayloadError
from telegram_alert_relay.service import MalformedInputError, parse_chat_id

if TYPE_CHECKING:
    from telegram_alert_relay.service import AlertRelayService
    from telegram_alert_relay.telegram.listener import InboundEventListener

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 9087

ALERT_SENT_TEXT = "telegram msg sent."


class RelayServer:
    """aiohttp server exposing the relay endpoints.

    Example:
        ```python
        server = RelayServer(service, host="0.0.0.0", port=9087)
        await server.start()
        ...
        await server.stop()
        ```
    """

    def __init__(
        self,
        service: AlertRelayService,
        *,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        bot_username: str | None = None,
        listener: InboundEventListener | None = None,
    ) -> None:
        """Initialize the server.

        Args:
            service: Request handling service.
            host: Interface to bind.
            port: Port to listen on.
            bot_username: Bot username reported by /health.
            listener: Inbound event listener reported by /health.
        """
        self._service = service
        self._host = host
        self._port = port
        self._bot_username = bot_username
        self._listener = listener

        self._runner: web.AppRunner | None = None

    @property
    def is_running(self) -> bool:
        """Return True if the server is listening."""
        return self._runner is not None

    def _chat_id_or_error(self, request: web.Request) -> int | web.Response:
        raw = request.match_info["chat_id"]
        try:
            return parse_chat_id(raw)
        except MalformedInputError as e:
            logger.warning("Can't parse chat id: %r", raw)
            return web.json_response({"err": str(e)}, status=503)

    async def _handle_ping(self, request: web.Request) -> web.Response:
        """Handle GET /ping/{chat_id}."""
        chat_id = self._chat_id_or_error(request)
        if isinstance(chat_id, web.Response):
            return chat_id

        result = await self._service.handle_ping(chat_id)
        if result.delivered:
            return web.Response(text=result.text)

        return web.json_response(
            {"err": result.diagnostic, "message": result.receipt},
            status=400,
        )

    async def _handle_alert(self, request: web.Request) -> web.Response:
        """Handle POST /alert/{chat_id}."""
        chat_id = self._chat_id_or_error(request)
        if isinstance(chat_id, web.Response):
            return chat_id

        body = await request.read()
        try:
            result = await self._service.handle_alert(chat_id, body)
        except InvalidPayloadError as e:
            logger.warning("Rejected alert payload for chat %d: %s", chat_id, e)
            return web.json_response({"err": str(e)}, status=400)
        except TemplateRenderError as e:
            logger.error("Template failed for chat %d: %s", chat_id, e)
            return web.json_response({"err": str(e)}, status=500)

        if result.delivered:
            return web.Response(text=ALERT_SENT_TEXT)

        return web.json_response(
            {"err": result.diagnostic, "message": result.receipt, "srcmsg": result.text},
            status=503,
        )

    async def _handle_health(self, _request: web.Request) -> web.Response:
        """Handle GET /health."""
        body: dict[str, Any] = {"status": "ok", "bot": self._bot_username}
        if self._listener is not None:
            body["listener"] = {
                "running": self._listener.is_running,
                "state": self._listener.state.value,
                "events_received": self._listener.stats.events_received,
            }
        return web.json_response(body)

    async def _handle_metrics(self, _request: web.Request) -> web.Response:
        """Handle GET /metrics (Prometheus format)."""
        return web.Response(
            body=generate_latest(),
            content_type="text/plain",
            charset="utf-8",
        )

    def create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application()
        app.router.add_get("/ping/{chat_id}", self._handle_ping)
        app.router.add_post("/alert/{chat_id}", self._handle_alert)
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/metrics", self._handle_metrics)
        return app

    async def start(self) -> None:
        """Start listening for HTTP requests."""
        if self._runner:
            logger.warning("HTTP server already running")
            return

        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()

        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()

        logger.info("HTTP server listening on %s:%d", self._host, self._port)

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            logger.info("HTTP server stopped")
