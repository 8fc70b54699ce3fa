"""Tests for the HTTP endpoints."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from aiohttp import web

from telegram_alert_relay.alerter.delivery import DeliveryOutcome, DeliveryResult
from telegram_alert_relay.alerter.formatter import TemplateRenderError
from telegram_alert_relay.alerter.models import InvalidPayloadError
from telegram_alert_relay.server import ALERT_SENT_TEXT, RelayServer
from telegram_alert_relay.telegram.listener import ListenerState, ListenerStats


def _delivered(text: str = "ok") -> DeliveryResult:
    return DeliveryResult(
        outcome=DeliveryOutcome.DELIVERED, chat_id=1, text=text, receipt={"message_id": 1}
    )


def _failed(text: str = "msg") -> DeliveryResult:
    return DeliveryResult(
        outcome=DeliveryOutcome.FAILED,
        chat_id=1,
        text=text,
        diagnostic="Telegram sendMessage failed: 400 Bad Request",
    )


@pytest.fixture
def mock_service() -> MagicMock:
    """Create a mock relay service."""
    service = MagicMock()
    service.handle_ping = AsyncMock(return_value=_delivered("pong text"))
    service.handle_alert = AsyncMock(return_value=_delivered())
    return service


@pytest.fixture
def mock_listener() -> MagicMock:
    """Create a mock listener."""
    listener = MagicMock()
    listener.is_running = True
    listener.state = ListenerState.IDLE
    listener.stats = ListenerStats(events_received=4)
    return listener


@pytest.fixture
def app(mock_service: MagicMock, mock_listener: MagicMock) -> web.Application:
    """Create the aiohttp application."""
    server = RelayServer(mock_service, bot_username="relay_bot", listener=mock_listener)
    return server.create_app()


class TestPingEndpoint:
    """Tests for GET /ping/{chat_id}."""

    @pytest.mark.asyncio
    async def test_success(self, app: web.Application, mock_service: MagicMock) -> None:
        """Test the sent text is echoed back."""
        from aiohttp.test_utils import TestClient, TestServer

        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/ping/-100")
            assert resp.status == 200
            assert await resp.text() == "pong text"

        mock_service.handle_ping.assert_awaited_once_with(-100)

    @pytest.mark.asyncio
    async def test_bad_chat_id(self, app: web.Application, mock_service: MagicMock) -> None:
        """Test a non-numeric chat ID."""
        from aiohttp.test_utils import TestClient, TestServer

        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/ping/abc")
            assert resp.status == 503
            assert "err" in await resp.json()

        mock_service.handle_ping.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_send_failure(self, app: web.Application, mock_service: MagicMock) -> None:
        """Test a failed send returns 400 with the diagnostic."""
        from aiohttp.test_utils import TestClient, TestServer

        mock_service.handle_ping.return_value = _failed()

        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/ping/5")
            assert resp.status == 400

            data = await resp.json()
            assert data["err"] == "Telegram sendMessage failed: 400 Bad Request"
            assert data["message"] is None


class TestAlertEndpoint:
    """Tests for POST /alert/{chat_id}."""

    @pytest.mark.asyncio
    async def test_success(self, app: web.Application, mock_service: MagicMock) -> None:
        """Test a delivered alert."""
        from aiohttp.test_utils import TestClient, TestServer

        async with TestClient(TestServer(app)) as client:
            resp = await client.post("/alert/-100", data=b'{"status": "firing"}')
            assert resp.status == 200
            assert await resp.text() == ALERT_SENT_TEXT

        mock_service.handle_alert.assert_awaited_once_with(-100, b'{"status": "firing"}')

    @pytest.mark.asyncio
    async def test_bad_chat_id(self, app: web.Application, mock_service: MagicMock) -> None:
        """Test a malformed chat ID is rejected before the body is read."""
        from aiohttp.test_utils import TestClient, TestServer

        async with TestClient(TestServer(app)) as client:
            resp = await client.post("/alert/12x", data=b"{}")
            assert resp.status == 503

        mock_service.handle_alert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_payload(self, app: web.Application, mock_service: MagicMock) -> None:
        """Test a body that is not JSON."""
        from aiohttp.test_utils import TestClient, TestServer

        mock_service.handle_alert.side_effect = InvalidPayloadError("Invalid JSON payload")

        async with TestClient(TestServer(app)) as client:
            resp = await client.post("/alert/1", data=b"nope")
            assert resp.status == 400
            assert (await resp.json())["err"] == "Invalid JSON payload"

    @pytest.mark.asyncio
    async def test_template_failure(self, app: web.Application, mock_service: MagicMock) -> None:
        """Test a failing template is a server error."""
        from aiohttp.test_utils import TestClient, TestServer

        mock_service.handle_alert.side_effect = TemplateRenderError("Template rendering failed")

        async with TestClient(TestServer(app)) as client:
            resp = await client.post("/alert/1", data=b"{}")
            assert resp.status == 500

    @pytest.mark.asyncio
    async def test_send_failure(self, app: web.Application, mock_service: MagicMock) -> None:
        """Test a failed delivery reports the attempted text."""
        from aiohttp.test_utils import TestClient, TestServer

        mock_service.handle_alert.return_value = _failed("<b>[FIRING:1]</b>")

        async with TestClient(TestServer(app)) as client:
            resp = await client.post("/alert/1", data=b"{}")
            assert resp.status == 503
            assert await resp.json() == {
                "err": "Telegram sendMessage failed: 400 Bad Request",
                "message": None,
                "srcmsg": "<b>[FIRING:1]</b>",
            }

    @pytest.mark.asyncio
    async def test_wrong_method(self, app: web.Application) -> None:
        """Test GET is not routed for alerts."""
        from aiohttp.test_utils import TestClient, TestServer

        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/alert/1")
            assert resp.status == 405


class TestHealthAndMetrics:
    """Tests for /health and /metrics."""

    @pytest.mark.asyncio
    async def test_health(self, app: web.Application) -> None:
        """Test health reports the bot and listener state."""
        from aiohttp.test_utils import TestClient, TestServer

        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/health")
            assert resp.status == 200
            assert await resp.json() == {
                "status": "ok",
                "bot": "relay_bot",
                "listener": {"running": True, "state": "idle", "events_received": 4},
            }

    @pytest.mark.asyncio
    async def test_health_without_listener(self, mock_service: MagicMock) -> None:
        """Test health without a listener attached."""
        from aiohttp.test_utils import TestClient, TestServer

        app = RelayServer(mock_service).create_app()

        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/health")
            assert await resp.json() == {"status": "ok", "bot": None}

    @pytest.mark.asyncio
    async def test_metrics(self, app: web.Application) -> None:
        """Test Prometheus output includes the relay counters."""
        from aiohttp.test_utils import TestClient, TestServer

        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/metrics")
            assert resp.status == 200
            assert "relay_messages_sent_total" in await resp.text()


class TestServerLifecycle:
    """Tests for starting and stopping the server."""

    @pytest.mark.asyncio
    async def test_start_stop(self, mock_service: MagicMock) -> None:
        """Test the server binds and releases its port."""
        server = RelayServer(mock_service, host="127.0.0.1", port=0)

        await server.start()
        assert server.is_running is True
        await server.stop()
        assert server.is_running is False
