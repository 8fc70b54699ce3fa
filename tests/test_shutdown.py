"""Tests for the graceful shutdown handler."""

from __future__ import annotations

import asyncio
import signal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from telegram_alert_relay.shutdown import SHUTDOWN_SIGNALS, GracefulShutdown


class TestRequestShutdown:
    """Tests for programmatic shutdown requests."""

    async def test_initial_state(self) -> None:
        """Should start in non-shutdown state."""
        assert GracefulShutdown().is_shutdown_requested is False

    async def test_request_shutdown_sets_flag(self) -> None:
        """Should set shutdown requested flag."""
        shutdown = GracefulShutdown()
        shutdown.request_shutdown()
        assert shutdown.is_shutdown_requested is True

    async def test_request_shutdown_idempotent(self) -> None:
        """Multiple requests should be idempotent."""
        shutdown = GracefulShutdown()
        shutdown.request_shutdown()
        shutdown.request_shutdown()
        assert shutdown.is_shutdown_requested is True

    async def test_wait_blocks_until_shutdown(self) -> None:
        """wait() should return once shutdown is requested."""
        shutdown = GracefulShutdown()

        waiter = asyncio.create_task(shutdown.wait())
        await asyncio.sleep(0.01)
        assert not waiter.done()

        shutdown.request_shutdown()
        await asyncio.wait_for(waiter, timeout=1.0)


class TestSignalHandlers:
    """Tests for signal handler installation and removal."""

    async def test_unix_signal_handler_installed(self) -> None:
        """On Unix, should install loop signal handlers."""
        shutdown = GracefulShutdown()

        with (
            patch("sys.platform", "linux"),
            patch.object(asyncio.get_running_loop(), "add_signal_handler") as mock_add,
        ):
            shutdown.install_signal_handlers()

        assert mock_add.call_count == len(SHUTDOWN_SIGNALS)
        shutdown.remove_signal_handlers()

    async def test_windows_signal_handler_installed(self) -> None:
        """On Windows, should install signal.signal handlers."""
        shutdown = GracefulShutdown()

        with patch("sys.platform", "win32"), patch("signal.signal") as mock_signal:
            shutdown.install_signal_handlers()
            assert mock_signal.call_count == len(SHUTDOWN_SIGNALS)
            shutdown.remove_signal_handlers()

    async def test_first_signal_sets_shutdown_event(self) -> None:
        """First signal should request shutdown."""
        shutdown = GracefulShutdown()

        shutdown._handle_signal(signal.SIGTERM)

        assert shutdown.is_shutdown_requested is True

    async def test_second_signal_force_exits(self) -> None:
        """Second signal should exit immediately."""
        shutdown = GracefulShutdown()
        shutdown._handle_signal(signal.SIGINT)

        with pytest.raises(SystemExit) as exc_info:
            shutdown._handle_signal(signal.SIGINT)

        assert exc_info.value.code == 128 + signal.SIGINT.value


class TestCleanupCallbacks:
    """Tests for cleanup callbacks."""

    async def test_run_sync_and_async_callbacks(self) -> None:
        """Should run both sync and async callbacks."""
        shutdown = GracefulShutdown()
        sync_callback = MagicMock(return_value=None)
        async_callback = AsyncMock()

        shutdown.register_cleanup(sync_callback)
        shutdown.register_cleanup(async_callback)
        await shutdown.run_cleanup_callbacks()

        sync_callback.assert_called_once()
        async_callback.assert_awaited_once()

    async def test_reverse_order(self) -> None:
        """Callbacks should run in reverse registration order."""
        shutdown = GracefulShutdown()
        order: list[str] = []

        shutdown.register_cleanup(lambda: order.append("listener"))
        shutdown.register_cleanup(lambda: order.append("server"))
        await shutdown.run_cleanup_callbacks()

        assert order == ["server", "listener"]

    async def test_failing_callback_does_not_stop_others(self) -> None:
        """A failing callback should be logged and the rest still run."""
        shutdown = GracefulShutdown()
        after = MagicMock(return_value=None)

        shutdown.register_cleanup(after)
        shutdown.register_cleanup(MagicMock(side_effect=RuntimeError("boom")))
        await shutdown.run_cleanup_callbacks()

        after.assert_called_once()

    async def test_context_manager_runs_cleanup(self) -> None:
        """Leaving the context should run cleanup callbacks."""
        callback = AsyncMock()

        async with GracefulShutdown() as shutdown:
            shutdown.register_cleanup(callback)
            shutdown.request_shutdown()
            await shutdown.wait()

        callback.assert_awaited_once()
