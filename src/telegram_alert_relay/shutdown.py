"""Signal-driven shutdown for the relay process.

The relay runs until SIGTERM or SIGINT arrives; a second signal exits
immediately.

Usage:
    ```python
    async with GracefulShutdown() as shutdown:
        shutdown.register_cleanup(server.stop)
        shutdown.register_cleanup(listener.stop)
        await shutdown.wait()
    ```
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from collections.abc import Awaitable, Callable
from contextlib import suppress
from types import FrameType
from typing import Any

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)

CleanupCallback = Callable[[], Awaitable[None] | None]


class GracefulShutdown:
    """Waits for a shutdown signal and runs cleanup callbacks.

    Cleanup callbacks run in reverse registration order when the context
    manager exits, so components stop in the opposite order they started.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._original_handlers: dict[signal.Signals, Any] = {}
        self._cleanup_callbacks: list[CleanupCallback] = []
        self._signal_count = 0

    @property
    def is_shutdown_requested(self) -> bool:
        """Return True once shutdown was requested."""
        return self._event.is_set()

    def register_cleanup(self, callback: CleanupCallback) -> None:
        """Register a sync or async callable to run on exit."""
        self._cleanup_callbacks.append(callback)

    def request_shutdown(self) -> None:
        """Request shutdown from application code."""
        if not self._event.is_set():
            logger.info("Shutdown requested")
            self._event.set()

    async def wait(self) -> None:
        """Block until shutdown is requested."""
        await self._event.wait()

    def _handle_signal(self, sig: signal.Signals) -> None:
        self._signal_count += 1
        if self._signal_count > 1:
            logger.warning("Received %s again - forcing exit!", sig.name)
            sys.exit(128 + sig.value)

        logger.info("Received %s - shutting down...", sig.name)
        self._event.set()

    def _handle_signal_sync(self, sig: int, _frame: FrameType | None) -> None:
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._handle_signal, signal.Signals(sig))

    def install_signal_handlers(self) -> None:
        """Trap SIGTERM and SIGINT.

        Uses the event loop's handlers on Unix and ``signal.signal`` on
        Windows, where the loop does not support them.
        """
        self._loop = asyncio.get_running_loop()

        for sig in SHUTDOWN_SIGNALS:
            try:
                if sys.platform == "win32":
                    self._original_handlers[sig] = signal.signal(sig, self._handle_signal_sync)
                else:
                    self._loop.add_signal_handler(sig, self._handle_signal, sig)
            except (ValueError, OSError, RuntimeError) as e:
                logger.warning("Could not install handler for %s: %s", sig.name, e)

    def remove_signal_handlers(self) -> None:
        """Restore the previous signal handling."""
        if sys.platform == "win32":
            for sig, original in self._original_handlers.items():
                with suppress(ValueError, OSError):
                    signal.signal(sig, original)
            self._original_handlers.clear()
        elif self._loop is not None:
            for sig in SHUTDOWN_SIGNALS:
                with suppress(ValueError, OSError, RuntimeError):
                    self._loop.remove_signal_handler(sig)

    async def run_cleanup_callbacks(self) -> None:
        """Run cleanup callbacks, logging rather than raising failures."""
        for callback in reversed(self._cleanup_callbacks):
            try:
                result = callback()
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error("Cleanup callback failed: %s", e)

    async def __aenter__(self) -> GracefulShutdown:
        """Install signal handlers."""
        self.install_signal_handlers()
        return self

    async def __aexit__(self, *_args: Any) -> None:
        """Remove signal handlers and run cleanup."""
        self.remove_signal_handlers()
        await self.run_cleanup_callbacks()
