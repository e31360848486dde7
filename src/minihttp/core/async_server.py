"""
=============================================================================
ASYNCIO SOCKET SERVER
=============================================================================

Event-loop alternative to the threaded SocketServer:

    SocketServer        one OS thread per connection, blocking reads
    AsyncSocketServer   one asyncio task per connection, single loop thread

Both give the same per-connection isolation: a slow or silent client only
stalls its own task. Handlers still do blocking file I/O, so HTTPServer
runs them in the loop's default executor.

=============================================================================
STOPPING
=============================================================================

The loop waits on an asyncio.Event. shutdown() sets it through
call_soon_threadsafe(), so it may be called from any thread, and from the
SIGINT/SIGTERM handlers when the server owns the main thread.

=============================================================================
"""

import asyncio
import signal
import logging
import threading
from typing import Awaitable, Callable, Optional

from ..config import ServerConfig


logger = logging.getLogger(__name__)

StreamHandler = Callable[[asyncio.StreamReader, asyncio.StreamWriter], Awaitable[None]]


class AsyncSocketServer:
    """
    TCP server on asyncio.start_server().

    Usage:
        async def handle_stream(reader, writer):
            ...

        server = AsyncSocketServer(config)
        server.start(handle_stream)  # Blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._server: Optional[asyncio.AbstractServer] = None
        self._stop: Optional[asyncio.Event] = None
        self._running = False
        self._bound_port: Optional[int] = None
        self._ready = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def bound_port(self) -> Optional[int]:
        return self._bound_port

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._ready.wait(timeout)

    def start(self, connection_handler: StreamHandler):
        """
        Run the event loop until shutdown().

        Raises:
            OSError: If the address cannot be bound.
        """
        asyncio.run(self._serve(connection_handler))

    async def _serve(self, connection_handler: StreamHandler):
        self._loop = asyncio.get_running_loop()
        self._stop = asyncio.Event()

        try:
            # StreamReader.readline() raises once a line outgrows `limit`
            self._server = await asyncio.start_server(
                connection_handler,
                self.config.host,
                self.config.port,
                backlog=self.config.backlog,
                limit=self.config.max_line_length + 2,
                reuse_address=True,
            )
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            raise

        self._bound_port = self._server.sockets[0].getsockname()[1]
        self._running = True
        self._setup_signals()
        self._ready.set()

        logger.info(f"Async server listening on {self.config.host}:{self._bound_port}")

        try:
            async with self._server:
                await self._stop.wait()
        finally:
            self._running = False
            self._ready.clear()
            self._restore_signals()
            logger.info("Async socket server stopped")

    def _setup_signals(self):
        if threading.current_thread() is not threading.main_thread():
            return

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                self._loop.add_signal_handler(sig, self._on_signal, sig)
            except NotImplementedError:
                # Windows event loops
                return

    def _restore_signals(self):
        if threading.current_thread() is not threading.main_thread():
            return

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                self._loop.remove_signal_handler(sig)
            except NotImplementedError:
                return

    def _on_signal(self, sig: signal.Signals):
        logger.info(f"Received {sig.name}, initiating shutdown...")
        self._stop.set()

    def shutdown(self):
        """Stop serving. Safe to call from any thread."""
        logger.info("Shutting down async socket server...")
        if self._loop is not None and self._stop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._stop.set)
