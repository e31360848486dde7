"""
=============================================================================
MAIN HTTP SERVER
=============================================================================

The orchestrator that ties the components together.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ┌─────────────────┐                          │
    │                        │   HTTPServer    │                          │
    │                        │ (Orchestrator)  │                          │
    │                        └────────┬────────┘                          │
    │                                 │                                    │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │ SocketServer │    │    Router    │    │ FileStorage  │        │
    │    │  or Async-   │    │ (Dispatching)│    │ (/files/*)   │        │
    │    │ SocketServer │    └──────────────┘    └──────────────┘        │
    │    └──────────────┘                                                 │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. ACCEPT      Socket server accepts the TCP connection
    2. ISOLATE     Dedicated thread (or asyncio task) per connection
    3. READ        Parser pulls the request line, headers, body
    4. ROUTE       Router picks the handler, or answers 404
    5. RESPOND     Exactly one encoded response is written
    6. CLOSE       Every connection is closed after its response
    7. LOG         One access log line per connection

A request that cannot be read (malformed, oversized, truncated, silent
past the read deadline) is answered 404. A handler that blows up is
answered 500. Neither ever reaches another connection.

=============================================================================
"""

import asyncio
import logging
import socket
import threading
import time
from typing import Optional

from .config import ServerConfig
from .core import AsyncSocketServer, Connection, SocketServer
from .core.connection import new_connection_id
from .handlers import register_routes
from .http import (
    HTTPParseError,
    HTTPRequest,
    HTTPResponse,
    RequestParser,
    Router,
    internal_error,
    not_found,
    read_request_async,
)
from .log import AccessLog, log_access, setup_logging
from .storage import FileStorage


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    HTTP/1.1 server for the fixed route table in minihttp.handlers.

    Usage:
        server = HTTPServer(ServerConfig(directory="/tmp/data"))
        server.run()  # Blocks until Ctrl+C or shutdown()

    From another thread (tests):
        thread = threading.Thread(target=server.run, daemon=True)
        thread.start()
        server.wait_until_ready(5)
        ... connect to ("127.0.0.1", server.bound_port) ...
        server.shutdown()
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        """
        Args:
            config: Server configuration. Defaults are used if not provided.

        Raises:
            ValueError: Invalid configuration or missing directory.
        """
        self.config = config or ServerConfig()
        self.config.validate()  # Fail-fast on invalid config

        # ─────────────────────────────────────────────────────────────────
        # APPLICATION COMPONENTS
        # ─────────────────────────────────────────────────────────────────

        self.storage = FileStorage(self.config.directory)
        self._router = register_routes(Router(), self.storage)

        # ─────────────────────────────────────────────────────────────────
        # NETWORKING
        # ─────────────────────────────────────────────────────────────────

        if self.config.concurrency == "async":
            self._socket_server = AsyncSocketServer(self.config)
        else:
            self._socket_server = SocketServer(self.config)

        self._running = False

    @property
    def router(self) -> Router:
        return self._router

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def bound_port(self) -> Optional[int]:
        """Actual listening port once the server is up."""
        return self._socket_server.bound_port

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the server is accepting connections."""
        return self._socket_server.wait_until_ready(timeout)

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self):
        """
        Start the server (blocking).

        Raises:
            OSError: If the listening address cannot be bound.
        """
        self._running = True
        setup_logging(self.config.log_level)

        logger.info(
            f"Starting HTTP server on {self.config.host}:{self.config.port} "
            f"({self.config.concurrency} mode), serving {self.storage.root}"
        )
        for route in self._router.routes:
            logger.debug(f"  {route.method.value:<5} {route.path}")

        if self.config.concurrency == "async":
            handler = self._process_stream
        else:
            handler = self._handle_connection

        try:
            self._socket_server.start(handler)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._running = False
            logger.info("Server stopped")

    def shutdown(self):
        """Stop accepting connections. In-flight connections finish on their own."""
        self._socket_server.shutdown()

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def dispatch(self, request: HTTPRequest) -> HTTPResponse:
        """
        Route a parsed request to its handler.

        Storage failures are already mapped to 500 by the router; anything
        else a handler raises is logged and answered 500 here.
        """
        try:
            return self._router.handle(request)
        except Exception as e:
            logger.exception(f"Handler error on {request.method.value} {request.path}: {e}")
            return internal_error()

    def _new_parser(self) -> RequestParser:
        return RequestParser(
            max_line_length=self.config.max_line_length,
            max_body_size=self.config.max_body_size,
            skip_malformed_headers=self.config.skip_malformed_headers,
            max_headers=self.config.max_headers,
        )

    def _log_access(
        self,
        conn_id: str,
        client_ip: str,
        request: Optional[HTTPRequest],
        response: HTTPResponse,
        started: float,
    ):
        duration_ms = (time.perf_counter() - started) * 1000
        entry = AccessLog.create(conn_id, client_ip, request, response, duration_ms)
        log_access(entry, self.config.log_format)

    # ─────────────────────────────────────────────────────────────────────
    # THREADED MODE
    # ─────────────────────────────────────────────────────────────────────

    def _handle_connection(self, conn: Connection):
        """Called on the accept thread: hand the connection its own thread."""
        thread = threading.Thread(
            target=self._process_connection,
            args=(conn,),
            name=f"conn-{conn.id}",
            daemon=True,
        )
        thread.start()

    def _process_connection(self, conn: Connection):
        """
        Serve one connection (runs in its own thread).

            read ─► dispatch ─► send ─► close ─► access log
        """
        started = time.perf_counter()
        request: Optional[HTTPRequest] = None
        response = not_found()

        try:
            with conn:  # Context manager ensures connection is closed
                try:
                    request = conn.read_request()
                except HTTPParseError as e:
                    logger.debug(f"[{conn.id}] Unreadable request: {e}")
                except socket.timeout:
                    logger.debug(f"[{conn.id}] Read deadline passed after {conn.age:.1f}s")
                except OSError as e:
                    logger.debug(f"[{conn.id}] Read failed: {e}")
                else:
                    response = self.dispatch(request)

                conn.send_response(response.to_bytes())
        except Exception as e:
            logger.exception(f"[{conn.id}] Connection error: {e}")
            return

        self._log_access(conn.id, conn.client_ip, request, response, started)

    # ─────────────────────────────────────────────────────────────────────
    # ASYNC MODE
    # ─────────────────────────────────────────────────────────────────────

    async def _process_stream(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        """Serve one connection (runs as its own asyncio task)."""
        started = time.perf_counter()
        conn_id = new_connection_id()
        peer = writer.get_extra_info("peername")
        client_ip = str(peer[0]) if peer else ""
        request: Optional[HTTPRequest] = None
        response = not_found()

        try:
            try:
                request = await asyncio.wait_for(
                    read_request_async(reader, self._new_parser()),
                    timeout=self.config.timeout,
                )
            except HTTPParseError as e:
                logger.debug(f"[{conn_id}] Unreadable request: {e}")
            except asyncio.TimeoutError:
                logger.debug(f"[{conn_id}] Read deadline passed")
            except OSError as e:
                logger.debug(f"[{conn_id}] Read failed: {e}")
            else:
                # Handlers do blocking file I/O
                loop = asyncio.get_running_loop()
                response = await loop.run_in_executor(None, self.dispatch, request)

            try:
                writer.write(response.to_bytes())
                await writer.drain()
            except OSError as e:
                logger.warning(f"[{conn_id}] Send failed: {e}")
        except Exception as e:
            logger.exception(f"[{conn_id}] Connection error: {e}")
            return
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass  # Peer already gone

        self._log_access(conn_id, client_ip, request, response, started)
