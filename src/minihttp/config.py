"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the server, as a typed dataclass.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m minihttp --directory /tmp/data --port 4221      │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── HTTP_DIRECTORY=/tmp/data python -m minihttp               │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    └─────────────────────────────────────────────────────────────────────┘

The served directory is the only piece of configuration shared by every
connection, and it is read-only once the server starts.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional

CONCURRENCY_MODES = ("thread", "async")
LOG_FORMATS = ("text", "json")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerConfig:
    """
    Configuration for the HTTP server.

    NETWORK      host, port, backlog, buffer_size, timeout
    HTTP         max_line_length, max_body_size, skip_malformed_headers,
                 max_headers
    FILES        directory
    CONCURRENCY  concurrency ("thread" or "async")
    LOGGING      log_level, log_format
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"

    port: int = 4221
    """Port to listen on. 0 lets the OS pick a free one."""

    backlog: int = 128
    """Maximum number of queued, not yet accepted connections."""

    buffer_size: int = 8192
    """Read buffer size per connection, in bytes."""

    timeout: Optional[float] = 10.0
    """
    Request read deadline in seconds.

    A client that does not deliver its request within this window gets a
    404 and the connection is closed. None disables the timeout, which lets
    a silent client hold its thread forever.
    """

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    max_line_length: int = 8192
    """Longest accepted request line or header line, in bytes."""

    max_body_size: int = 10 * 1024 * 1024  # 10 MB
    """Largest accepted Content-Length for POST /files/*."""

    skip_malformed_headers: bool = True
    """Skip header lines that do not parse instead of rejecting the request."""

    max_headers: int = 100
    """Most header lines accepted per request."""

    # ─────────────────────────────────────────────────────────────────────
    # FILES
    # ─────────────────────────────────────────────────────────────────────

    directory: str = "."
    """Root directory for /files/*. Must exist before the server starts."""

    # ─────────────────────────────────────────────────────────────────────
    # CONCURRENCY
    # ─────────────────────────────────────────────────────────────────────

    concurrency: str = "thread"
    """
    "thread" - one dedicated thread per accepted connection
    "async"  - one asyncio task per connection on a single event loop
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"

    log_format: str = "text"
    """Access log format: 'text' (combined-log style) or 'json'."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        HTTP_HOST         Server host (default: 127.0.0.1)
        HTTP_PORT         Server port (default: 4221)
        HTTP_DIRECTORY    Root for /files/* (default: .)
        HTTP_TIMEOUT      Request read deadline in seconds (default: 10)
        HTTP_CONCURRENCY  thread | async (default: thread)
        HTTP_LOG_LEVEL    Logging level (default: INFO)
        HTTP_LOG_FORMAT   text | json (default: text)
        """
        defaults = cls()
        return cls(
            host=os.getenv("HTTP_HOST", defaults.host),
            port=int(os.getenv("HTTP_PORT", str(defaults.port))),
            directory=os.getenv("HTTP_DIRECTORY", defaults.directory),
            timeout=float(os.getenv("HTTP_TIMEOUT", str(defaults.timeout))),
            concurrency=os.getenv("HTTP_CONCURRENCY", defaults.concurrency),
            log_level=os.getenv("HTTP_LOG_LEVEL", defaults.log_level),
            log_format=os.getenv("HTTP_LOG_FORMAT", defaults.log_format),
        )

    def validate(self) -> None:
        """
        Validate configuration values at startup.

        Raises:
            ValueError: On the first invalid setting.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.max_line_length < 64:
            raise ValueError("max_line_length must be >= 64")

        if self.max_body_size < 0:
            raise ValueError("max_body_size must be >= 0")

        if self.max_headers < 1:
            raise ValueError("max_headers must be >= 1")

        if self.concurrency not in CONCURRENCY_MODES:
            raise ValueError(
                f"Invalid concurrency: {self.concurrency!r}. "
                f"Must be one of {', '.join(CONCURRENCY_MODES)}."
            )

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.log_level!r}")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(
                f"Invalid log format: {self.log_format!r}. "
                f"Must be one of {', '.join(LOG_FORMATS)}."
            )
