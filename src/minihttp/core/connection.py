"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps an accepted client socket for the threaded supervisor.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL
=============================================================================

A request may arrive in any number of recv() chunks:

    Client sends:   "GET /echo/hello HTTP/1.1\r\n\r\n"

    Server may see: "GET /ec"  "ho/hello HT"  "TP/1.1\r\n\r\n"

So the socket is wrapped in a DeadlineReader and the parser pulls whole
lines from it with readline(), then exactly Content-Length body bytes with
read(n).

=============================================================================
ONE REQUEST PER CONNECTION
=============================================================================

    accept ─► read request ─► route ─► send response ─► close

Every response carries "Connection: close". There is no keep-alive loop.

=============================================================================
READ DEADLINE
=============================================================================

`timeout` bounds the whole request, not each recv():

    deadline = start of read_request() + timeout

    recv()  settimeout(deadline - now)
    recv()  settimeout(deadline - now)     ← shrinks every call
    ...     deadline passed → socket.timeout

A client that says nothing, or trickles a header every few hundred
milliseconds, runs into the same deadline. The supervisor turns the
socket.timeout into a 404 and closes.

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid

from ..http.request import (
    HTTPRequest,
    RequestParser,
    read_request,
    DEFAULT_MAX_BODY_SIZE,
    DEFAULT_MAX_HEADERS,
    DEFAULT_MAX_LINE_LENGTH,
)

logger = logging.getLogger(__name__)

# Bounds on the post-response drain in close()
DRAIN_TIMEOUT = 0.5
DRAIN_MAX_BYTES = 64 * 1024


class ConnectionState(Enum):
    """Connection lifecycle, for logging and debugging."""

    NEW = "new"                # Just accepted
    READING = "reading"        # Reading the request
    PROCESSING = "processing"  # Handler is running
    WRITING = "writing"        # Sending the response
    CLOSING = "closing"        # Shutdown sequence in progress
    CLOSED = "closed"          # Socket released


def new_connection_id() -> str:
    """Short random id used to correlate log lines for one connection."""
    return str(uuid.uuid4())[:8]


class DeadlineReader:
    """
    Buffered reader over a socket with one deadline for all reads.

    Provides the two calls read_request() needs: readline(limit) and
    read(n). Every recv() gets the time left until `deadline`
    (time.monotonic() based); once it has passed, socket.timeout is raised.
    A deadline of None means reads may block forever.
    """

    def __init__(self, sock: socket.socket, buffer_size: int = 8192):
        self.sock = sock
        self.buffer_size = buffer_size
        self.deadline: Optional[float] = None
        self._buffer = bytearray()
        self._eof = False

    def _fill(self):
        if self.deadline is None:
            self.sock.settimeout(None)
        else:
            remaining = self.deadline - time.monotonic()
            if remaining <= 0:
                raise socket.timeout("Request read deadline exceeded")
            self.sock.settimeout(remaining)

        chunk = self.sock.recv(self.buffer_size)
        if chunk:
            self._buffer += chunk
        else:
            self._eof = True

    def _take(self, n: int) -> bytes:
        data = bytes(self._buffer[:n])
        del self._buffer[:n]
        return data

    def readline(self, limit: int = -1) -> bytes:
        """Up to and including b"\\n", at most `limit` bytes, b"" at EOF."""
        while True:
            end = len(self._buffer) if limit < 0 else min(limit, len(self._buffer))
            newline = self._buffer.find(b"\n", 0, end)
            if newline >= 0:
                return self._take(newline + 1)
            if 0 <= limit <= len(self._buffer) or self._eof:
                return self._take(end)
            self._fill()

    def read(self, n: int) -> bytes:
        """Up to `n` bytes; fewer only at EOF."""
        while len(self._buffer) < n and not self._eof:
            self._fill()
        return self._take(n)


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The accepted client socket.
        address: Client's address tuple, (ip, port) for IPv4.
        id: Unique connection identifier (for logging).
        state: Current lifecycle state.
        created_at: Monotonic timestamp of accept().
    """

    socket: socket.socket
    address: tuple
    id: str = field(default_factory=new_connection_id)
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.monotonic)

    # Configuration (copied from ServerConfig by the socket server)
    buffer_size: int = 8192
    timeout: Optional[float] = 10.0
    max_line_length: int = DEFAULT_MAX_LINE_LENGTH
    max_body_size: int = DEFAULT_MAX_BODY_SIZE
    skip_malformed_headers: bool = True
    max_headers: int = DEFAULT_MAX_HEADERS

    _reader: Optional[DeadlineReader] = field(default=None, repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        self._reader = DeadlineReader(self.socket, self.buffer_size)

    @property
    def client_ip(self) -> str:
        return str(self.address[0]) if self.address else ""

    @property
    def age(self) -> float:
        """Seconds since accept()."""
        return time.monotonic() - self.created_at

    def new_parser(self) -> RequestParser:
        return RequestParser(
            max_line_length=self.max_line_length,
            max_body_size=self.max_body_size,
            skip_malformed_headers=self.skip_malformed_headers,
            max_headers=self.max_headers,
        )

    def read_request(self) -> HTTPRequest:
        """
        Read and parse the single request on this connection.

        Raises:
            HTTPParseError: Malformed, oversized or incomplete request.
            socket.timeout: The request was not complete within `timeout`.
            OSError: The connection broke.
        """
        self.state = ConnectionState.READING
        if self.timeout:
            self._reader.deadline = time.monotonic() + self.timeout

        request = read_request(self._reader, self.new_parser())

        self.state = ConnectionState.PROCESSING
        return request

    def send_response(self, data: bytes) -> bool:
        """
        Send the full response.

        Returns:
            True if sent, False if the client had already gone away.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.settimeout(self.timeout)
            self.socket.sendall(data)
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    def close(self):
        """
        Close the connection gracefully.

        1. shutdown(SHUT_WR): tell the client we're done sending
        2. drain what the client still sends, so the kernel does not answer
           unread data with a RST that could eat our response; at most
           DRAIN_MAX_BYTES within DRAIN_TIMEOUT seconds
        3. close the socket
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Already disconnected

        deadline = time.monotonic() + DRAIN_TIMEOUT
        drained = 0
        try:
            while drained < DRAIN_MAX_BYTES:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self.socket.settimeout(remaining)
                chunk = self.socket.recv(4096)
                if not chunk:
                    break
                drained += len(chunk)
        except OSError:
            pass  # Includes socket.timeout

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age * 1000:.1f}ms")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
