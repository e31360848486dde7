"""
Unit tests for the connection wrapper and its deadline reader.

Uses socket.socketpair(), so no server is involved.
"""

import socket
import threading
import time

import pytest

from minihttp.core.connection import (
    Connection,
    ConnectionState,
    DeadlineReader,
    DRAIN_TIMEOUT,
)


@pytest.fixture
def socket_pair():
    """Connected (server side, client side) sockets."""
    server_side, client_side = socket.socketpair()
    yield server_side, client_side
    server_side.close()
    client_side.close()


def trickle(sock: socket.socket, piece: bytes, interval: float, stop: threading.Event):
    """Send `piece` every `interval` seconds until stopped or the peer is gone."""
    def run():
        while not stop.is_set():
            try:
                sock.sendall(piece)
            except OSError:
                return
            time.sleep(interval)

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    return thread


class TestDeadlineReader:
    """Line and byte reads against one overall deadline."""

    def test_readline(self, socket_pair):
        server_side, client_side = socket_pair
        client_side.sendall(b"one\r\ntwo\r\n")
        client_side.shutdown(socket.SHUT_WR)

        reader = DeadlineReader(server_side)

        assert reader.readline(100) == b"one\r\n"
        assert reader.readline(100) == b"two\r\n"
        assert reader.readline(100) == b""

    def test_readline_stops_at_limit(self, socket_pair):
        server_side, client_side = socket_pair
        client_side.sendall(b"abcdefgh\n")

        reader = DeadlineReader(server_side)

        assert reader.readline(4) == b"abcd"
        assert reader.readline(100) == b"efgh\n"

    def test_read_returns_short_at_eof(self, socket_pair):
        server_side, client_side = socket_pair
        client_side.sendall(b"hello")
        client_side.sendall(b" world")
        client_side.shutdown(socket.SHUT_WR)

        reader = DeadlineReader(server_side, buffer_size=4)

        assert reader.read(8) == b"hello wo"
        assert reader.read(100) == b"rld"

    def test_partial_line_times_out(self, socket_pair):
        server_side, client_side = socket_pair
        client_side.sendall(b"GET /")

        reader = DeadlineReader(server_side)
        reader.deadline = time.monotonic() + 0.2

        with pytest.raises(socket.timeout):
            reader.readline(100)

    def test_trickle_cannot_extend_deadline(self, socket_pair):
        """Bytes keep arriving, but never a newline; the deadline still fires."""
        server_side, client_side = socket_pair
        stop = threading.Event()
        trickle(client_side, b"x", 0.05, stop)

        reader = DeadlineReader(server_side)
        reader.deadline = time.monotonic() + 0.5
        started = time.monotonic()

        try:
            with pytest.raises(socket.timeout):
                reader.readline(1_000_000)
        finally:
            stop.set()

        assert time.monotonic() - started < 2

    def test_expired_deadline_fails_without_reading(self, socket_pair):
        server_side, client_side = socket_pair
        client_side.sendall(b"late\n")

        reader = DeadlineReader(server_side)
        reader.deadline = time.monotonic() - 1

        with pytest.raises(socket.timeout):
            reader.readline(100)


class TestConnection:
    """Connection.read_request() and close()."""

    def test_read_request(self, socket_pair):
        server_side, client_side = socket_pair
        client_side.sendall(b"GET /echo/hi HTTP/1.1\r\nHost: x\r\n\r\n")

        conn = Connection(socket=server_side, address=("local", 0), timeout=1.0)
        request = conn.read_request()

        assert request.path == "/echo/hi"
        assert request.headers["Host"] == "x"
        assert conn.state is ConnectionState.PROCESSING

    def test_timeout_covers_the_whole_request(self, socket_pair):
        server_side, client_side = socket_pair
        client_side.sendall(b"GET / HTTP/1.1\r\n")
        stop = threading.Event()
        trickle(client_side, b"X-Pad: y\r\n", 0.1, stop)

        conn = Connection(socket=server_side, address=("local", 0), timeout=0.5, max_headers=1000)
        started = time.monotonic()

        try:
            with pytest.raises(socket.timeout):
                conn.read_request()
        finally:
            stop.set()

        assert time.monotonic() - started < 2

    def test_close_drain_is_bounded(self, socket_pair):
        """A peer that never stops sending cannot hold close() open."""
        server_side, client_side = socket_pair
        stop = threading.Event()
        sender = trickle(client_side, b"x" * 1024, 0, stop)

        conn = Connection(socket=server_side, address=("local", 0))
        started = time.monotonic()
        conn.close()
        elapsed = time.monotonic() - started

        stop.set()
        sender.join(timeout=2)

        assert conn.state is ConnectionState.CLOSED
        assert elapsed < DRAIN_TIMEOUT + 1

    def test_close_is_idempotent(self, socket_pair):
        server_side, _ = socket_pair

        with Connection(socket=server_side, address=("local", 0)) as conn:
            pass
        conn.close()

        assert conn.state is ConnectionState.CLOSED
