"""
Integration tests: real sockets against a running server.

Every test runs once per concurrency mode (thread, async).
"""

import socket
import threading
import time

import pytest

from minihttp import HTTPServer, ServerConfig


class TestRoutes:
    """The fixed route table over the wire."""

    @pytest.mark.parametrize("headers", [
        b"",
        b"Host: localhost\r\n",
        b"Host: localhost\r\nUser-Agent: curl/8.4.0\r\nAccept: */*\r\n",
        b"this is not a header\r\nHost: localhost\r\n",
        b"".join(f"X-Extra-{i}: {i}\r\n".encode() for i in range(50)),
    ], ids=["none", "host", "user-agent", "malformed-line", "many"])
    def test_root(self, test_server, headers: bytes):
        """GET / is 200 with an empty body whatever headers come along."""
        response = test_server.request(b"GET / HTTP/1.1\r\n" + headers + b"\r\n")

        assert response.status_line == "HTTP/1.1 200 OK"
        assert response.headers["Content-Length"] == "0"
        assert response.body == b""

    def test_echo_hello(self, test_server):
        """The canonical scenario, byte for byte."""
        response = test_server.request(b"GET /echo/hello HTTP/1.1\r\n\r\n")

        assert response.raw == (
            b"HTTP/1.1 200 OK\r\n"
            b"Content-Type: text/plain\r\n"
            b"Content-Length: 5\r\n"
            b"Connection: close\r\n"
            b"\r\n"
            b"hello"
        )

    def test_echo_non_ascii(self, test_server):
        response = test_server.request(b"GET /echo/caf\xe9 HTTP/1.1\r\n\r\n")

        assert response.body == b"caf\xe9"
        assert response.headers["Content-Length"] == "4"

    def test_user_agent(self, test_server):
        response = test_server.request(
            b"GET /user-agent HTTP/1.1\r\nHost: localhost\r\nUser-Agent: foobar/1.2.3\r\n\r\n"
        )

        assert response.status_code == 200
        assert response.body == b"foobar/1.2.3"

    def test_user_agent_missing(self, test_server):
        response = test_server.request(b"GET /user-agent HTTP/1.1\r\n\r\n")
        assert response.status_line == "HTTP/1.1 404 NOT FOUND"

    def test_unknown_path(self, test_server):
        response = test_server.request(b"GET /nowhere HTTP/1.1\r\n\r\n")

        assert response.raw == (
            b"HTTP/1.1 404 NOT FOUND\r\n"
            b"Content-Type: text/plain\r\n"
            b"Content-Length: 0\r\n"
            b"Connection: close\r\n"
            b"\r\n"
        )

    def test_unknown_method(self, test_server):
        response = test_server.request(b"DELETE /files/x HTTP/1.1\r\n\r\n")
        assert response.status_code == 404

    def test_garbage(self, test_server):
        response = test_server.request(b"\x16\x03\x01 not http at all\r\n\r\n")
        assert response.status_code == 404


class TestFiles:
    """GET and POST /files/<name>."""

    def test_post_then_get(self, test_server):
        body = b"12345"
        post = test_server.request(
            b"POST /files/number HTTP/1.1\r\n"
            b"Content-Type: application/octet-stream\r\n"
            b"Content-Length: 5\r\n"
            b"\r\n" + body
        )

        assert post.status_line == "HTTP/1.1 201 CREATED"
        assert post.headers["Content-Type"] == "application/octet-stream"
        assert post.body == body
        assert (test_server.root / "number").read_bytes() == body

        get = test_server.request(b"GET /files/number HTTP/1.1\r\n\r\n")

        assert get.status_line == "HTTP/1.1 200 OK"
        assert get.headers["Content-Type"] == "application/octet-stream"
        assert get.headers["Content-Length"] == "5"
        assert get.body == body

    def test_overwrite(self, test_server):
        (test_server.root / "f").write_bytes(b"the old, longer contents")

        test_server.request(b"POST /files/f HTTP/1.1\r\nContent-Length: 3\r\n\r\nnew")

        assert test_server.request(b"GET /files/f HTTP/1.1\r\n\r\n").body == b"new"

    def test_large_file(self, test_server):
        body = bytes(range(256)) * 400  # 100 KiB
        (test_server.root / "big.bin").write_bytes(body)

        response = test_server.request(b"GET /files/big.bin HTTP/1.1\r\n\r\n")

        assert response.headers["Content-Length"] == str(len(body))
        assert response.body == body

    def test_large_upload(self, test_server):
        body = b"z" * 200_000
        head = f"POST /files/up.bin HTTP/1.1\r\nContent-Length: {len(body)}\r\n\r\n".encode()

        response = test_server.request(head + body)

        assert response.status_code == 201
        assert (test_server.root / "up.bin").read_bytes() == body

    def test_nested_name(self, test_server):
        response = test_server.request(b"POST /files/a/b/c.txt HTTP/1.1\r\nContent-Length: 2\r\n\r\nok")

        assert response.status_code == 201
        assert (test_server.root / "a" / "b" / "c.txt").read_bytes() == b"ok"

    def test_missing_file(self, test_server):
        response = test_server.request(b"GET /files/non_existent HTTP/1.1\r\n\r\n")
        assert response.status_code == 404
        assert response.body == b""

    def test_traversal_refused(self, test_server):
        outside = test_server.root.parent / "outside.txt"

        post = test_server.request(b"POST /files/../outside.txt HTTP/1.1\r\nContent-Length: 1\r\n\r\nx")
        get = test_server.request(b"GET /files/../../etc/passwd HTTP/1.1\r\n\r\n")

        assert post.status_code == 404
        assert get.status_code == 404
        assert not outside.exists()

    def test_storage_failure_is_500(self, test_server):
        (test_server.root / "dir").mkdir()

        response = test_server.request(b"POST /files/dir HTTP/1.1\r\nContent-Length: 1\r\n\r\nx")

        assert response.status_line == "HTTP/1.1 500 INTERNAL SERVER ERROR"

    def test_truncated_body(self, test_server):
        response = test_server.request(
            b"POST /files/t HTTP/1.1\r\nContent-Length: 100\r\n\r\nshort",
            close_write=True,
        )

        assert response.status_code == 404
        assert not (test_server.root / "t").exists()


class TestConnectionHandling:
    """Supervisor behavior: timeouts, empty connections, isolation."""

    def test_empty_connection(self, test_server):
        response = test_server.request(b"", close_write=True)
        assert response.status_code == 404

    def test_request_split_across_packets(self, test_server):
        with socket.create_connection(("127.0.0.1", test_server.port), timeout=5) as sock:
            for piece in (b"GET /ec", b"ho/split HT", b"TP/1.1\r\n", b"\r\n"):
                sock.sendall(piece)
                time.sleep(0.05)

            data = b""
            while True:
                chunk = sock.recv(4096)
                if not chunk:
                    break
                data += chunk

        assert data.endswith(b"\r\n\r\nsplit")

    def test_idle_client_times_out(self, short_timeout_server):
        started = time.monotonic()
        response = short_timeout_server.request(b"")

        assert response.status_code == 404
        assert time.monotonic() - started < 5

    def test_trickling_client_hits_read_deadline(self, short_timeout_server):
        """A header every 0.2 s never completes the request; the deadline still ends it."""
        started = time.monotonic()
        data = b""

        with socket.create_connection(("127.0.0.1", short_timeout_server.port), timeout=0.2) as sock:
            sock.sendall(b"GET /echo/x HTTP/1.1\r\n")

            i = 0
            while not data and time.monotonic() - started < 4:
                try:
                    sock.sendall(f"X-Pad-{i}: y\r\n".encode())
                    data = sock.recv(4096)
                    i += 1
                except socket.timeout:
                    i += 1
                except OSError:
                    break

            sock.settimeout(2)
            try:
                while True:
                    chunk = sock.recv(4096)
                    if not chunk:
                        break
                    data += chunk
            except OSError:
                pass  # Reset after the response arrived

        assert data.startswith(b"HTTP/1.1 404 NOT FOUND\r\n")
        assert time.monotonic() - started < 3

    def test_too_many_headers(self, test_server):
        headers = b"".join(f"X-H{i}: v\r\n".encode() for i in range(150))
        response = test_server.request(b"GET / HTTP/1.1\r\n" + headers + b"\r\n")

        assert response.status_code == 404

    def test_idle_client_does_not_block_others(self, short_timeout_server):
        with socket.create_connection(("127.0.0.1", short_timeout_server.port)):
            response = short_timeout_server.request(b"GET /echo/still-here HTTP/1.1\r\n\r\n")

        assert response.body == b"still-here"

    def test_concurrent_clients(self, test_server):
        results = {}

        def client(i: int):
            response = test_server.request(f"GET /echo/{i} HTTP/1.1\r\n\r\n".encode())
            results[i] = response.body

        threads = [threading.Thread(target=client, args=(i,)) for i in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert results == {i: str(i).encode() for i in range(20)}


class TestLifecycle:
    """Server construction and shutdown."""

    def test_missing_directory_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            HTTPServer(ServerConfig(directory=str(tmp_path / "missing")))

    def test_invalid_config_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            HTTPServer(ServerConfig(directory=str(tmp_path), concurrency="fork"))

    def test_shutdown_stops_accepting(self, test_server):
        port = test_server.port
        test_server.stop()

        assert not test_server.server.is_running
        with pytest.raises(OSError):
            socket.create_connection(("127.0.0.1", port), timeout=1).close()
