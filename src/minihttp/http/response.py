"""
=============================================================================
HTTP RESPONSE ENCODER
=============================================================================

Builds immutable HTTPResponse values and serializes them to the exact byte
sequence written back on the socket.

=============================================================================
WIRE FORMAT
=============================================================================

Every response, including 404 and 500, has the same shape:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  HTTP/1.1 200 OK\r\n                      ← status line             │
    │  Content-Type: text/plain\r\n                                       │
    │  Content-Length: 5\r\n                    ← always len(body)        │
    │  Connection: close\r\n                    ← one request per conn    │
    │  \r\n                                     ← end of headers          │
    │  hello                                    ← body bytes, verbatim    │
    └─────────────────────────────────────────────────────────────────────┘

Content-Length is computed at encode time from the body, never stored, so
it cannot drift from the payload. A zero-length body still gets
"Content-Length: 0".

=============================================================================
CONSTRUCTION
=============================================================================

Responses are plain frozen dataclasses. Build them directly, through the
fluent ResponseBuilder, or with the ok()/created()/not_found()/
internal_error() shortcuts. Whatever route you take, the value is complete
before it leaves the handler:

    response = (ResponseBuilder()
        .status(HTTPStatus.CREATED)
        .octet_stream(data)
        .build())

=============================================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

from .status_codes import HTTPStatus


class ContentType(str, Enum):
    """Content types the server emits."""

    TEXT_PLAIN = "text/plain"
    OCTET_STREAM = "application/octet-stream"


@dataclass(frozen=True)
class HTTPResponse:
    """
    An HTTP response ready to be serialized.

    Attributes:
        status: Status code (enum).
        content_type: Value of the Content-Type header.
        body: Raw body bytes. Content-Length is derived from this.
    """

    status: HTTPStatus = HTTPStatus.OK
    content_type: ContentType = ContentType.TEXT_PLAIN
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """
        HTTP-VERSION SP STATUS-CODE SP REASON-PHRASE

        Example: "HTTP/1.1 404 NOT FOUND"
        """
        return f"{self.version} {self.status.value} {self.status.phrase}"

    @property
    def headers(self) -> list[tuple[str, str]]:
        """Response headers in wire order."""
        return [
            ("Content-Type", self.content_type.value),
            ("Content-Length", str(len(self.body))),
            ("Connection", "close"),
        ]

    def to_bytes(self) -> bytes:
        """
        Serialize the response for socket.sendall().

        The head is ASCII by construction; the body is appended untouched.
        """
        lines = [self.status_line]
        for name, value in self.headers:
            lines.append(f"{name}: {value}")

        # Empty line separates headers from body
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("ascii") + b"\r\n"
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

    Each setter returns self; build() returns the immutable response.

        ResponseBuilder().text("hello").build()
        ResponseBuilder().status(HTTPStatus.CREATED).octet_stream(b"x").build()
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._content_type = ContentType.TEXT_PLAIN
        self._body: bytes = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def content_type(self, content_type: ContentType) -> "ResponseBuilder":
        self._content_type = content_type
        return self

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """
        Set the raw body. Strings are encoded as UTF-8.

        Handlers that need byte-exact round trips (echo, user-agent) pass
        bytes.
        """
        if isinstance(body, str):
            self._body = body.encode("utf-8")
        else:
            self._body = bytes(body)
        return self

    def text(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Set a text/plain body."""
        self._content_type = ContentType.TEXT_PLAIN
        return self.body(body)

    def octet_stream(self, body: bytes) -> "ResponseBuilder":
        """Set an application/octet-stream body."""
        self._content_type = ContentType.OCTET_STREAM
        return self.body(body)

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            content_type=self._content_type,
            body=self._body,
        )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def ok(
    body: Union[str, bytes] = b"",
    content_type: ContentType = ContentType.TEXT_PLAIN,
) -> HTTPResponse:
    """200 OK."""
    return ResponseBuilder().content_type(content_type).body(body).build()


def created(
    body: bytes = b"",
    content_type: ContentType = ContentType.OCTET_STREAM,
) -> HTTPResponse:
    """201 CREATED, echoing the stored bytes by default."""
    return (ResponseBuilder()
        .status(HTTPStatus.CREATED)
        .content_type(content_type)
        .body(body)
        .build())


def not_found() -> HTTPResponse:
    """
    404 NOT FOUND.

    Always the same value: text/plain, empty body, Content-Length: 0.
    """
    return HTTPResponse(status=HTTPStatus.NOT_FOUND)


def internal_error() -> HTTPResponse:
    """500 INTERNAL SERVER ERROR with an empty body."""
    return HTTPResponse(status=HTTPStatus.INTERNAL_SERVER_ERROR)
