"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns a buffered byte stream into exactly one HTTPRequest, or fails with an
HTTPParseError subclass.

=============================================================================
WHAT WE ACCEPT
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  REQUEST LINE          GET /echo/hello HTTP/1.1\r\n                  │
    │                        ─┬─ ─────┬───── ────┬───                      │
    │                      GET|POST  /...     HTTP/1.1 only                │
    ├─────────────────────────────────────────────────────────────────────┤
    │  HEADERS               User-Agent: curl/8.4.0\r\n                    │
    │                        Content-Length: 5\r\n                         │
    │                        \r\n                  ← blank line ends block │
    ├─────────────────────────────────────────────────────────────────────┤
    │  BODY (POST only)      exactly Content-Length bytes                  │
    └─────────────────────────────────────────────────────────────────────┘

- The request line must have exactly three tokens separated by single
  spaces. Anything else is MalformedRequestLine.
- Header names are case-sensitive and looked up by exact name. A repeated
  header keeps its last value.
- Malformed header lines (no colon, empty name, whitespace-wrapped name)
  are skipped by default. That policy is named `skip_malformed_headers`;
  turn it off to get MalformedHeaderLine instead.
- At most max_headers header lines (default 100) are read, malformed ones
  included; one more is TooManyHeaders.
- A POST without Content-Length has an empty body. The parser never reads
  until the peer closes and never reads past the declared length.

=============================================================================
STATE MACHINE
=============================================================================

        ┌──────────────┐  request line   ┌─────────┐  blank line / EOF
        │ REQUEST_LINE │ ──────────────► │ HEADERS │ ─────────┐
        └──────────────┘                 └─────────┘          │
                                           │    ▲             ▼
                                    header │    │      Content-Length > 0
                                     line  └────┘      and method is POST?
                                                         │yes        │no
                                                         ▼           ▼
                                                     ┌──────┐    ┌──────┐
                                                     │ BODY │ ─► │ DONE │
                                                     └──────┘    └──────┘

The parser itself does no I/O. read_request() drives it from a blocking
reader (DeadlineReader, io.BytesIO), read_request_async() from an asyncio
StreamReader. Both supervisors share the same parsing rules.

Request and header bytes are decoded as ISO-8859-1: every byte maps to one
character, so paths and header values echo back byte-for-byte.

=============================================================================
"""

import io
import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import BinaryIO, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

HEADER_ENCODING = "iso-8859-1"
SUPPORTED_VERSION = "HTTP/1.1"

DEFAULT_MAX_LINE_LENGTH = 8192
DEFAULT_MAX_BODY_SIZE = 10 * 1024 * 1024  # 10 MB
DEFAULT_MAX_HEADERS = 100


# =============================================================================
# ERRORS
# =============================================================================

class HTTPParseError(Exception):
    """
    Base class for everything that can go wrong while reading a request.

    The server never answers a parse error with a 5xx. Every subclass
    degrades to a 404 at the connection boundary.
    """


class MalformedRequestLine(HTTPParseError):
    """Request line is not "<GET|POST> </path> HTTP/1.1"."""


class MalformedHeaderLine(HTTPParseError):
    """Header line is not "<name>: <value>" (strict mode only)."""


class LineTooLong(HTTPParseError):
    """A request or header line exceeded max_line_length."""


class InvalidContentLength(HTTPParseError):
    """Content-Length is not a non-negative decimal integer."""


class BodyTooLarge(HTTPParseError):
    """Declared Content-Length exceeds max_body_size."""


class TooManyHeaders(HTTPParseError):
    """The header block has more than max_headers lines."""


class IncompleteRequest(HTTPParseError):
    """The stream ended before the request line or before the full body."""


# =============================================================================
# REQUEST VALUE
# =============================================================================

class Method(Enum):
    """
    Request methods.

    Only GET and POST have routes. OTHER stands for any other token; the
    wire parser rejects such request lines outright, but a directly
    constructed request may carry it (the router answers 404).
    """

    GET = "GET"
    POST = "POST"
    OTHER = "OTHER"

    @classmethod
    def from_token(cls, token: str) -> "Method":
        """Map a request-line token (case-sensitive) to a Method."""
        member = cls.__members__.get(token)
        if member is None or member is cls.OTHER:
            return cls.OTHER
        return member

    @property
    def has_body(self) -> bool:
        """Whether Content-Length framing applies to this method."""
        return self is Method.POST


@dataclass(frozen=True)
class HTTPRequest:
    """
    A parsed HTTP request. Immutable.

    Attributes:
        method:      Method enum.
        path:        Raw request target; never empty, always starts with "/".
                     Not URL-decoded.
        headers:     Read-only mapping, case-sensitive names, last write wins.
        body:        Raw body bytes (empty unless a POST declared a length).
        version:     Always "HTTP/1.1" for parsed requests.
        path_params: Captured by prefix routes, e.g. {"name": "a/b.txt"}
                     for GET /files/a/b.txt.
    """

    method: Method
    path: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = SUPPORTED_VERSION
    path_params: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not self.path or not self.path.startswith("/"):
            raise ValueError(f"Request path must start with '/': {self.path!r}")
        # Freeze the mappings as well as the attributes
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))
        object.__setattr__(self, "path_params", MappingProxyType(dict(self.path_params)))

    def get_header(self, name: str) -> Optional[str]:
        """
        Exact-name header lookup.

        Returns None when the header was not sent. An empty value sent by
        the client comes back as "", which is not the same thing.
        """
        return self.headers.get(name)

    @property
    def user_agent(self) -> Optional[str]:
        return self.get_header("User-Agent")

    @property
    def content_length(self) -> Optional[int]:
        """
        Declared body length, or None when the header is absent.

        Raises:
            InvalidContentLength: If the header is present but not a number.
        """
        raw = self.get_header("Content-Length")
        if raw is None:
            return None
        return _parse_content_length(raw)


class ParserState(Enum):
    REQUEST_LINE = "request_line"
    HEADERS = "headers"
    BODY = "body"
    DONE = "done"


# =============================================================================
# PARSER
# =============================================================================

class RequestParser:
    """
    Incremental parser for a single request.

    Feed it lines until `wants_line` is False, then body bytes until
    `body_remaining` is 0, then call result(). One parser per request.

        parser = RequestParser()
        parser.feed_line(b"GET /echo/hi HTTP/1.1\r\n")
        parser.feed_line(b"\r\n")
        parser.result()   # HTTPRequest(method=Method.GET, path="/echo/hi", ...)
    """

    def __init__(
        self,
        max_line_length: int = DEFAULT_MAX_LINE_LENGTH,
        max_body_size: int = DEFAULT_MAX_BODY_SIZE,
        skip_malformed_headers: bool = True,
        max_headers: int = DEFAULT_MAX_HEADERS,
    ):
        """
        Args:
            max_line_length: Longest accepted request or header line,
                             excluding the line terminator.
            max_body_size: Largest accepted Content-Length.
            skip_malformed_headers: Skip header lines that do not look like
                                    "<name>: <value>" instead of failing.
            max_headers: Most header lines accepted in one request, skipped
                         malformed lines included.
        """
        self.max_line_length = max_line_length
        self.max_body_size = max_body_size
        self.skip_malformed_headers = skip_malformed_headers
        self.max_headers = max_headers

        self.state = ParserState.REQUEST_LINE

        self._method: Optional[Method] = None
        self._path: Optional[str] = None
        self._version: Optional[str] = None
        self._headers: Dict[str, str] = {}
        self._header_lines = 0
        self._body = bytearray()
        self._expected_body = 0

    # ─────────────────────────────────────────────────────────────────────
    # DRIVER INTERFACE
    # ─────────────────────────────────────────────────────────────────────

    @property
    def read_limit(self) -> int:
        """Byte limit a driver should pass to readline() (line + CRLF)."""
        return self.max_line_length + 2

    @property
    def wants_line(self) -> bool:
        return self.state in (ParserState.REQUEST_LINE, ParserState.HEADERS)

    @property
    def body_remaining(self) -> int:
        if self.state is not ParserState.BODY:
            return 0
        return self._expected_body - len(self._body)

    def feed_line(self, line: bytes) -> None:
        """
        Consume one raw line, terminator included.

        Raises:
            MalformedRequestLine, MalformedHeaderLine, LineTooLong,
            InvalidContentLength, BodyTooLarge, TooManyHeaders
        """
        if not self.wants_line:
            raise RuntimeError(f"Parser does not expect a line in state {self.state.name}")

        # readline() hit its limit without finding the terminator
        if len(line) >= self.read_limit and not line.endswith(b"\n"):
            raise LineTooLong(f"Line exceeds {self.max_line_length} bytes")

        text = _strip_line_ending(line).decode(HEADER_ENCODING)
        if len(text) > self.max_line_length:
            raise LineTooLong(f"Line exceeds {self.max_line_length} bytes")

        if self.state is ParserState.REQUEST_LINE:
            self._parse_request_line(text)
            self.state = ParserState.HEADERS
        elif not text:
            self._end_headers()
        else:
            self._parse_header_line(text)

    def feed_body(self, data: bytes) -> None:
        """Consume body bytes. Anything past the declared length is dropped."""
        if self.state is not ParserState.BODY:
            raise RuntimeError(f"Parser does not expect body bytes in state {self.state.name}")

        self._body += data[:self.body_remaining]
        if len(self._body) == self._expected_body:
            self.state = ParserState.DONE

    def feed_eof(self) -> None:
        """
        Signal end of stream.

        EOF inside the header block ends the block, as a blank line would.
        EOF anywhere else means the request is incomplete.
        """
        if self.state is ParserState.REQUEST_LINE:
            raise IncompleteRequest("Connection closed before the request line")

        if self.state is ParserState.HEADERS:
            self._end_headers()

        if self.state is ParserState.BODY:
            raise IncompleteRequest(
                f"Incomplete body: expected {self._expected_body} bytes, "
                f"got {len(self._body)}"
            )

    def result(self) -> HTTPRequest:
        if self.state is not ParserState.DONE:
            raise RuntimeError(f"Request is not complete (state {self.state.name})")

        return HTTPRequest(
            method=self._method,
            path=self._path,
            headers=self._headers,
            body=bytes(self._body),
            version=self._version,
        )

    # ─────────────────────────────────────────────────────────────────────
    # GRAMMAR
    # ─────────────────────────────────────────────────────────────────────

    def _parse_request_line(self, text: str) -> None:
        parts = text.split(" ")
        if len(parts) != 3:
            raise MalformedRequestLine(f"Invalid request line: {text!r}")

        token, path, version = parts

        method = Method.from_token(token)
        if method is Method.OTHER:
            raise MalformedRequestLine(f"Unsupported method: {token!r}")

        if not path.startswith("/"):
            raise MalformedRequestLine(f"Invalid request target: {path!r}")

        if version != SUPPORTED_VERSION:
            raise MalformedRequestLine(f"Unsupported HTTP version: {version!r}")

        self._method = method
        self._path = path
        self._version = version

    def _parse_header_line(self, text: str) -> None:
        self._header_lines += 1
        if self._header_lines > self.max_headers:
            raise TooManyHeaders(f"More than {self.max_headers} header lines")

        name, sep, value = text.partition(":")

        if not sep or not name or name != name.strip():
            if self.skip_malformed_headers:
                logger.debug(f"Skipping malformed header line: {text!r}")
                return
            raise MalformedHeaderLine(f"Invalid header line: {text!r}")

        self._headers[name] = value.strip()

    def _end_headers(self) -> None:
        length = 0
        if self._method.has_body and "Content-Length" in self._headers:
            length = _parse_content_length(self._headers["Content-Length"])
            if length > self.max_body_size:
                raise BodyTooLarge(
                    f"Body of {length} bytes exceeds limit of {self.max_body_size}"
                )

        if length:
            self._expected_body = length
            self.state = ParserState.BODY
        else:
            self.state = ParserState.DONE


def _strip_line_ending(line: bytes) -> bytes:
    if line.endswith(b"\r\n"):
        return line[:-2]
    if line.endswith(b"\n"):
        return line[:-1]
    return line


def _parse_content_length(raw: str) -> int:
    value = raw.strip()
    # isdigit() alone accepts non-ASCII digits such as "²"
    if not value.isascii() or not value.isdigit():
        raise InvalidContentLength(f"Invalid Content-Length: {raw!r}")
    return int(value)


# =============================================================================
# DRIVERS
# =============================================================================

def read_request(rfile: BinaryIO, parser: Optional[RequestParser] = None) -> HTTPRequest:
    """
    Read one request from a blocking binary stream.

    Args:
        rfile: Buffered reader, typically socket.makefile("rb").
        parser: Configured parser; a default one is created if omitted.

    Raises:
        HTTPParseError: On malformed or incomplete input.
        OSError: Socket errors, including timeouts, propagate unchanged.
    """
    parser = parser or RequestParser()

    while parser.wants_line:
        line = rfile.readline(parser.read_limit)
        if line:
            parser.feed_line(line)
        else:
            parser.feed_eof()

    while parser.body_remaining:
        chunk = rfile.read(parser.body_remaining)
        if not chunk:
            parser.feed_eof()
        parser.feed_body(chunk)

    return parser.result()


async def read_request_async(reader, parser: Optional[RequestParser] = None) -> HTTPRequest:
    """
    Read one request from an asyncio.StreamReader.

    Same contract as read_request(). The caller bounds the total wait with
    asyncio.wait_for().
    """
    parser = parser or RequestParser()

    while parser.wants_line:
        try:
            line = await reader.readline()
        except ValueError as e:
            # StreamReader raises ValueError when its own limit is overrun
            raise LineTooLong(str(e)) from e
        if line:
            parser.feed_line(line)
        else:
            parser.feed_eof()

    while parser.body_remaining:
        chunk = await reader.read(parser.body_remaining)
        if not chunk:
            parser.feed_eof()
        parser.feed_body(chunk)

    return parser.result()


def parse_request(data: bytes, **parser_options) -> HTTPRequest:
    """
    Parse a complete request held in memory.

    Convenience wrapper, mostly for tests:

        request = parse_request(b"GET / HTTP/1.1\\r\\n\\r\\n")
    """
    return read_request(io.BytesIO(data), RequestParser(**parser_options))
