"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Everything between raw bytes and handler functions:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py       bytes  → HTTPRequest      (state-machine parser)   │
    │ router.py        HTTPRequest → handler     (exact / prefix routes)  │
    │ response.py      HTTPResponse → bytes      (builder + encoder)      │
    │ status_codes.py  200 / 201 / 404 / 500                              │
    └─────────────────────────────────────────────────────────────────────┘

No socket code lives here; see minihttp.core for that.

=============================================================================
"""

from .request import (
    HTTPRequest,
    Method,
    RequestParser,
    ParserState,
    HTTPParseError,
    MalformedRequestLine,
    MalformedHeaderLine,
    LineTooLong,
    InvalidContentLength,
    BodyTooLarge,
    TooManyHeaders,
    IncompleteRequest,
    read_request,
    read_request_async,
    parse_request,
)
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ContentType,
    ok,                 # 200 OK
    created,            # 201 CREATED
    not_found,          # 404 NOT FOUND
    internal_error,     # 500 INTERNAL SERVER ERROR
)
from .router import Router, Route, RouteMatch
from .status_codes import HTTPStatus

__all__ = [
    # Request parsing
    "HTTPRequest",
    "Method",
    "RequestParser",
    "ParserState",
    "HTTPParseError",
    "MalformedRequestLine",
    "MalformedHeaderLine",
    "LineTooLong",
    "InvalidContentLength",
    "BodyTooLarge",
    "TooManyHeaders",
    "IncompleteRequest",
    "read_request",
    "read_request_async",
    "parse_request",

    # Responses
    "HTTPResponse",
    "ResponseBuilder",
    "ContentType",
    "ok",
    "created",
    "not_found",
    "internal_error",

    # Routing
    "Router",
    "Route",
    "RouteMatch",

    # Status codes
    "HTTPStatus",
]
