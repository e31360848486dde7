"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The server speaks a deliberately tiny subset of HTTP status codes. Every
branch of the router resolves to one of these four.

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  2xx   │ SUCCESS                                                   │
    │        │                                                           │
    │        │ 200 OK            - root, echo, user-agent, file read     │
    │        │ 201 CREATED       - file written                          │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  4xx   │ CLIENT ERROR                                              │
    │        │                                                           │
    │        │ 404 NOT FOUND     - unknown route, missing file/header,   │
    │        │                     malformed or unreadable request       │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  5xx   │ SERVER ERROR                                              │
    │        │                                                           │
    │        │ 500 INTERNAL SERVER ERROR - storage / I/O failure         │
    └────────┴───────────────────────────────────────────────────────────┘

Reason phrases are upper-case ("201 CREATED", "404 NOT FOUND"). Clients
ignore the phrase, but the exact wire format is part of the contract.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes used by the server.

    IntEnum, so codes compare equal to plain integers:

        >>> HTTPStatus.NOT_FOUND == 404
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'NOT FOUND'
    """

    OK = 200
    CREATED = 201
    NOT_FOUND = 404
    INTERNAL_SERVER_ERROR = 500

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line."""
        return _STATUS_PHRASES[self]

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_client_error(self) -> bool:
        return 400 <= self < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self < 600

    @property
    def is_error(self) -> bool:
        """True for 4xx and 5xx."""
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "CREATED",
    HTTPStatus.NOT_FOUND: "NOT FOUND",
    HTTPStatus.INTERNAL_SERVER_ERROR: "INTERNAL SERVER ERROR",
}
