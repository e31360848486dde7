"""
Handlers that need nothing but the request: root, echo, user-agent.
"""

from ..http.request import HEADER_ENCODING, HTTPRequest
from ..http.response import HTTPResponse, ok, not_found


def index(request: HTTPRequest) -> HTTPResponse:
    """GET / → 200 with an empty body, whatever the headers say."""
    return ok()


def echo(request: HTTPRequest) -> HTTPResponse:
    """
    GET /echo/<value> → 200 with <value> as the body.

    <value> is everything after "/echo/", slashes included, not
    URL-decoded: "/echo/a/b" answers "a/b".
    """
    value = request.path_params.get("value", "")
    return ok(value.encode(HEADER_ENCODING))


def user_agent(request: HTTPRequest) -> HTTPResponse:
    """GET /user-agent → 200 with the User-Agent value, or 404 if not sent."""
    agent = request.user_agent
    if agent is None:
        return not_found()
    return ok(agent.encode(HEADER_ENCODING))
