"""
Request handlers and the fixed route table.

    GET  /              → index
    GET  /user-agent    → user_agent
    GET  /echo/*value   → echo
    GET  /files/*name   → FileHandler.read
    POST /files/*name   → FileHandler.write

Anything else is answered 404 by the router.
"""

from ..http.request import Method
from ..http.router import Router
from ..storage import FileStorage
from .basic import index, echo, user_agent
from .files import FileHandler


def register_routes(router: Router, storage: FileStorage) -> Router:
    """
    Install the server's route table on `router`.

    Registered in match order: exact routes, then prefixes.
    """
    files = FileHandler(storage)

    router.add_route("/", index, Method.GET, name="index")
    router.add_route("/user-agent", user_agent, Method.GET, name="user_agent")
    router.add_route("/echo/*value", echo, Method.GET, name="echo")
    router.add_route("/files/*name", files.read, Method.GET, name="read_file")
    router.add_route("/files/*name", files.write, Method.POST, name="write_file")

    return router


__all__ = [
    "register_routes",
    "FileHandler",
    "index",
    "echo",
    "user_agent",
]
