"""
Core networking components.

    connection     Connection wrapper around an accepted socket
    socket_server  Threaded accept loop
    async_server   asyncio accept loop
"""

from .connection import Connection, ConnectionState
from .socket_server import SocketServer
from .async_server import AsyncSocketServer

__all__ = [
    "Connection",
    "ConnectionState",
    "SocketServer",
    "AsyncSocketServer",
]
