"""
=============================================================================
MINIHTTP - A MINIMAL HTTP/1.1 SERVER ON RAW TCP SOCKETS
=============================================================================

One request per connection, a fixed route table, and a directory of files:

    GET  /                 200, empty body
    GET  /echo/<value>     200, body is <value>
    GET  /user-agent       200, body is the User-Agent header
    GET  /files/<name>     200 with the file's bytes, or 404
    POST /files/<name>     201, request body stored under <name>
    anything else          404

=============================================================================
PACKAGE LAYOUT
=============================================================================

    minihttp/
    ├── __main__.py        CLI (python -m minihttp)
    ├── server.py          HTTPServer orchestrator
    ├── config.py          ServerConfig
    ├── log.py             Logging setup + access log
    ├── storage.py         Files under the served directory
    ├── core/              Sockets: connection, threaded and asyncio servers
    ├── http/              Parser, router, response encoder, status codes
    └── handlers/          Route handlers and the route table

=============================================================================
QUICK START
=============================================================================

    from minihttp import HTTPServer, ServerConfig

    server = HTTPServer(ServerConfig(directory="/tmp/data", port=4221))
    server.run()

=============================================================================
"""

from .config import ServerConfig
from .server import HTTPServer

__version__ = "1.0.0"

__all__ = [
    "HTTPServer",
    "ServerConfig",
    "__version__",
]
