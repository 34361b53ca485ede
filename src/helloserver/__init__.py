"""
=============================================================================
HELLOSERVER - A Single-Endpoint HTTP/1.1 Server
=============================================================================

One route, GET /hello, answers "Hello world". Every other request gets a
standardized 404, 405 or 500. Built on raw sockets and the standard
library.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    helloserver/
    ├── __init__.py          Package version and public names
    ├── __main__.py          CLI: hello-server / python -m helloserver
    ├── config.py            ServerConfig, load_config (PORT, HOST, APP_ENV)
    ├── router.py            Route table and dispatch
    ├── server.py            HTTPServer, modes, logging setup, serve()
    ├── core/
    │   ├── socket_server.py Listening socket and accept loop
    │   ├── connection.py    Per-connection framing and I/O
    │   └── thread_pool.py   Worker threads
    ├── http/
    │   ├── status_codes.py  Status catalog
    │   ├── request.py       Request view and parser
    │   └── response.py      Response sink and writer
    └── handlers/
        ├── hello.py         GET /hello
        └── errors.py        404, 405, 500

=============================================================================
QUICK START
=============================================================================

    $ hello-server
    $ curl -i http://localhost:3000/hello
    HTTP/1.1 200 OK
    Content-Type: text/plain; charset=utf-8
    Connection: keep-alive
    Content-Length: 11

    Hello world

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig, load_config
from .router import ROUTES, Router, route
from .server import HTTPServer, Mode, configure_logging, serve

__all__ = [
    "__version__",
    "ServerConfig",
    "load_config",
    "ROUTES",
    "Router",
    "route",
    "HTTPServer",
    "Mode",
    "configure_logging",
    "serve",
]
