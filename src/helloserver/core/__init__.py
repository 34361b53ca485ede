"""
=============================================================================
TRANSPORT
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │ socket_server.py  SocketServer  bind / listen / accept loop         │
    │ connection.py     Connection    framing, timeouts, send, close      │
    │ thread_pool.py    ThreadPool    fixed workers, one per connection   │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .connection import Connection
from .socket_server import SocketServer
from .thread_pool import ThreadPool

__all__ = [
    "Connection",
    "SocketServer",
    "ThreadPool",
]
