"""
=============================================================================
TCP SOCKET SERVER
=============================================================================

Owns the listening socket: bind, listen, accept, close. It knows nothing
about HTTP; every accepted socket is wrapped in a Connection and handed
to a callback.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │    bind()            getaddrinfo → socket() → setsockopt()          │
    │        │             → bind() → listen()                             │
    │        ▼                                                             │
    │    serve_forever(cb) while running:                                  │
    │        │                 accept()  (1 s timeout, then re-check)      │
    │        │                 cb(Connection(...))                         │
    │        ▼                                                             │
    │    shutdown()        running = False, from any thread                │
    │    close()           release the listening socket                    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
BIND FAILURES
=============================================================================

The three common OSErrors get a hint in the log before being re-raised:

    EADDRINUSE       another process holds the port
    EACCES           not permitted to bind that port
    EADDRNOTAVAIL    the host is not an address of this machine

=============================================================================
"""

import errno
import logging
import socket
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)

ACCEPT_POLL_INTERVAL = 1.0

BIND_ERROR_HINTS = {
    errno.EADDRINUSE: "Port {port} is already in use. Stop the other process or set PORT to a free port.",
    errno.EACCES: "Permission denied binding {host}:{port}. Choose a port the current user may bind.",
    errno.EADDRNOTAVAIL: "Address {host} is not available on this machine. Check the HOST setting.",
}


class SocketServer:
    """
    Listening socket plus accept loop.

    Usage:
        server = SocketServer(config)
        server.bind()                      # raises OSError on failure
        server.serve_forever(on_connection)  # blocks until shutdown()
        server.close()
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (ip, port), or the configured pair before bind()."""
        if self._socket is not None:
            return self._socket.getsockname()[:2]
        return (self.config.host, self.config.port)

    def _create_socket(self) -> Tuple[socket.socket, tuple]:
        family, type_, proto, _, sockaddr = socket.getaddrinfo(
            self.config.host, self.config.port,
            type=socket.SOCK_STREAM, flags=socket.AI_PASSIVE,
        )[0]

        sock = socket.socket(family, type_, proto)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(ACCEPT_POLL_INTERVAL)
        return sock, sockaddr

    def bind(self) -> None:
        """
        Resolve the host, bind and listen.

        Raises:
            OSError: If the address cannot be resolved or bound. The
                     error is logged with a hint first.
        """
        host, port = self.config.host, self.config.port
        sock = None
        try:
            sock, sockaddr = self._create_socket()
            sock.bind(sockaddr)
            sock.listen(self.config.backlog)
        except OSError as e:
            if sock is not None:
                sock.close()
            logger.error("Failed to bind to %s:%d: %s", host, port, e)
            hint = BIND_ERROR_HINTS.get(e.errno)
            if hint:
                logger.error(hint.format(host=host, port=port))
            raise

        self._socket = sock
        self._running = True
        logger.debug("Socket bound to %s:%d", *self.address)

    def serve_forever(self, connection_handler: Callable[[Connection], None]) -> None:
        """
        Accept connections until shutdown() is called.

        Args:
            connection_handler: Receives each new Connection. It must
                                not block for long; the HTTP server
                                hands the connection to its pool.
        """
        if self._socket is None:
            raise RuntimeError("bind() must be called before serve_forever()")

        try:
            while self._running:
                try:
                    client_socket, client_address = self._socket.accept()
                except socket.timeout:
                    continue
                except OSError as e:
                    if self._running:
                        logger.error("Accept error: %s", e)
                    break

                conn = Connection(
                    socket=client_socket,
                    address=client_address[:2],
                    buffer_size=self.config.buffer_size,
                    timeout=self.config.timeout,
                    keep_alive_timeout=self.config.keep_alive_timeout,
                    max_request_size=self.config.max_request_size,
                )
                connection_handler(conn)
        finally:
            self._running = False

    def shutdown(self) -> None:
        """Stop the accept loop within ACCEPT_POLL_INTERVAL. Safe from any thread."""
        self._running = False

    def close(self) -> None:
        if self._socket is not None:
            self._socket.close()
            self._socket = None
            logger.info("Socket server stopped")
