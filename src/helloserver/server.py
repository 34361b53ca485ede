"""
=============================================================================
HTTP SERVER
=============================================================================

Ties the transport to the router and owns the process lifecycle.

=============================================================================
ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │   HTTPServer    │                          │
    │                        └────────┬────────┘                          │
    │                                 │                                    │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │ SocketServer │    │  ThreadPool  │    │    Router    │        │
    │    └──────┬───────┘    └──────────────┘    └──────┬───────┘        │
    │           ▼                                       ▼                 │
    │    ┌──────────────┐                        ┌──────────────┐        │
    │    │  Connection  │                        │   Handlers   │        │
    │    └──────────────┘                        └──────────────┘        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST LIFECYCLE (one worker thread per connection)
=============================================================================

    1. conn.read_request()        raw bytes of one request
    2. parse_request()            HTTPRequest, or 400/413/505 and close
    3. router.route(req, sink)    exactly one handler ends the sink
    4. sink.to_bytes()            Connection: close when not keeping alive
    5. conn.send_response()
    6. keep-alive? back to 1 : close

=============================================================================
MODES
=============================================================================

    ┌──────────────┬────────────┬──────────────────┬─────────────────────┐
    │ Mode         │ Log level  │ Shutdown timeout │ Extras              │
    ├──────────────┼────────────┼──────────────────┼─────────────────────┤
    │ STANDARD     │ INFO       │ 10 s             │                     │
    │ DEVELOPMENT  │ DEBUG      │  5 s             │ host/cwd in banner, │
    │              │            │                  │ session duration    │
    └──────────────┴────────────┴──────────────────┴─────────────────────┘

=============================================================================
GRACEFUL SHUTDOWN
=============================================================================

SIGINT/SIGTERM (or shutdown() from any thread):

    1. Stop accepting; the accept loop notices within a second
    2. Close the listening socket
    3. Let the worker pool finish in-flight connections, bounded by
       the mode's timeout
    4. Log the outcome

A second shutdown request only logs a warning.

=============================================================================
"""

import logging
import os
import platform
import signal
import sys
import threading
import time
from enum import Enum
from typing import Mapping, Optional, Tuple, Union

from . import __version__
from .config import ServerConfig, load_config
from .core import Connection, SocketServer, ThreadPool
from .handlers import handle_server_error
from .http import (
    HTTPParseError,
    HTTPResponse,
    HTTPStatus,
    parse_request,
    reason_phrase,
    write_response,
)
from .router import Router


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


class Mode(Enum):
    STANDARD = "standard"
    DEVELOPMENT = "development"

    @property
    def log_level(self) -> int:
        return logging.DEBUG if self is Mode.DEVELOPMENT else logging.INFO

    @property
    def shutdown_timeout(self) -> float:
        return 5.0 if self is Mode.DEVELOPMENT else 10.0


def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """
    Install the console log format and set the package log level.

    Args:
        level: A logging level number or name ("debug", "INFO", ...).

    Raises:
        ValueError: If a level name is unknown.
    """
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level!r}")
        level = resolved

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
    logging.getLogger("helloserver").setLevel(level)


class HTTPServer:
    """
    The hello server process.

    Usage:
        server = HTTPServer(load_config(), mode=Mode.STANDARD)
        server.run()                       # blocks until shutdown

        # from another thread (tests, embedding):
        server.wait_until_ready(5.0)
        server.address                     # ("127.0.0.1", 3000)
        server.shutdown()
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        mode: Mode = Mode.STANDARD,
        router: Optional[Router] = None,
    ):
        self.config = config or ServerConfig()
        self.config.validate()
        self.mode = mode

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(workers=self.config.workers)
        self._router = router or Router()

        self._ready = threading.Event()
        self._shutdown_lock = threading.Lock()
        self._shutdown_requested = False
        self._started_at: Optional[float] = None
        self._original_handlers: dict = {}

    @property
    def address(self) -> Tuple[str, int]:
        return self._socket_server.address

    @property
    def is_shutting_down(self) -> bool:
        return self._shutdown_requested

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. False on timeout."""
        return self._ready.wait(timeout)

    # ─────────────────────────────────────────────────────────────────────
    # LIFECYCLE
    # ─────────────────────────────────────────────────────────────────────

    def run(self) -> None:
        """
        Bind, serve until shutdown, then drain.

        Raises:
            OSError: If the listening socket cannot be bound.
        """
        self._started_at = time.monotonic()
        self._thread_pool.start()

        try:
            self._socket_server.bind()
        except OSError:
            self._thread_pool.shutdown(timeout=self.mode.shutdown_timeout)
            raise

        self._install_signal_handlers()
        if self._shutdown_requested:
            # shutdown() arrived while binding
            self._socket_server.shutdown()

        host, port = self.address
        logger.info(
            "Server listening on %s:%d - environment=%s mode=%s",
            host, port, self.config.environment, self.mode.value,
        )
        logger.info("Try it: %s/hello", self.config.url)
        self._ready.set()

        try:
            self._socket_server.serve_forever(self._handle_connection)
        finally:
            self._finish_shutdown()

    def shutdown(self) -> None:
        """Request a graceful shutdown. Safe to call from any thread, any number of times."""
        with self._shutdown_lock:
            if self._shutdown_requested:
                logger.warning("Shutdown already in progress")
                return
            self._shutdown_requested = True

        logger.info("Graceful shutdown initiated")
        self._socket_server.shutdown()

    def _finish_shutdown(self) -> None:
        with self._shutdown_lock:
            self._shutdown_requested = True

        self._socket_server.close()
        self._restore_signal_handlers()

        logger.debug("Worker pool stats: %s", self._thread_pool.stats)
        timeout = self.mode.shutdown_timeout
        if self._thread_pool.shutdown(timeout=timeout):
            logger.info("All connections closed")
        else:
            logger.error("Connections still open after %.0fs, forcing shutdown", timeout)

        if self.mode is Mode.DEVELOPMENT and self._started_at is not None:
            logger.debug("Session duration: %.1fs", time.monotonic() - self._started_at)

        logger.info("Server stopped")

    def _install_signal_handlers(self) -> None:
        # signal.signal() only works from the main thread
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, skipping signal handlers")
            return

        def on_signal(signum, frame):
            logger.info("Received %s, shutting down", signal.Signals(signum).name)
            self.shutdown()

        for sig in (signal.SIGINT, signal.SIGTERM):
            self._original_handlers[sig] = signal.signal(sig, on_signal)

    def _restore_signal_handlers(self) -> None:
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    # ─────────────────────────────────────────────────────────────────────
    # CONNECTION HANDLING
    # ─────────────────────────────────────────────────────────────────────

    def _handle_connection(self, conn: Connection) -> None:
        logger.info("Connection accepted from %s [%s]", conn.peer, conn.id)
        try:
            self._thread_pool.submit(self._process_connection, conn)
            logger.debug("[%s] Queued for a worker - %d waiting", conn.id, self._thread_pool.queue_size)
        except RuntimeError as e:
            logger.warning("[%s] Dropping connection: %s", conn.id, e)
            conn.close()

    def _process_connection(self, conn: Connection) -> None:
        """Serve requests on one connection until it should close (worker thread)."""
        with conn:
            try:
                while self._serve_one(conn):
                    pass
            except Exception as e:
                logger.exception("[%s] Connection error: %s", conn.id, e)

    def _serve_one(self, conn: Connection) -> bool:
        """Handle one request. Returns True to keep the connection open."""
        try:
            raw = conn.read_request()
        except HTTPParseError as e:
            self._reject(conn, e.status_code, str(e))
            return False
        except TimeoutError:
            self._reject(conn, HTTPStatus.REQUEST_TIMEOUT, "no request before timeout")
            return False

        if raw is None:
            return False

        try:
            request = parse_request(raw, conn.address, self.config.max_request_size)
        except HTTPParseError as e:
            self._reject(conn, e.status_code, str(e))
            return False

        sink = HTTPResponse()
        self._router.route(request, sink)

        if not sink.ended:
            logger.error("[%s] Handler returned without ending the response", conn.id)
            sink.reset()
            handle_server_error(request, sink, RuntimeError("response not ended"))

        keep_alive = (
            request.is_keep_alive
            and not self._shutdown_requested
            and (sink.get_header("Connection") or "").lower() != "close"
        )
        data = sink.to_bytes() if keep_alive else sink.to_bytes(connection="close")

        return conn.send_response(data) and keep_alive

    def _reject(self, conn: Connection, status: int, message: str) -> None:
        """Answer a request the transport could not accept, then close."""
        logger.warning("[%s] Rejecting request from %s: %s", conn.id, conn.peer, message)
        sink = HTTPResponse()
        write_response(sink, status, reason_phrase(status), {"Connection": "close"})
        conn.send_response(sink.to_bytes(connection="close"))


def _log_banner(mode: Mode) -> None:
    logger.info("Starting hello-server %s in %s mode", __version__, mode.value)
    logger.info(
        "Python %s - pid %d - %s",
        platform.python_version(), os.getpid(), sys.platform,
    )
    if mode is Mode.DEVELOPMENT:
        logger.debug("Host: %s (%s)", platform.node(), platform.machine())
        logger.debug("Working directory: %s", os.getcwd())


def serve(
    mode: Mode = Mode.STANDARD,
    environ: Optional[Mapping[str, str]] = None,
    log_level: Optional[Union[int, str]] = None,
) -> HTTPServer:
    """
    Configure logging, load configuration and run the server until shutdown.

    Args:
        mode: Standard or development behavior.
        environ: Environment to read PORT, HOST and APP_ENV from.
        log_level: Overrides the mode's default log level.

    Returns:
        The stopped server.

    Raises:
        OSError: If the server cannot bind.
    """
    configure_logging(log_level if log_level is not None else mode.log_level)
    _log_banner(mode)

    server = HTTPServer(load_config(environ), mode=mode)
    server.run()
    return server
