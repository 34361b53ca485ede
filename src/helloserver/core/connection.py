"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket with request framing, timeouts and a
clean close.

=============================================================================
FRAMING A REQUEST
=============================================================================

TCP is a byte stream: one recv() may hold half a request or one and a
half. read_request() buffers until it has exactly one request:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   recv() → buffer   until b"\r\n\r\n" appears                        │
    │   Content-Length    read from the head (0 if absent or malformed)   │
    │   recv() → buffer   until the body is complete                       │
    │   split             first request returned, the rest kept for the    │
    │                     next call (pipelining)                           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Framing is lenient: whatever is read is handed to the parser, which
rejects malformed requests with a proper status. The only check here is
the size limit, raised as a 413 HTTPParseError.

=============================================================================
TIMEOUTS
=============================================================================

    first request      config.timeout               TimeoutError
    next keep-alive    config.keep_alive_timeout    None (quiet close)

=============================================================================
"""

import logging
import re
import socket
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from ..http.request import HTTPParseError


logger = logging.getLogger(__name__)

HEADER_TERMINATOR = b"\r\n\r\n"
CONTENT_LENGTH_PATTERN = re.compile(rb"^content-length:[ \t]*(\d+)[ \t]*$", re.IGNORECASE | re.MULTILINE)


@dataclass
class Connection:
    """
    One client connection.

    Usage:
        with Connection(sock, addr, timeout=30.0) as conn:
            data = conn.read_request()
            if data is not None:
                conn.send_response(respond(data))

    Attributes:
        socket: The accepted client socket.
        address: Peer (ip, port).
        id: Short identifier for log lines.
        requests_handled: Requests read so far.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    created_at: float = field(default_factory=time.monotonic)
    requests_handled: int = 0
    closed: bool = False

    buffer_size: int = 8192
    timeout: float = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    @property
    def peer(self) -> str:
        return f"{self.client_ip}:{self.client_port}"

    @property
    def age(self) -> float:
        return time.monotonic() - self.created_at

    def read_request(self) -> Optional[bytes]:
        """
        Read the raw bytes of one request.

        Returns:
            The request bytes, possibly truncated if the peer closed
            mid-request. None if the peer closed cleanly between requests
            or a keep-alive wait expired.

        Raises:
            TimeoutError: If the first request does not arrive in time.
            HTTPParseError: (413) If the request exceeds max_request_size.
        """
        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while HEADER_TERMINATOR not in self._buffer:
                if not self._fill():
                    return self._take(len(self._buffer))

            head_end = self._buffer.index(HEADER_TERMINATOR) + len(HEADER_TERMINATOR)
            request_end = head_end + self._content_length(self._buffer[:head_end])

            while len(self._buffer) < request_end:
                if not self._fill():
                    break

            return self._take(request_end)

        except socket.timeout:
            if self.requests_handled > 0 and not self._buffer:
                logger.debug("[%s] Keep-alive timeout", self.id)
                return None
            raise TimeoutError("Request read timeout")

        finally:
            self.socket.settimeout(self.timeout)

    def _fill(self) -> bool:
        try:
            chunk = self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            chunk = b""
        if not chunk:
            return False

        self._buffer += chunk
        if len(self._buffer) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: more than {self.max_request_size} bytes",
                status_code=413,
            )
        return True

    def _take(self, end: int) -> Optional[bytes]:
        data, self._buffer = self._buffer[:end], self._buffer[end:]
        if not data:
            return None
        self.requests_handled += 1
        return data

    @staticmethod
    def _content_length(head: bytes) -> int:
        match = CONTENT_LENGTH_PATTERN.search(head.replace(b"\r\n", b"\n"))
        return int(match.group(1)) if match else 0

    def send_response(self, data: bytes) -> bool:
        """
        Send a full response with sendall().

        Returns:
            False if the peer went away.
        """
        try:
            self.socket.sendall(data)
            return True
        except OSError as e:
            logger.warning("[%s] Send failed: %s", self.id, e)
            return False

    def close(self):
        """Half-close, drain briefly, then release the socket. Idempotent."""
        if self.closed:
            return
        self.closed = True

        try:
            self.socket.shutdown(socket.SHUT_WR)
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            # peer already gone
            pass
        finally:
            self.socket.close()

        logger.debug(
            "[%s] Connection closed after %d requests (%.1fs)",
            self.id, self.requests_handled, self.age,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
