"""
=============================================================================
HTTP RESPONSE SINK AND RESPONSE WRITER
=============================================================================

Two pieces live here:

1. HTTPResponse - the response sink. A write-once, append-then-close
   target that one handler fills in per request.

2. write_response() - the response writer. Every response the server
   produces (200, 404, 405, 500, and the transport's 400/413/505) goes
   through it.

=============================================================================
SINK LIFECYCLE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   set_status() ──► set_header() ×N ──► write() ──► end()            │
    │                                                        │             │
    │                                                        ▼             │
    │                                              ended = True            │
    │                                              to_bytes() allowed      │
    │                                              any mutation raises     │
    │                                              ResponseEndedError      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Writing to an ended sink is a programmer error, not a recoverable
condition, so the sink raises instead of ignoring the call.

=============================================================================
WIRE FORMAT
=============================================================================

    HTTP/1.1 200 OK\r\n                          ← Status line
    Content-Type: text/plain; charset=utf-8\r\n  ← Default header set
    Connection: keep-alive\r\n
    Content-Length: 11\r\n                       ← Computed on serialization
    \r\n
    Hello world                                  ← UTF-8 body

No Date header is sent, so the same request always produces
the same bytes.

=============================================================================
WRITER FAILURE POLICY
=============================================================================

write_response() is permissive. It never raises to its caller:

    sink is None            → log, return
    sink already ended      → log, return
    any step raises         → log with traceback, then try a bare
                              500 "Internal Server Error" on the same sink;
                              if that fails too, log and return

=============================================================================
"""

import logging
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from .status_codes import HTTPStatus, reason_phrase


logger = logging.getLogger(__name__)


DEFAULT_HEADERS: Mapping[str, str] = MappingProxyType({
    "Content-Type": "text/plain; charset=utf-8",
    "Connection": "keep-alive",
})

INTERNAL_SERVER_ERROR_BODY = "Internal Server Error"


class ResponseEndedError(RuntimeError):
    """Raised when a sink is modified after end()."""


class HTTPResponse:
    """
    Write-once HTTP response sink.

    Exactly one handler call sequence writes to a sink: set the status,
    set headers, write the body, end. Header names are kept as given;
    setting a header again (any case) replaces the earlier value.
    """

    version = "HTTP/1.1"

    def __init__(self):
        self.status: int = HTTPStatus.OK
        self.reason: str = HTTPStatus.OK.phrase
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""
        self._ended = False

    @property
    def ended(self) -> bool:
        return self._ended

    @property
    def headers(self) -> Dict[str, str]:
        """A copy of the headers set so far."""
        return dict(self._headers)

    @property
    def body(self) -> bytes:
        return self._body

    @property
    def text(self) -> str:
        return self._body.decode("utf-8")

    @property
    def status_line(self) -> str:
        return f"{self.version} {self.status} {self.reason}"

    def get_header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        for key, value in self._headers.items():
            if key.lower() == name.lower():
                return value
        return None

    def _check_open(self) -> None:
        if self._ended:
            raise ResponseEndedError("response has already ended")

    def set_status(self, status: int, reason: Optional[str] = None) -> None:
        self._check_open()
        self.status = status
        self.reason = reason if reason is not None else reason_phrase(status)

    def set_header(self, name: str, value: str) -> None:
        """
        Set a header, replacing any existing header with the same name.

        Raises:
            ResponseEndedError: If the sink has ended.
            ValueError: If name or value contains CR or LF.
        """
        self._check_open()
        name = str(name)
        value = str(value)
        # CR/LF in either part would let a value inject extra header lines
        if not name or any(c in name for c in "\r\n:") or any(c in value for c in "\r\n"):
            raise ValueError(f"Invalid header: {name!r}")

        for key in list(self._headers):
            if key.lower() == name.lower():
                del self._headers[key]
        self._headers[name] = value

    def write(self, body: str) -> None:
        """
        Append UTF-8 text to the response payload.

        Raises:
            ResponseEndedError: If the sink has ended.
            TypeError: If body is not a str.
        """
        self._check_open()
        if not isinstance(body, str):
            raise TypeError(f"body must be str, not {type(body).__name__}")
        self._body += body.encode("utf-8")

    def end(self) -> None:
        self._check_open()
        self._ended = True

    def reset(self) -> None:
        """Discard everything written so far. Only valid before end()."""
        self._check_open()
        self.status = HTTPStatus.OK
        self.reason = HTTPStatus.OK.phrase
        self._headers.clear()
        self._body = b""

    def to_bytes(self, connection: Optional[str] = None) -> bytes:
        """
        Serialize the ended response for socket.sendall().

        Args:
            connection: If given, replaces the Connection header value on
                        the wire (the transport uses "close" when it is
                        about to drop the connection).

        Raises:
            RuntimeError: If end() has not been called yet.
        """
        if not self._ended:
            raise RuntimeError("cannot serialize a response that has not ended")

        headers = {
            name: value
            for name, value in self._headers.items()
            if name.lower() != "content-length"
        }
        if connection is not None:
            headers = {k: v for k, v in headers.items() if k.lower() != "connection"}
            headers["Connection"] = connection
        headers["Content-Length"] = str(len(self._body))

        lines = [self.status_line]
        lines.extend(f"{name}: {value}" for name, value in headers.items())
        lines.append("")
        head = "\r\n".join(lines).encode("latin-1", errors="replace") + b"\r\n"
        return head + self._body


def apply_headers(sink: HTTPResponse, headers: Mapping[str, str]) -> None:
    """Set every header in `headers` on the sink."""
    for name, value in headers.items():
        sink.set_header(name, value)
    logger.debug("HTTP headers set - count=%d", len(headers))


def write_response(
    sink: Optional[HTTPResponse],
    status_code: int,
    body: str,
    headers: Optional[Mapping[str, str]] = None,
) -> None:
    """
    Write one complete response to the sink and end it.

    The effective header set is DEFAULT_HEADERS overlaid by `headers`;
    caller values win on a name collision.

    Args:
        sink: The response sink for this request.
        status_code: HTTP status code.
        body: Complete payload, sent as UTF-8.
        headers: Extra or overriding headers.
    """
    if isinstance(status_code, HTTPStatus):
        # plain int so log lines read "404" on every Python version
        status_code = int(status_code)

    if sink is None:
        logger.error("Cannot write response %s: no response sink", status_code)
        return
    if sink.ended:
        logger.error("Cannot write response %s: response already ended", status_code)
        return

    try:
        sink.set_status(status_code, reason_phrase(status_code))
        apply_headers(sink, {**DEFAULT_HEADERS, **(headers or {})})
        sink.write(body)
        sink.end()
    except Exception:
        logger.exception("Failed to write HTTP response - status=%s", status_code)
        _write_fallback(sink)
        return

    logger.info("HTTP response sent - status=%s body=%r", status_code, body)


def _write_fallback(sink: HTTPResponse) -> None:
    """Best-effort bare 500 after write_response() failed midway."""
    if sink.ended:
        return
    try:
        sink.reset()
        sink.set_status(HTTPStatus.INTERNAL_SERVER_ERROR, HTTPStatus.INTERNAL_SERVER_ERROR.phrase)
        sink.set_header("Content-Type", DEFAULT_HEADERS["Content-Type"])
        sink.write(INTERNAL_SERVER_ERROR_BODY)
        sink.end()
    except Exception:
        logger.exception("Failed to send fallback 500 response")
