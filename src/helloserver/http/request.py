"""
=============================================================================
HTTP REQUEST VIEW AND PARSER
=============================================================================

Turns raw request bytes read from a socket into an HTTPRequest, the
read-only view of a request that the router and handlers see.

=============================================================================
REQUEST ANATOMY
=============================================================================

    GET /hello?lang=en HTTP/1.1\r\n        ← Request line
    Host: localhost:3000\r\n               ← Headers
    User-Agent: curl/8.5.0\r\n
    \r\n                                   ← Blank line
    [body]                                 ← Ignored by routing

The request line is split into three tokens:

    GET   /hello?lang=en   HTTP/1.1
    ─┬─   ───────┬──────   ───┬────
     │           │            │
   method      target      version

=============================================================================
WHAT THE PARSER DOES NOT DO
=============================================================================

The parser keeps the request-target exactly as sent. Splitting the path
from the query string, trailing-slash normalization and method case
folding all happen in the router, so a malformed target is a routing
failure (500) and not a parse failure.

The method token is kept as sent as well: "get /hello" reaches the
router, which upper-cases it, and an unknown method on an unknown path is
still a plain 404.

Parse failures raise HTTPParseError carrying the status the transport
should answer with (400, 413 or 505).

=============================================================================
"""

import re
from dataclasses import dataclass, field
from typing import Dict


class HTTPParseError(Exception):
    """
    Raised when raw request bytes are not a valid HTTP/1.x request.

    Carries the HTTP status code the transport should reply with:

        400 Bad Request                 - Malformed request line or headers
        413 Payload Too Large           - Request exceeds the size limit
        505 HTTP Version Not Supported  - Anything but HTTP/1.0 or HTTP/1.1
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Owned by the connection that read it. The core only reads it.

    Attributes:
        method:         Method token as sent by the client.
        target:         Raw request-target (path plus optional query).
        version:        "HTTP/1.0" or "HTTP/1.1".
        headers:        Header name → value, names lowercased.
        body:           Raw body bytes (unused by the single route).
        client_address: (ip, port) of the peer.
    """

    method: str
    target: str
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    client_address: tuple[str, int] = ("", 0)

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def accept(self) -> str:
        return self.headers.get("accept", "")

    @property
    def content_length(self) -> int:
        """Content-Length as an int, 0 when missing or invalid."""
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the connection should stay open after this request.

        HTTP/1.1 keeps alive unless the client sends "Connection: close".
        HTTP/1.0 closes unless the client sends "Connection: keep-alive".
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Parses raw HTTP/1.x request bytes into HTTPRequest objects.

    ==========================================================================
    PARSING STEPS
    ==========================================================================

        1. Size check            → 413 when over max_request_size
        2. Find \\r\\n\\r\\n        → 400 when the header block is incomplete
        3. Request line          → 400 when not "TOKEN SP TARGET SP VERSION"
                                 → 505 when version is not 1.0 or 1.1
        4. Headers               → lowercased names, repeated names joined
        5. Body                  → exactly Content-Length bytes

    ==========================================================================
    """

    # RFC 9110 token characters for the method, any visible run for the target
    REQUEST_LINE_PATTERN = re.compile(
        r"^([!#$%&'*+.^_`|~0-9A-Za-z-]+) (\S+) (HTTP/\d\.\d)$"
    )
    HEADER_PATTERN = re.compile(r"^([^:\s]+):\s*(.*)$")
    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    def __init__(self, max_request_size: int = 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0),
    ) -> HTTPRequest:
        """
        Parse one complete request.

        Args:
            data: Raw bytes of exactly one request (headers and body).
            client_address: Peer (ip, port), kept for logging.

        Returns:
            The parsed HTTPRequest.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413,
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        # ISO-8859-1 maps every byte, so decoding cannot fail
        header_section = data[:header_end].decode("iso-8859-1")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, target, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        content_length = self._content_length(headers)
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            target=target,
            version=version,
            headers=headers,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> tuple[str, str, str]:
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, target, version = match.groups()
        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505,
            )

        return method, target, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a dict with lowercased names.

        Repeated headers are joined with ", " (RFC 9110 §5.3). Obsolete
        line folding and lines without a colon are rejected.
        """
        headers: Dict[str, str] = {}

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                raise HTTPParseError("Obsolete header line folding is not supported")

            match = self.HEADER_PATTERN.match(line)
            if not match:
                raise HTTPParseError(f"Invalid header line: {line!r}")

            name, value = match.groups()
            name = name.lower()
            value = value.strip()

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers

    @staticmethod
    def _content_length(headers: Dict[str, str]) -> int:
        raw = headers.get("content-length")
        if raw is None:
            return 0
        try:
            length = int(raw)
        except ValueError:
            raise HTTPParseError(f"Invalid Content-Length: {raw!r}")
        if length < 0:
            raise HTTPParseError(f"Invalid Content-Length: {raw!r}")
        return length


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 1024 * 1024,
) -> HTTPRequest:
    """Parse one request with a throwaway RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
