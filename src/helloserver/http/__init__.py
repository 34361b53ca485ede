"""
=============================================================================
HTTP PROTOCOL MODULE
=============================================================================

Protocol-level building blocks, independent of sockets and routing:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ status_codes.py  Status catalog: code → reason phrase               │
    │ request.py       HTTPRequest view + RequestParser (bytes → request) │
    │ response.py      HTTPResponse sink + write_response()               │
    └─────────────────────────────────────────────────────────────────────┘

The router lives one level up (helloserver.router) because it depends on
the handlers, which in turn depend on this package.

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import (
    HTTPResponse,
    ResponseEndedError,
    DEFAULT_HEADERS,
    apply_headers,
    write_response,
)
from .status_codes import HTTPStatus, reason_phrase, UNKNOWN_STATUS

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    # Response sink and writer
    "HTTPResponse",
    "ResponseEndedError",
    "DEFAULT_HEADERS",
    "apply_headers",
    "write_response",

    # Status catalog
    "HTTPStatus",
    "reason_phrase",
    "UNKNOWN_STATUS",
]
