"""
=============================================================================
HANDLERS MODULE
=============================================================================

Every handler has the same shape:

    handler(request, sink[, context]) -> None

It writes exactly one response to the sink through write_response() and
returns nothing.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ hello.py    handle_hello               GET /hello → 200             │
    │ errors.py   handle_not_found           unknown path → 404           │
    │             handle_method_not_allowed  wrong method → 405 + Allow   │
    │             handle_server_error        internal fault → 500         │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .hello import handle_hello
from .errors import (
    handle_not_found,
    handle_method_not_allowed,
    handle_server_error,
)

__all__ = [
    "handle_hello",
    "handle_not_found",
    "handle_method_not_allowed",
    "handle_server_error",
]
