"""
=============================================================================
ERROR HANDLERS
=============================================================================

Fixed-shape responses for everything that is not GET /hello:

    ┌──────────────────────────┬────────┬─────────────────────────────────┐
    │ Handler                  │ Status │ Body                            │
    ├──────────────────────────┼────────┼─────────────────────────────────┤
    │ handle_not_found         │  404   │ Not Found                       │
    │ handle_method_not_allowed│  405   │ Method Not Allowed  (+ Allow)   │
    │ handle_server_error      │  500   │ Internal Server Error           │
    └──────────────────────────┴────────┴─────────────────────────────────┘

=============================================================================
INFORMATION DISCLOSURE
=============================================================================

handle_server_error() receives the exception that caused the fault. Its
message and traceback go to the server log only. The client always gets
the same generic body:

    logger.error(...exc_info=error)     ← full detail, server side
    write_response(sink, 500, "Internal Server Error")

=============================================================================
"""

import logging
from typing import Optional, Sequence

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, write_response
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)

NOT_FOUND_BODY = "Not Found"
METHOD_NOT_ALLOWED_BODY = "Method Not Allowed"
INTERNAL_SERVER_ERROR_BODY = "Internal Server Error"

DEFAULT_ALLOWED_METHODS = ("GET",)


def _describe(request: Optional[HTTPRequest]) -> tuple[str, str]:
    # request may be half-built when the router hit a fault
    return getattr(request, "method", "-"), getattr(request, "target", "-")


def handle_not_found(request: HTTPRequest, sink: HTTPResponse) -> None:
    method, target = _describe(request)
    logger.warning("404 Not Found - method=%s target=%s", method, target)

    write_response(sink, HTTPStatus.NOT_FOUND, NOT_FOUND_BODY)

    logger.debug("404 response written for %s", target)


def handle_method_not_allowed(
    request: HTTPRequest,
    sink: HTTPResponse,
    allowed_methods: Optional[Sequence[str]] = None,
) -> None:
    """
    Answer 405 with an Allow header listing the path's registered methods.

    Args:
        request: The request that used an unsupported method.
        sink: Response sink.
        allowed_methods: Methods registered for the matched path. A
                         missing, empty or malformed list is replaced
                         by ["GET"] so the Allow header is never empty.
    """
    if (
        not isinstance(allowed_methods, (list, tuple))
        or not allowed_methods
        or not all(isinstance(m, str) and m for m in allowed_methods)
    ):
        logger.warning("No valid allowed methods given, defaulting to %s", DEFAULT_ALLOWED_METHODS)
        allowed_methods = DEFAULT_ALLOWED_METHODS

    allow = ", ".join(allowed_methods)
    method, target = _describe(request)
    logger.warning(
        "405 Method Not Allowed - method=%s target=%s allowed=%s",
        method, target, allow,
    )

    write_response(
        sink,
        HTTPStatus.METHOD_NOT_ALLOWED,
        METHOD_NOT_ALLOWED_BODY,
        {"Allow": allow},
    )

    logger.debug("405 response written for %s", target)


def handle_server_error(
    request: HTTPRequest,
    sink: HTTPResponse,
    error: Optional[BaseException] = None,
) -> None:
    """
    Answer 500 with a generic body.

    Args:
        request: The request being handled (may be incomplete).
        sink: Response sink.
        error: The exception behind the fault, logged with its traceback.
    """
    method, target = _describe(request)
    if error is not None:
        logger.error(
            "500 Internal Server Error - method=%s target=%s error=%s",
            method, target, error,
            exc_info=(type(error), error, error.__traceback__),
        )
    else:
        logger.error(
            "500 Internal Server Error - method=%s target=%s error=unknown",
            method, target,
        )

    write_response(sink, HTTPStatus.INTERNAL_SERVER_ERROR, INTERNAL_SERVER_ERROR_BODY)

    logger.debug("500 response written for %s", target)
