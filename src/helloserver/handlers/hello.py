"""
The /hello handler.

    GET /hello  →  200 OK, "Hello world"
"""

import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, write_response
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)

HELLO_BODY = "Hello world"


def handle_hello(request: HTTPRequest, sink: HTTPResponse) -> None:
    """Answer with the static greeting using the default header set."""
    logger.info(
        "Received request to /hello - method=%s target=%s user_agent=%s",
        request.method, request.target, request.user_agent or "unknown",
    )

    write_response(sink, HTTPStatus.OK, HELLO_BODY)

    logger.info("Processed /hello request - status=%d", HTTPStatus.OK)
