"""
=============================================================================
REQUEST ROUTER
=============================================================================

Maps (path, method) to exactly one handler through a closed, static
route table.

=============================================================================
ROUTING FLOW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   request.target  "/hello/?lang=en"                                  │
    │        │                                                             │
    │        ▼  1. urlsplit → path, query dropped       "/hello/"          │
    │        ▼  2. strip one trailing "/" (not root)    "/hello"           │
    │        ▼  3. upper-case the method                "GET"              │
    │        ▼  4. look up the route table                                 │
    │                                                                      │
    │   path unknown ──────────────► handle_not_found          404         │
    │   path known, method unknown ─► handle_method_not_allowed 405        │
    │   path and method known ─────► registered handler                    │
    │                                                                      │
    │   any exception in 1-4 ──────► handle_server_error        500        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Matching is exact: case-sensitive on the path, case-insensitive on the
method. No wildcards, prefixes or path parameters.

=============================================================================
THE ROUTE TABLE
=============================================================================

    ROUTES = {
        "/hello": {
            "GET": handle_hello,
        },
    }

Built once at import and wrapped in read-only mapping proxies, so it can
be shared by every worker thread without locking.

=============================================================================
"""

import logging
from types import MappingProxyType
from typing import Callable, List, Mapping, Optional
from urllib.parse import urlsplit

from .handlers import (
    handle_hello,
    handle_not_found,
    handle_method_not_allowed,
    handle_server_error,
)
from .http.request import HTTPRequest
from .http.response import HTTPResponse


logger = logging.getLogger(__name__)


# Handler: takes the request view and the response sink, writes one response
Handler = Callable[[HTTPRequest, HTTPResponse], None]
RouteTable = Mapping[str, Mapping[str, Handler]]


def _freeze(routes: Mapping[str, Mapping[str, Handler]]) -> RouteTable:
    return MappingProxyType({
        path: MappingProxyType({method.upper(): handler for method, handler in methods.items()})
        for path, methods in routes.items()
    })


ROUTES: RouteTable = _freeze({
    "/hello": {
        "GET": handle_hello,
    },
})


def normalize_path(path: str) -> str:
    """
    Strip exactly one trailing slash, except from the root path.

        "/hello/"   → "/hello"
        "/hello//"  → "/hello/"
        "/"         → "/"
    """
    if path != "/" and path.endswith("/"):
        return path[:-1]
    return path


class Router:
    """
    Dispatches each request to exactly one handler.

    Usage:
        router = Router()                  # the built-in ROUTES table
        sink = HTTPResponse()
        router.route(request, sink)        # never raises
        sink.to_bytes()

    A custom table can be passed for embedding or testing; it is frozen
    on construction.
    """

    def __init__(self, routes: Optional[Mapping[str, Mapping[str, Handler]]] = None):
        self._routes: RouteTable = ROUTES if routes is None else _freeze(routes)

    @property
    def routes(self) -> RouteTable:
        return self._routes

    def allowed_methods(self, path: str) -> List[str]:
        """Methods registered for an exact, normalized path ([] if unknown)."""
        return list(self._routes.get(path, {}))

    def route(self, request: HTTPRequest, sink: HTTPResponse) -> None:
        """
        Route one request and write its response to the sink.

        Every failure inside the routing steps becomes a 500 here, so
        nothing propagates to the transport.
        """
        try:
            path = normalize_path(urlsplit(request.target).path or "/")
            method = request.method.upper()

            logger.info(
                "Processing request - method=%s path=%s target=%s",
                method, path, request.target,
            )
            logger.debug(
                "Request headers - host=%s user_agent=%s accept=%s content_length=%d",
                request.host or "unknown",
                request.user_agent or "unknown",
                request.accept or "unknown",
                request.content_length,
            )

            methods = self._routes.get(path)
            if methods is None:
                logger.warning("Route not found for path: %s", path)
                handle_not_found(request, sink)
                return

            handler = methods.get(method)
            if handler is None:
                allowed = list(methods)
                logger.warning(
                    "Method %s not allowed for path %s - allowed: %s",
                    method, path, ", ".join(allowed),
                )
                handle_method_not_allowed(request, sink, allowed)
                return

            logger.debug("Dispatching %s %s to %s", method, path, handler.__name__)
            handler(request, sink)

        except Exception as e:
            logger.warning(
                "Error during request routing - target=%r method=%r: %s",
                getattr(request, "target", None), getattr(request, "method", None), e,
            )
            if sink is not None and not sink.ended:
                # drop whatever the handler wrote before failing
                sink.reset()
            handle_server_error(request, sink, e)


_default_router = Router()


def route(request: HTTPRequest, sink: HTTPResponse) -> None:
    """Route a request through the built-in route table."""
    _default_router.route(request, sink)
