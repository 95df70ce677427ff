"""
=============================================================================
HTTP MODULE
=============================================================================

The protocol layer: request parsing, response serialization, the body
readers used for size limiting, status codes and the exact-path route
table. Nothing here touches sockets.

=============================================================================
"""

from .body import BodyReader, LimitedBodyReader, RequestBodyTooLargeError
from .request import HTTPParseError, HTTPRequest, RequestParser, parse_request
from .response import (
    PLAIN_TEXT,
    HTTPResponse,
    ResponseBuilder,
    not_found,
    plain_error,
)
from .router import RouteEntry, RouteTable
from .status_codes import HTTPStatus, reason_phrase

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    # Request bodies
    "BodyReader",
    "LimitedBodyReader",
    "RequestBodyTooLargeError",

    # Responses
    "HTTPResponse",
    "ResponseBuilder",
    "PLAIN_TEXT",
    "plain_error",
    "not_found",

    # Routing
    "RouteEntry",
    "RouteTable",

    # Status codes
    "HTTPStatus",
    "reason_phrase",
]
