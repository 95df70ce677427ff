"""
=============================================================================
BODY SIZE LIMIT MIDDLEWARE
=============================================================================

None of the routes need a request body. This stage bounds how much of one
any downstream code can ever read, so a misbehaving client cannot make the
server buffer or process more than ``max_bytes``.

    ┌─────────────────────────────────────────────────────────────────────┐
    │   request.stream  ──►  LimitedBodyReader(request.stream, 1024)      │
    │                                                                      │
    │   downstream read > 1024 bytes                                       │
    │        └─► RequestBodyTooLargeError                                  │
    │               └─► caught here → 413 via ErrorReporter               │
    │                   + Connection: close                               │
    └─────────────────────────────────────────────────────────────────────┘

It must run before anything that reads the body, which is why it sits at
the outer end of the chain.

=============================================================================
"""

from ..errors import BODY_TOO_LARGE, ErrorReporter
from ..http.body import LimitedBodyReader, RequestBodyTooLargeError
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from .base import Middleware, NextHandler


DEFAULT_MAX_BODY_BYTES = 1024


class BodyLimitMiddleware(Middleware):
    """Caps the readable request body at ``max_bytes``."""

    def __init__(self, reporter: ErrorReporter, max_bytes: int = DEFAULT_MAX_BODY_BYTES):
        if max_bytes < 0:
            raise ValueError("max_bytes must be >= 0")
        self.reporter = reporter
        self.max_bytes = max_bytes

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request.stream = LimitedBodyReader(request.stream, self.max_bytes)

        try:
            return next(request)
        except RequestBodyTooLargeError:
            # The rest of the body is still on the wire; don't reuse the
            # connection for another request.
            request.close_connection = True
            response = self.reporter.report(request, BODY_TOO_LARGE)
            response.set_header("Connection", "close")
            return response
