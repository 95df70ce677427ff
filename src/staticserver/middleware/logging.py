"""
=============================================================================
REQUEST LOGGING MIDDLEWARE
=============================================================================

Emits one INFO record per request that reaches it, before forwarding:

    time=... level=INFO msg="handling new request" remote=10.0.0.5:51234
        method=GET path=/image.avif user-agent="Mozilla/5.0 ..."
        x-forwarded-for=203.0.113.7 x-real-ip=203.0.113.7

The proxy headers only appear when present. They are logged as sent and
never trusted for anything else.

This stage is an observer: it never changes the request or the response,
and a logging problem never fails the request (``logging`` reports handler
errors on stderr and carries on).

=============================================================================
"""

from typing import Optional
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from ..logs import request_context
from .base import Middleware, NextHandler


# Namespaced access logger, e.g.:
#   logging.getLogger("staticserver.access").setLevel(logging.WARNING)
access_logger = logging.getLogger("staticserver.access")


class RequestLoggingMiddleware(Middleware):
    """Logs each request's context, then forwards it."""

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        message: str = "handling new request",
        log_level: int = logging.INFO,
    ):
        self.logger = logger or access_logger
        self.message = message
        self.log_level = log_level

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        self.logger.log(
            self.log_level,
            self.message,
            extra={"context": request_context(request)},
        )
        return next(request)
