"""
=============================================================================
ALLOWED METHODS MIDDLEWARE
=============================================================================

Everything this server exposes is read-only, so only GET gets through.
HEAD, POST, OPTIONS and the rest are answered with 405 and an ``Allow``
header listing what would have worked (RFC 7231 §6.5.5).

=============================================================================
"""

from typing import Iterable

from ..errors import METHOD_NOT_ALLOWED, ErrorReporter
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from .base import Middleware, NextHandler


class AllowedMethodsMiddleware(Middleware):
    """405 for any method not in ``allowed`` (default: GET only)."""

    def __init__(self, reporter: ErrorReporter, allowed: Iterable[str] = ("GET",)):
        self.reporter = reporter
        self.allowed = tuple(method.upper() for method in allowed)
        if not self.allowed:
            raise ValueError("at least one method must be allowed")

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        if request.method not in self.allowed:
            response = self.reporter.report(request, METHOD_NOT_ALLOWED)
            response.set_header("Allow", ", ".join(self.allowed))
            return response
        return next(request)
