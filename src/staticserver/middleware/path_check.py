"""
=============================================================================
PATH CHECK MIDDLEWARE
=============================================================================

Rejects any request whose path contains a parent-directory token.

    GET /robots.txt            → forwarded
    GET /x/../robots.txt       → 400 "Invalid path"
    GET /%2e%2e/robots.txt     → 400 (the parser URL-decodes first)

Every route is a fixed path today, so nothing downstream builds file paths
from the URL. The check stays so that anything which later does cannot be
walked out of the asset root.

=============================================================================
"""

from ..errors import INVALID_PATH, ErrorReporter
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from .base import Middleware, NextHandler


class PathCheckMiddleware(Middleware):
    """400 for any path containing ``..``."""

    TRAVERSAL_TOKEN = ".."

    def __init__(self, reporter: ErrorReporter):
        self.reporter = reporter

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        if self.TRAVERSAL_TOKEN in request.path:
            return self.reporter.report(request, INVALID_PATH)
        return next(request)
