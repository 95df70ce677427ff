"""
=============================================================================
SECURITY HEADERS MIDDLEWARE
=============================================================================

Sets a fixed set of browser hardening headers on every response that comes
back through it:

    ┌────────────────────────────┬─────────────────────────────────────────┐
    │ Header                     │ Effect                                  │
    ├────────────────────────────┼─────────────────────────────────────────┤
    │ X-Content-Type-Options     │ nosniff: trust Content-Type as sent     │
    │ X-Frame-Options            │ DENY: never render inside a frame       │
    │ X-XSS-Protection           │ legacy XSS filter in blocking mode      │
    │ Referrer-Policy            │ full URL same-origin, origin otherwise  │
    │ Content-Security-Policy    │ only same-origin resources; inline CSS  │
    └────────────────────────────┴─────────────────────────────────────────┘

The headers are applied AFTER the rest of the chain has produced a
response, and this middleware sits outermost, so 400/405/413/500 responses
from inner stages carry them too.

=============================================================================
"""

from types import MappingProxyType
from typing import Mapping, Optional

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from .base import Middleware, NextHandler


SECURITY_HEADERS: Mapping[str, str] = MappingProxyType({
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": (
        "default-src 'self'; img-src 'self'; style-src 'self' 'unsafe-inline'"
    ),
})


class SecurityHeadersMiddleware(Middleware):
    """Unconditionally sets SECURITY_HEADERS on the response."""

    def __init__(self, headers: Optional[Mapping[str, str]] = None):
        self.headers = dict(SECURITY_HEADERS if headers is None else headers)

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        response = next(request)
        for name, value in self.headers.items():
            response.set_header(name, value)
        return response
