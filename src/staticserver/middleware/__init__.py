"""
=============================================================================
MIDDLEWARE
=============================================================================

Cross-cutting request policies, each an independent stage of the chain
around the asset handlers.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    DEFAULT MIDDLEWARE ORDER                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. SecurityHeadersMiddleware  decorator: headers on every reply   │
    │   2. BodyLimitMiddleware        cap readable body at 1024 bytes     │
    │   3. PathCheckMiddleware        ".." in path        → 400           │
    │   4. AllowedMethodsMiddleware   method != GET       → 405           │
    │   5. RequestLoggingMiddleware   observer: one INFO record           │
    │   ─────────────────────────────────────────────────────────────     │
    │      AssetHandler               terminal                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The headers decorator is outermost so that rejections from stages 2-4 carry
the headers as well. The gates run cheapest-first and before the logger, so
rejected requests produce one "blocked - ..." record from the error
reporter instead of an access record followed by an error record.

=============================================================================
"""

from logging import Logger
from typing import List, Optional

from ..errors import ErrorReporter
from .base import Chain, Middleware, MiddlewarePipeline, NextHandler
from .body_limit import DEFAULT_MAX_BODY_BYTES, BodyLimitMiddleware
from .logging import RequestLoggingMiddleware
from .methods import AllowedMethodsMiddleware
from .path_check import PathCheckMiddleware
from .security_headers import SECURITY_HEADERS, SecurityHeadersMiddleware


def default_middleware(
    reporter: ErrorReporter,
    access_logger: Optional[Logger] = None,
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES,
) -> List[Middleware]:
    """The standard chain, outermost first."""
    return [
        SecurityHeadersMiddleware(),
        BodyLimitMiddleware(reporter, max_bytes=max_body_bytes),
        PathCheckMiddleware(reporter),
        AllowedMethodsMiddleware(reporter),
        RequestLoggingMiddleware(access_logger),
    ]


__all__ = [
    # Base classes
    "Chain",
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",

    # Filters
    "BodyLimitMiddleware",
    "PathCheckMiddleware",
    "AllowedMethodsMiddleware",
    "RequestLoggingMiddleware",
    "SecurityHeadersMiddleware",

    "DEFAULT_MAX_BODY_BYTES",
    "SECURITY_HEADERS",
    "default_middleware",
]
