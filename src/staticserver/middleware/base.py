"""
=============================================================================
BASE MIDDLEWARE INTERFACE
=============================================================================

Defines the middleware contract and the pipeline that composes middleware
around a terminal handler. Chain of Responsibility, walked by index:

    ┌─────────────────────────────────────────────────────────────────────┐
    │              CHAIN OF RESPONSIBILITY - REQUEST FLOW                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Request ────────────────────────────────────────────────►         │
    │                                                                      │
    │   ┌─────────┐   ┌─────────┐   ┌─────────┐   ┌─────────┐   ┌──────┐  │
    │   │Security │──►│  Body   │──►│  Path   │──►│ Method  │──►│ Log  │─►│
    │   │ headers │   │  limit  │   │  check  │   │ filter  │   │      │  │
    │   └────┬────┘   └────┬────┘   └────┬────┘   └────┬────┘   └──┬───┘  │
    │        │             │             │ 400         │ 405       │      │
    │        │             │             ▼             ▼           ▼      │
    │        │             │        (short-circuit via ErrorReporter)     │
    │        │             │                                      Handler │
    │   [after]                                                           │
    │   add headers                                                       │
    │                                                                      │
    │   ◄──────────────────────────────────────────────── Response        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Each stage either forwards the request unchanged by calling ``next`` or
returns a response of its own and stops there.

=============================================================================
COMPOSITION BY ITERATION
=============================================================================

The pipeline does not build nested closures. A ``Chain`` holds the ordered
middleware tuple, the terminal handler and a position; calling it runs the
middleware at that position with a ``Chain`` one step further along as
``next``. When the position runs off the end, the terminal handler runs.

    Chain(mw, handler, 0)(req)
        → mw[0](req, Chain(mw, handler, 1))
              → mw[1](req, Chain(mw, handler, 2))
                    → ...
                          → handler(req)

The middleware list is a tuple captured when ``wrap`` is called, so a wrapped
handler never changes behaviour if the pipeline is modified later.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, Iterable, List, Sequence
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


# Signature of both the terminal handler and the "next" passed to middleware.
NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    One stage of the request pipeline.

    =========================================================================
    THE MIDDLEWARE CONTRACT
    =========================================================================

        def __call__(self, request, next) -> HTTPResponse

    A stage must do exactly one of:

        (a) forward:        return next(request)   (optionally decorate
                                                     the response after)
        (b) short-circuit:  return a response without calling next

    Stages never retry ``next`` and never try to recover from a failure
    further down the chain.

    =========================================================================
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """
        Process the request.

        Args:
            request: The incoming request.
            next: The rest of the chain. Call it to forward.

        Returns:
            The response from ``next`` or one produced here.
        """

    @property
    def name(self) -> str:
        """Middleware name for logging."""
        return self.__class__.__name__


class Chain:
    """
    A position in a middleware sequence; callable as a NextHandler.
    """

    __slots__ = ("_middleware", "_handler", "_index")

    def __init__(
        self,
        middleware: Sequence[Middleware],
        handler: NextHandler,
        index: int = 0,
    ):
        self._middleware = middleware
        self._handler = handler
        self._index = index

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        if self._index >= len(self._middleware):
            return self._handler(request)

        current = self._middleware[self._index]
        return current(request, Chain(self._middleware, self._handler, self._index + 1))


class MiddlewarePipeline:
    """
    Ordered list of middleware; first added is outermost.

        pipeline = MiddlewarePipeline()
        pipeline.use(SecurityHeadersMiddleware(), BodyLimitMiddleware(1024))

        handler = pipeline.wrap(asset_handler)
        response = handler(request)
    """

    def __init__(self, middleware: Iterable[Middleware] = ()):
        self._middleware: List[Middleware] = []
        self.use(*middleware)

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """Append one middleware (innermost so far). Returns self."""
        if not isinstance(middleware, Middleware):
            raise TypeError(f"Not a Middleware: {middleware!r}")
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        """Append several middleware in order. Returns self."""
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Compose the current middleware around ``handler``.

        Returns:
            A NextHandler that runs the whole chain.
        """
        return Chain(tuple(self._middleware), handler)

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)
