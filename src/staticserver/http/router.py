"""
=============================================================================
ROUTE TABLE
=============================================================================

A static, exact-path map from URL path to a fully-wrapped handler.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ROUTE TABLE                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   "/"                 ──► chain(index handler)                      │
    │   "/ofyou"            ──► chain(index handler)     (alias of "/")   │
    │   "/image.avif"       ──► chain(image handler)                      │
    │   "/image-small.avif" ──► chain(small image handler)                │
    │   "/robots.txt"       ──► chain(robots handler)                     │
    │   anything else       ──► None  (listener answers 404)              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

No patterns, no parameters, no path cleaning, no per-method routes:
"/robots.txt/" and "//image.avif" are misses. Method filtering happens
inside the chain so that a POST to "/" gets a logged 405 rather than a 404.

=============================================================================
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Iterable, Iterator, Mapping, Optional

from .request import HTTPRequest
from .response import HTTPResponse


Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass(frozen=True)
class RouteEntry:
    """One path and the composed handler serving it."""

    path: str
    handler: Handler


class RouteTable:
    """
    Immutable path → RouteEntry mapping.

    Built once at startup from a list of entries; there is no way to add or
    remove a route afterwards, so worker threads can share it without locks.
    """

    def __init__(self, entries: Iterable[RouteEntry]):
        table = {}
        for entry in entries:
            if entry.path in table:
                raise ValueError(f"Duplicate route: {entry.path}")
            table[entry.path] = entry
        self._entries: Mapping[str, RouteEntry] = MappingProxyType(table)

    def lookup(self, path: str) -> Optional[RouteEntry]:
        """Find the entry for a request path, or None."""
        return self._entries.get(path)

    def handle(self, request: HTTPRequest) -> Optional[HTTPResponse]:
        """
        Dispatch a request to its route.

        Returns None when no route matches; the caller decides what a miss
        looks like (the listener answers 404, or 400 when the path holds "..").
        """
        entry = self.lookup(request.path)
        if entry is None:
            return None
        return entry.handler(request)

    @property
    def paths(self) -> tuple[str, ...]:
        return tuple(self._entries)

    def __contains__(self, path: str) -> bool:
        return self.lookup(path) is not None

    def __iter__(self) -> Iterator[RouteEntry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)
