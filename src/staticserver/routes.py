"""
Route wiring: which path serves which asset, and the middleware around it.
"""

from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from .content import ContentSource
from .errors import ErrorReporter
from .handlers.assets import IMAGE, INDEX, ROBOTS, SMALL_IMAGE, AssetDescriptor, AssetHandler
from .http.router import RouteEntry, RouteTable
from .middleware import Middleware, MiddlewarePipeline, default_middleware


# "/ofyou" is an alias of "/": same descriptor, same handler instance.
ROUTES: Mapping[str, AssetDescriptor] = MappingProxyType({
    "/": INDEX,
    "/ofyou": INDEX,
    "/image.avif": IMAGE,
    "/image-small.avif": SMALL_IMAGE,
    "/robots.txt": ROBOTS,
})


def build_route_table(
    source: ContentSource,
    reporter: Optional[ErrorReporter] = None,
    middleware: Optional[Iterable[Middleware]] = None,
    routes: Mapping[str, AssetDescriptor] = ROUTES,
) -> RouteTable:
    """
    Wrap one AssetHandler per descriptor in the middleware chain and map
    every route path to it.

    Args:
        source: Where asset bytes come from.
        reporter: Error reporter shared by handlers and middleware.
        middleware: Chain to apply, outermost first. Defaults to
            ``default_middleware(reporter)``.
        routes: Path → descriptor mapping.
    """
    reporter = reporter or ErrorReporter()
    if middleware is None:
        middleware = default_middleware(reporter)

    pipeline = MiddlewarePipeline(middleware)

    wrapped = {}
    entries = []
    for path, descriptor in routes.items():
        if descriptor not in wrapped:
            wrapped[descriptor] = pipeline.wrap(AssetHandler(descriptor, source, reporter))
        entries.append(RouteEntry(path, wrapped[descriptor]))

    return RouteTable(entries)
