"""
=============================================================================
ASSET HANDLERS
=============================================================================

Every route serves exactly one asset, described by an AssetDescriptor:

    ┌────────────────────┬─────────────────┬──────────────┬───────────────────────────┐
    │ Route              │ Logical name    │ Content-Type │ Cache-Control             │
    ├────────────────────┼─────────────────┼──────────────┼───────────────────────────┤
    │ /, /ofyou          │ index.html      │ text/html    │ -                         │
    │ /image.avif        │ cash.avif       │ image/avif   │ public, max-age=31536000  │
    │ /image-small.avif  │ cash-small.avif │ image/avif   │ public, max-age=31536000  │
    │ /robots.txt        │ robots.txt      │ text/plain   │ -                         │
    └────────────────────┴─────────────────┴──────────────┴───────────────────────────┘

The images never change for a given deployment, so they are cacheable for
a year. The page and robots file are left to the client's defaults.

=============================================================================
FLOW
=============================================================================

    AssetHandler(request)
        │
        ├── source.fetch(logical_name)
        │       │
        │       ├── AssetNotFoundError / OSError
        │       │       └── reporter.report(load_failed(cause)) → 500
        │       │
        │       └── bytes
        │
        └── 200, Content-Type, [Cache-Control], body = bytes

Writing the response is the listener's job. A failed write is reported
there with ``write_failed``.

=============================================================================
"""

from dataclasses import dataclass
from typing import Optional

from ..content import AssetNotFoundError, ContentSource
from ..errors import ErrorReporter, load_failed
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder


IMMUTABLE_CACHE = "public, max-age=31536000"


@dataclass(frozen=True)
class AssetDescriptor:
    """What to fetch and how to label it."""

    logical_name: str
    content_type: str
    cache_control: Optional[str] = None


INDEX = AssetDescriptor("index.html", "text/html")
IMAGE = AssetDescriptor("cash.avif", "image/avif", IMMUTABLE_CACHE)
SMALL_IMAGE = AssetDescriptor("cash-small.avif", "image/avif", IMMUTABLE_CACHE)
ROBOTS = AssetDescriptor("robots.txt", "text/plain")


class AssetHandler:
    """
    Terminal handler serving one asset.

    Usage:
        handler = AssetHandler(IMAGE, PackageContentSource(), ErrorReporter())
        response = handler(request)
    """

    def __init__(
        self,
        descriptor: AssetDescriptor,
        source: ContentSource,
        reporter: ErrorReporter,
    ):
        self.descriptor = descriptor
        self.source = source
        self.reporter = reporter

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        try:
            payload = self.source.fetch(self.descriptor.logical_name)
        except (AssetNotFoundError, OSError) as e:
            return self.reporter.report(request, load_failed(e))

        builder = (ResponseBuilder()
            .content_type(self.descriptor.content_type)
            .body(payload))

        if self.descriptor.cache_control:
            builder.cache_control(self.descriptor.cache_control)

        return builder.build()

    def __repr__(self) -> str:
        return f"AssetHandler({self.descriptor.logical_name!r})"
