"""
=============================================================================
STATICSERVER
=============================================================================

A small HTTP/1.1 server for a fixed set of assets: one HTML page, a robots
file and two AVIF images, on five GET routes.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  /, /ofyou          index.html        text/html                     │
    │  /image.avif        cash.avif         image/avif   (cached 1 year)  │
    │  /image-small.avif  cash-small.avif   image/avif   (cached 1 year)  │
    │  /robots.txt        robots.txt        text/plain                    │
    └─────────────────────────────────────────────────────────────────────┘

Every route runs behind the same middleware chain: security headers,
body-size cap, path sanitizer, GET-only filter, request logging. Every
failure is logged once and answered with a short plain-text message.

    from staticserver import ServerConfig, create_server

    server = create_server(ServerConfig(port=8080))
    server.run()

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .server import StaticServer, create_server

__all__ = ["ServerConfig", "StaticServer", "create_server", "__version__"]
