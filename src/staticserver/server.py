"""
=============================================================================
STATIC SERVER
=============================================================================

Ties the pieces together:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   SocketServer ──accept──► ThreadPool ──► _process_connection()     │
    │                                              │                       │
    │                     ┌────────────────────────┘                       │
    │                     ▼                                                │
    │   Connection.read_request()   (timeouts, transport cap)             │
    │                     │                                                │
    │   RequestParser.parse()       (400 / 413 / 505 on bad input)        │
    │                     │                                                │
    │   RouteTable.handle()  ── no route ──► 404 "404 page not found"      │
    │                     │       (".." in path ──► 400 "Invalid path")   │
    │                     │                                                │
    │          middleware chain + AssetHandler                             │
    │                     │                                                │
    │   Connection.send_response()  ── OSError ──► write_failed → 500     │
    │                     │                        (best effort) + close   │
    │   keep-alive? ──yes──► read next request                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Errors that happen before there is a parsed request (timeouts, malformed
or oversized requests) are answered directly with a plain-text status and
the connection is closed. Nothing a client sends can stop the process.

=============================================================================
"""

from typing import Optional
import logging

from .config import ServerConfig
from .content import ContentSource, DirectoryContentSource, PackageContentSource
from .core import Connection, ConnectionState, SocketServer, ThreadPool
from .errors import (
    BODY_TOO_LARGE,
    INVALID_PATH,
    ErrorOutcome,
    ErrorReporter,
    unexpected_error,
    write_failed,
)
from .http.request import HTTPParseError, HTTPRequest, RequestParser
from .http.response import HTTPResponse, not_found, plain_error
from .http.router import RouteTable
from .http.status_codes import HTTPStatus, reason_phrase
from .middleware import SECURITY_HEADERS, default_middleware
from .routes import build_route_table


logger = logging.getLogger("staticserver.server")


class StaticServer:
    """
    HTTP/1.1 server for the fixed asset routes.

    Usage:
        server = create_server(ServerConfig.from_env())
        server.run()            # blocks until SIGINT/SIGTERM or shutdown()
    """

    def __init__(
        self,
        routes: RouteTable,
        config: Optional[ServerConfig] = None,
        reporter: Optional[ErrorReporter] = None,
    ):
        self.config = config or ServerConfig()
        self.config.validate()

        self.routes = routes
        self.reporter = reporter or ErrorReporter()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.workers,
            max_workers=self.config.max_workers,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._running = False

    @property
    def ready(self):
        """Event set once the server is accepting connections."""
        return self._socket_server.ready

    @property
    def address(self):
        """The (host, port) actually bound."""
        return self._socket_server.address

    # ─────────────────────────────────────────────────────────────────────
    # LIFECYCLE
    # ─────────────────────────────────────────────────────────────────────

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Serve until shutdown() or a termination signal.

        Args:
            host: Override config host.
            port: Override config port.

        Raises:
            OSError: The listening address could not be bound.
        """
        if host:
            self.config.host = host
        if port is not None:
            self.config.port = port

        self._running = True
        self._thread_pool.start()

        logger.info("starting server", extra={"context": {"address": self.config.address}})

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Ask a running server to stop. run() returns once it has."""
        self._socket_server.shutdown()

    def _shutdown(self):
        self._running = False
        self._thread_pool.shutdown(wait=True, timeout=self.config.write_timeout)
        logger.info("server stopped")

    # ─────────────────────────────────────────────────────────────────────
    # CONNECTION HANDLING
    # ─────────────────────────────────────────────────────────────────────

    def _handle_connection(self, conn: Connection):
        """Called by the accept loop; hands the connection to a worker."""
        self._thread_pool.submit(self._process_connection, args=(conn,))

    def _process_connection(self, conn: Connection):
        """
        Keep-alive loop for one connection (runs in a worker thread).

            read → parse → dispatch → write → (keep-alive ? repeat : close)
        """
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                    if raw_request is None:
                        break
                    request = self._parser.parse(raw_request, conn.address)
                except TimeoutError as e:
                    logger.debug(f"[{conn.id}] {e}")
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT)
                    break
                except HTTPParseError as e:
                    logger.info(
                        "rejected malformed request",
                        extra={"context": {
                            "remote": f"{conn.address[0]}:{conn.address[1]}",
                            "status": int(e.status_code),
                            "error": str(e),
                        }},
                    )
                    self._send_error(conn, e.status_code)
                    break

                conn.state = ConnectionState.PROCESSING
                response = self.dispatch(request)

                keep_alive = (
                    request.is_keep_alive
                    and not request.close_connection
                    and response.get_header("Connection").lower() != "close"
                )
                response.set_header("Connection", "keep-alive" if keep_alive else "close")

                if not self._write(conn, request, response):
                    break

                if not keep_alive:
                    break

    def dispatch(self, request: HTTPRequest) -> HTTPResponse:
        """
        Route one parsed request to its response.

        Only exact paths match. A miss is a bare 404, unless the path holds
        ".." in which case it is reported as an invalid path (400). Anything
        a handler lets escape is reported as a 500.
        """
        try:
            response = self.routes.handle(request)
        except Exception as e:
            request.close_connection = True
            return self._report(request, unexpected_error(e))

        if response is None:
            if ".." in request.path:
                return self._report(request, INVALID_PATH)
            return not_found()
        return response

    def _report(self, request: HTTPRequest, outcome: ErrorOutcome) -> HTTPResponse:
        """Reporter response for failures outside the middleware chain."""
        response = self.reporter.report(request, outcome)
        for name, value in SECURITY_HEADERS.items():
            response.set_header(name, value)
        return response

    def _write(self, conn: Connection, request: HTTPRequest, response: HTTPResponse) -> bool:
        """
        Send a response. On failure report it, try once to tell the client,
        and return False so the connection is closed.
        """
        try:
            conn.send_response(response.to_bytes(self.config.server_name))
            return True
        except OSError as e:
            fallback = self._report(request, write_failed(e))
            fallback.set_header("Connection", "close")
            try:
                conn.send_response(fallback.to_bytes(self.config.server_name))
            except OSError as retry_error:
                logger.debug(f"[{conn.id}] Error response not delivered: {retry_error}")
            return False

    def _send_error(self, conn: Connection, status: int):
        """Answer a request that never made it to routing."""
        if status == HTTPStatus.PAYLOAD_TOO_LARGE:
            message = BODY_TOO_LARGE.public_message
        else:
            message = reason_phrase(status)
        response = plain_error(status, message)
        response.set_header("Connection", "close")
        try:
            conn.send_response(response.to_bytes(self.config.server_name))
        except OSError as e:
            logger.debug(f"[{conn.id}] Error response not delivered: {e}")


def create_server(
    config: Optional[ServerConfig] = None,
    source: Optional[ContentSource] = None,
    reporter: Optional[ErrorReporter] = None,
) -> StaticServer:
    """
    Build a server with the standard routes and middleware.

    Args:
        config: Server configuration (defaults if omitted).
        source: Asset source. Defaults to ``config.assets_dir`` if set,
            otherwise the bundled assets.
        reporter: Error reporter shared by the routes and the listener.
    """
    config = config or ServerConfig()
    config.validate()

    if source is None:
        if config.assets_dir:
            source = DirectoryContentSource(config.assets_dir)
        else:
            source = PackageContentSource()

    reporter = reporter or ErrorReporter()
    middleware = default_middleware(reporter, max_body_bytes=config.max_body_bytes)
    routes = build_route_table(source, reporter, middleware)

    return StaticServer(routes, config, reporter)
