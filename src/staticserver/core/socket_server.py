"""
=============================================================================
SOCKET SERVER
=============================================================================

The TCP layer: create the listening socket, accept connections, hand each
one to a callback. Knows nothing about HTTP.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      SocketServer Internals                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    start(callback)                                                   │
    │        ├──► _create_socket()    SO_REUSEADDR, TCP_NODELAY, 1 s      │
    │        │                        accept timeout                       │
    │        ├──► bind() / listen()                                        │
    │        ├──► _setup_signals()    SIGTERM/SIGINT → shutdown()         │
    │        │                        (main thread only)                   │
    │        ├──► ready.set()                                              │
    │        └──► _accept_loop()      blocks until shutdown()             │
    │                 └──► callback(Connection(...))                       │
    │                                                                      │
    │    shutdown()   clears the flag; the loop notices within 1 s        │
    │    _cleanup()   restore signal handlers, close the socket           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from typing import Callable, Optional, Tuple
import logging
import signal
import socket
import threading

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


ACCEPT_POLL_INTERVAL = 1.0


class SocketServer:
    """
    Low-level TCP accept loop.

    Usage:
        server = SocketServer(config)
        server.start(handle_connection)  # blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._running = False
        self._original_handlers: dict = {}

        # Set once the socket is listening; tests wait on it.
        self.ready = threading.Event()

    @property
    def address(self) -> Tuple[str, int]:
        """
        The bound (host, port). With port 0 this is the port the OS chose,
        once the server is listening.
        """
        if self._socket is not None and self.ready.is_set():
            return self._socket.getsockname()[:2]
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Rebind immediately after a restart (no TIME_WAIT wait).
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # Responses are written in one sendall; don't hold back the tail.
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        # accept() wakes up regularly to notice shutdown().
        sock.settimeout(ACCEPT_POLL_INTERVAL)

        return sock

    def _setup_signals(self):
        # signal.signal() only works in the main thread; embedded servers
        # (tests) run the loop elsewhere and are stopped with shutdown().
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Bind, listen and accept until shutdown() is called.

        Raises:
            OSError: The address could not be bound.
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)

        self._running = True
        self._setup_signals()
        self.ready.set()

        host, port = self.address
        logger.debug(f"Listening on {host}:{port}")

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address[:2],
                buffer_size=self.config.buffer_size,
                read_header_timeout=self.config.read_header_timeout,
                read_timeout=self.config.read_timeout,
                write_timeout=self.config.write_timeout,
                idle_timeout=self.config.idle_timeout,
                max_request_size=self.config.max_request_size,
                max_body_bytes=self.config.max_body_bytes,
            )

            connection_handler(conn)

    def shutdown(self):
        """Stop accepting. Safe to call repeatedly and from any thread."""
        if self._running:
            logger.info("Shutting down listener...")
        self._running = False

    def _cleanup(self):
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self.ready.clear()
        self._running = False
