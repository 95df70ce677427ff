"""
Networking core: TCP accept loop, per-connection I/O, worker threads.
"""

from .connection import Connection, ConnectionState
from .socket_server import SocketServer
from .thread_pool import ThreadPool

__all__ = [
    "Connection",
    "ConnectionState",
    "SocketServer",
    "ThreadPool",
]
