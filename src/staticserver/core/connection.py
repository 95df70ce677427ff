"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket: buffered reading of complete HTTP/1.1
requests, deadline-based timeouts, writing responses, orderly close.

TCP is a byte stream. A request may arrive in any number of recv() chunks,
and one chunk may hold the tail of one request and the head of the next,
so reads accumulate in ``_buffer`` until the head terminator (\\r\\n\\r\\n)
and then Content-Length body bytes are present. Leftover bytes stay in the
buffer for the next request on the connection.

=============================================================================
TIMEOUTS
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     ONE REQUEST ON A CONNECTION                      │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   keep-alive wait   first byte     head complete    body complete   │
    │   ────────────────────┼──────────────────┼───────────────┼──────    │
    │   │◄─ idle_timeout ──►│                                             │
    │                       │◄ read_header_ ──►│                          │
    │                       │     timeout      │                          │
    │                       │◄────────── read_timeout ────────►│          │
    │                                                                      │
    │   send_response():   sendall() bounded by write_timeout             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The first request on a connection has no idle phase: its header deadline
starts at accept time.

A declared Content-Length over ``max_body_bytes`` is refused with 413 as
soon as the head is in, so no oversized body is ever buffered.

A connection that sends nothing in time (new or keep-alive) is closed
quietly. A client that starts a request and then stalls gets a
TimeoutError, which the server answers with 408.

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
import logging
import socket
import time
import uuid

from ..http.request import HTTPParseError
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


HEAD_TERMINATOR = b"\r\n\r\n"
DRAIN_TIMEOUT = 0.5


class ConnectionState(Enum):
    """Connection lifecycle, for debug logging."""
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    One client connection.

    Attributes:
        socket: The accepted client socket.
        address: Client (ip, port).
        id: Short identifier used in debug logs.
        requests_handled: Requests read so far on this connection.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    requests_handled: int = 0

    buffer_size: int = 8192
    read_header_timeout: float = 5.0
    read_timeout: float = 15.0
    write_timeout: float = 15.0
    idle_timeout: float = 15.0
    max_request_size: int = 1024 * 1024
    max_body_bytes: int = 1024

    _buffer: bytes = field(default=b"", repr=False)
    _accepted_at: float = field(default_factory=time.monotonic, repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)

    # ─────────────────────────────────────────────────────────────────────
    # READING
    # ─────────────────────────────────────────────────────────────────────

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete request (head + Content-Length body).

        Returns:
            The raw request bytes, or None if the client closed the
            connection (or went idle) before starting a new request.

        Raises:
            TimeoutError: The head or the whole request was not received
                before its deadline.
            HTTPParseError: The head exceeds max_request_size, or the declared
                body exceeds max_body_bytes (413).
        """
        self.state = ConnectionState.READING

        if not self._buffer:
            started = self._wait_for_first_byte()
            if started is None:
                return None
        else:
            started = time.monotonic()

        header_deadline = started + self.read_header_timeout
        read_deadline = started + self.read_timeout

        while HEAD_TERMINATOR not in self._buffer:
            self._check_size(len(self._buffer))
            chunk = self._recv_until(header_deadline, "header")
            if not chunk:
                return None
            self._buffer += chunk

        header_end = self._buffer.find(HEAD_TERMINATOR)
        body_start = header_end + len(HEAD_TERMINATOR)
        self._check_size(body_start)

        content_length = self._parse_content_length(self._buffer[:header_end])
        self._check_body(content_length)
        self._check_size(body_start + content_length)

        while len(self._buffer) - body_start < content_length:
            chunk = self._recv_until(read_deadline, "body")
            if not chunk:
                break  # short body; the parser rejects it
            self._buffer += chunk

        request_end = body_start + content_length
        request_data = self._buffer[:request_end]
        self._buffer = self._buffer[request_end:]

        self.requests_handled += 1
        return request_data

    def _wait_for_first_byte(self) -> Optional[float]:
        """
        Block until the next request starts arriving.

        The first request is bounded by the header deadline from accept
        time; later ones by the keep-alive idle timeout.

        Returns:
            The monotonic time the first byte arrived, or None if the peer
            closed or sent nothing in time.
        """
        if self.requests_handled == 0:
            deadline = self._accepted_at + self.read_header_timeout
        else:
            self.state = ConnectionState.KEEP_ALIVE
            deadline = time.monotonic() + self.idle_timeout

        try:
            chunk = self._recv_until(deadline, "header")
        except TimeoutError:
            logger.debug(f"[{self.id}] No request before timeout")
            return None

        if not chunk:
            return None

        self._buffer += chunk
        if self.requests_handled == 0:
            return self._accepted_at
        return time.monotonic()

    def _recv_until(self, deadline: float, phase: str) -> bytes:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TimeoutError(f"Request {phase} read timeout")

        self.socket.settimeout(remaining)
        try:
            return self.socket.recv(self.buffer_size)
        except socket.timeout:
            raise TimeoutError(f"Request {phase} read timeout") from None
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _check_size(self, size: int) -> None:
        if size > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: exceeds {self.max_request_size} bytes",
                HTTPStatus.PAYLOAD_TOO_LARGE,
            )

    def _check_body(self, content_length: int) -> None:
        # Refused on the declared length, before any body byte is buffered.
        if content_length > self.max_body_bytes:
            raise HTTPParseError(
                f"Request body too large: {content_length} bytes exceeds {self.max_body_bytes}",
                HTTPStatus.PAYLOAD_TOO_LARGE,
            )

    def _parse_content_length(self, head: bytes) -> int:
        """
        Content-Length from the raw head, or 0.

        Malformed values read as 0 here; the parser rejects them properly.
        """
        for line in head.decode("latin-1").lower().split("\r\n")[1:]:
            if line.startswith("content-length:"):
                value = line.split(":", 1)[1].strip()
                if value.isdigit():
                    return int(value)
                return 0
        return 0

    # ─────────────────────────────────────────────────────────────────────
    # WRITING
    # ─────────────────────────────────────────────────────────────────────

    def send_response(self, data: bytes) -> None:
        """
        Write a full response within write_timeout.

        Raises:
            OSError: The write failed or timed out (socket.timeout is an
                OSError). The caller reports it and closes the connection.
        """
        self.state = ConnectionState.WRITING
        self.socket.settimeout(self.write_timeout)
        self.socket.sendall(data)

    # ─────────────────────────────────────────────────────────────────────
    # CLOSING
    # ─────────────────────────────────────────────────────────────────────

    def close(self):
        """
        Close the connection: half-close the write side, drain briefly so
        the peer is not reset mid-read, then release the socket.
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        # At most DRAIN_TIMEOUT in total, however fast the peer sends.
        deadline = time.monotonic() + DRAIN_TIMEOUT
        try:
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self.socket.settimeout(remaining)
                if not self.socket.recv(self.buffer_size):
                    break
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
