"""
=============================================================================
REQUEST BODY READERS
=============================================================================

Handlers never get the raw body bytes directly from the socket; they read
them through a reader attached to the request (``request.stream``). That
indirection is what lets a middleware cap the body without the handler
knowing about it:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     BODY READER WRAPPING                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   parser:        request.stream = BodyReader(body)                  │
    │                                   │                                  │
    │   BodyLimit MW:  request.stream = LimitedBodyReader(stream, 1024)   │
    │                                   │                                  │
    │   handler:       request.stream.read()                              │
    │                      │                                               │
    │                      ├── <= 1024 bytes  → data                       │
    │                      └── >  1024 bytes  → RequestBodyTooLargeError   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The limit is enforced when the body is READ, the same way a max-bytes
reader works: a handler that never touches the body is not affected by an
oversized one.

=============================================================================
"""

import io
from typing import Optional


class RequestBodyTooLargeError(Exception):
    """
    Raised when a body read goes past the configured cap.

    Carries the limit so the caller can report it.
    """

    def __init__(self, limit: int):
        super().__init__(f"http: request body too large (limit {limit} bytes)")
        self.limit = limit


class BodyReader:
    """Reader over an already-received request body."""

    def __init__(self, data: bytes = b""):
        self._buffer = io.BytesIO(data)

    def read(self, size: Optional[int] = -1) -> bytes:
        if size is None:
            size = -1
        return self._buffer.read(size)

    def close(self) -> None:
        self._buffer.close()


class LimitedBodyReader:
    """
    Wraps another reader and refuses to hand out more than ``limit`` bytes.

    =========================================================================
    HOW THE LIMIT IS DETECTED
    =========================================================================

    We always ask the inner reader for ONE byte more than the caller is
    still allowed to get. If that extra byte exists, the body is over the
    limit and we raise. Otherwise the caller gets what it asked for.

        limit = 4, body = b"hello"

        read()   → inner.read(5) → b"hello" (5 > 4) → raise
        read(2)  → inner.read(2) → b"he"            → ok, 2 left
        read(3)  → inner.read(3) → b"llo"  (3 > 2)  → raise

    =========================================================================
    """

    def __init__(self, inner, limit: int):
        self._inner = inner
        self.limit = limit
        self._remaining = limit
        self._exceeded = False

    @property
    def exceeded(self) -> bool:
        """True once a read has gone past the limit."""
        return self._exceeded

    def read(self, size: Optional[int] = -1) -> bytes:
        if self._exceeded:
            raise RequestBodyTooLargeError(self.limit)

        if size is None or size < 0 or size > self._remaining:
            want = self._remaining + 1
        else:
            want = size

        data = self._inner.read(want)
        if len(data) > self._remaining:
            self._exceeded = True
            self._remaining = 0
            raise RequestBodyTooLargeError(self.limit)

        self._remaining -= len(data)
        return data

    def close(self) -> None:
        self._inner.close()
