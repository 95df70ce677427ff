"""
=============================================================================
HTTP RESPONSE
=============================================================================

The response object every handler and middleware returns, plus the builder
used to construct it.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     RESPONSE LIFECYCLE                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   handler / reporter      middleware (outward)      listener        │
    │   ──────────────────      ────────────────────      ────────        │
    │   HTTPResponse(...)  ───► set_header(...)      ───► to_bytes()      │
    │                            (security headers)       sendall()       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Responses are plain mutable data until the listener serializes them, so a
middleware can decorate whatever came back from further down the chain.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Union

from .status_codes import HTTPStatus, reason_phrase


PLAIN_TEXT = "text/plain; charset=utf-8"


@dataclass
class HTTPResponse:
    """
    An HTTP response to be written to the client.

    ``status`` is an int (HTTPStatus members are ints too) so that error
    outcomes can carry any code without going through the enum.
    """

    status: int = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """``HTTP/1.1 200 OK``"""
        return f"{self.version} {int(self.status)} {reason_phrase(self.status)}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a header, returning self for chaining."""
        self.headers[name] = value
        return self

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup (response names keep their case)."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        self.body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def to_bytes(self, server_name: str = "staticserver") -> bytes:
        """
        Serialize to wire format.

            HTTP/1.1 200 OK\\r\\n
            Content-Type: text/html\\r\\n
            Content-Length: 1234\\r\\n      ← added if missing
            Date: Sun, 18 Oct 2026 ...\\r\\n ← added if missing
            Server: staticserver\\r\\n       ← added if missing
            \\r\\n
            <body bytes>
        """
        response_headers = dict(self.headers)

        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))
        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))
        if "Server" not in response_headers and server_name:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        head = "\r\n".join(lines).encode("latin-1") + b"\r\n"
        return head + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .content_type("image/avif")
            .cache_control("public, max-age=31536000")
            .body(payload)
            .build())
    """

    def __init__(self):
        self._status: int = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: int) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def cache_control(self, value: str) -> "ResponseBuilder":
        """
        Set Cache-Control verbatim.

        Assets declare the whole directive string themselves
        (e.g. ``public, max-age=31536000``), so no max-age arithmetic here.
        """
        return self.header("Cache-Control", value)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def text(self, text: str) -> "ResponseBuilder":
        """Plain-text body with the matching Content-Type."""
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = PLAIN_TEXT
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=dict(self._headers),
            body=self._body,
        )


def format_http_date(dt: datetime) -> str:
    """
    Format a UTC datetime as an HTTP-date (RFC 7231), e.g.
    ``Sun, 18 Oct 2026 12:00:00 GMT``.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


def plain_error(status: int, message: str) -> HTTPResponse:
    """
    Plain-text error response, the shape every error path in this server
    uses: body is exactly ``message``, nosniff so browsers never try to
    render it as anything but text.
    """
    return (ResponseBuilder()
        .status(status)
        .text(message)
        .header("X-Content-Type-Options", "nosniff")
        .build())


def not_found() -> HTTPResponse:
    """404 for paths with no route."""
    return plain_error(HTTPStatus.NOT_FOUND, "404 page not found")
