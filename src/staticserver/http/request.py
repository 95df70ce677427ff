"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses the raw bytes read by a Connection into an HTTPRequest, the
read-only view of a request that the rest of the pipeline works with.

=============================================================================
WHAT THE PARSER DOES NOT DO
=============================================================================

The parser only rejects requests it cannot make sense of:

    ┌──────────────────────────────┬────────────────────────────────────┐
    │ Rejected here (HTTPParseError)│ Left to the middleware chain       │
    ├──────────────────────────────┼────────────────────────────────────┤
    │ malformed request line  400  │ method other than GET       405    │
    │ unsupported version     505  │ path containing ".."        400    │
    │ request over the cap    413  │ body over 1024 bytes        413    │
    └──────────────────────────────┴────────────────────────────────────┘

Policy checks belong to the middleware so that every rejection goes
through the error reporter and is logged with full request context. If the
parser refused ".." paths itself, those requests would never be audited.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict
from urllib.parse import parse_qs, urlparse, unquote
import re

from .body import BodyReader


class HTTPParseError(Exception):
    """
    Raised when the raw request cannot be parsed.

    Carries the status code the listener should answer with:

        400 Bad Request                 - malformed request syntax
        413 Payload Too Large           - request exceeds transport cap
        505 HTTP Version Not Supported  - not HTTP/1.0 or HTTP/1.1
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         Request method as sent ("GET", "POST", ...)
        path:           URL-decoded path WITHOUT query string.
                        Kept exactly as sent, ".." segments included,
                        so the path sanitizer can see them.
        version:        "HTTP/1.1" or "HTTP/1.0"
        headers:        Header name → value, names lower-cased
        query_params:   Parsed query string, "?a=1&a=2" → {"a": ["1", "2"]}
        body:           Raw body bytes (length from Content-Length)
        stream:         Reader over ``body``; middleware may wrap it
        client_address: (ip, port) of the peer socket
        close_connection:
                        Set by a stage that wants the connection closed
                        after this response (e.g. body over the cap)

    =========================================================================
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""

    client_address: tuple[str, int] = ("", 0)
    close_connection: bool = False

    stream: Optional[BodyReader] = field(default=None, repr=False)

    def __post_init__(self):
        if self.stream is None:
            self.stream = BodyReader(self.body)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def content_length(self) -> int:
        """Content-Length as an int, 0 if missing or invalid."""
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def forwarded_for(self) -> str:
        """
        X-Forwarded-For as set by a reverse proxy ("" when absent).

        Only logged, never trusted for any decision.
        """
        return self.headers.get("x-forwarded-for", "")

    @property
    def real_ip(self) -> str:
        """X-Real-IP as set by a reverse proxy ("" when absent)."""
        return self.headers.get("x-real-ip", "")

    @property
    def remote(self) -> str:
        """Peer address as ``ip:port``."""
        host, port = self.client_address
        return f"{host}:{port}"

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the client wants to reuse the connection.

            HTTP/1.1: keep-alive unless "Connection: close"
            HTTP/1.0: close unless "Connection: keep-alive"
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Parses raw HTTP/1.x request bytes into HTTPRequest objects.

    ==========================================================================
    PARSER STEPS
    ==========================================================================

        1. Size check against max_request_size        → 413
        2. Split head / body at \\r\\n\\r\\n              → 400 if missing
        3. Request line: METHOD SP URI SP VERSION     → 400 / 505
        4. Header lines, names lower-cased
        5. Body sliced to Content-Length              → 400 if short

    ==========================================================================
    """

    # Methods are any upper-case token here; the method filter decides which
    # ones are actually allowed.
    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    def __init__(self, max_request_size: int = 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw request bytes.

        Args:
            data: Raw HTTP request bytes from the connection.
            client_address: Peer (ip, port), kept for logging.

        Returns:
            Parsed HTTPRequest.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413,
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("latin-1")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")
        if content_length < 0:
            raise HTTPParseError("Invalid Content-Length header")

        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(
        self,
        line: str
    ) -> tuple[str, str, Dict[str, list[str]], str]:
        """
        Split ``GET /path?query HTTP/1.1`` into its parts.

        The path is URL-decoded, so ``/%2e%2e/x`` reaches the path
        sanitizer as ``/../x``.
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, uri, version = match.groups()

        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505,
            )

        if uri.startswith("/"):
            # Origin form. urlparse would read "//x" as a host.
            raw_path, _, query = uri.partition("#")[0].partition("?")
        else:
            parsed = urlparse(uri)
            raw_path, query = parsed.path, parsed.query

        path = unquote(raw_path) or "/"
        query_params = parse_qs(query, keep_blank_values=True)

        return method, path, query_params, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse ``Name: value`` lines into a dict with lower-case names.

        Repeated headers are joined with ", " (RFC 7230 §3.2.2), which is
        also how a proxy chain shows up in X-Forwarded-For.
        """
        headers: Dict[str, str] = {}

        for line in lines:
            if not line:
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue  # lenient: skip malformed header lines

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 1024 * 1024
) -> HTTPRequest:
    """Parse one request with a throwaway RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
