"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes this server can actually emit, with their reason phrases.

    ┌──────┬──────────────────────────┬──────────────────────────────────┐
    │ Code │ Phrase                   │ Emitted when                     │
    ├──────┼──────────────────────────┼──────────────────────────────────┤
    │ 200  │ OK                       │ asset served                     │
    │ 400  │ Bad Request              │ path contains "..", bad syntax   │
    │ 404  │ Not Found                │ no route for the path            │
    │ 405  │ Method Not Allowed       │ anything other than GET          │
    │ 408  │ Request Timeout          │ headers not received in time     │
    │ 413  │ Payload Too Large        │ body / head over the cap         │
    │ 500  │ Internal Server Error    │ asset missing or unreadable      │
    │ 503  │ Service Unavailable      │ worker pool refused connection   │
    │ 505  │ HTTP Version Not Supp.   │ not HTTP/1.0 or HTTP/1.1         │
    └──────┴──────────────────────────┴──────────────────────────────────┘

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes used by the server.

    IntEnum, so members compare equal to plain integers:

        >>> HTTPStatus.OK == 200
        True
        >>> HTTPStatus.METHOD_NOT_ALLOWED.phrase
        'Method Not Allowed'
    """

    OK = 200

    BAD_REQUEST = 400
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    PAYLOAD_TOO_LARGE = 413

    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line (``HTTP/1.1 200 OK``)."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_client_error(self) -> bool:
        return 400 <= self < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self < 600


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}


def reason_phrase(code: int) -> str:
    """
    Reason phrase for any integer code.

    Error outcomes carry plain ints, so the response layer cannot assume the
    code is a member of HTTPStatus.
    """
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        return "Unknown"
