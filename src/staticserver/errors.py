"""
=============================================================================
ERROR REPORTING
=============================================================================

Every failure path in the pipeline ends the same way: build an
ErrorOutcome where the failure happened, hand it to the ErrorReporter,
return whatever response the reporter produced.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      ERROR OUTCOME FLOW                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   PathCheck / MethodFilter / BodyLimit / AssetHandler / listener    │
    │        │                                                             │
    │        │  ErrorOutcome(cause, log_message, public_message, status)   │
    │        ▼                                                             │
    │   ErrorReporter.report(request, outcome)                            │
    │        │                                                             │
    │        ├── cause is None  → logger.info(log_message, context)        │
    │        ├── cause present  → logger.error(log_message, context+error) │
    │        │                                                             │
    │        └── HTTPResponse(status, text/plain, body=public_message)     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The two log levels separate "the client asked for something we refuse"
(info) from "we failed to do our job" (error). Whatever the level, the
client only ever sees ``public_message``; the cause stays in the log.

=============================================================================
"""

from dataclasses import dataclass
from typing import Optional
import logging

from .http.request import HTTPRequest
from .http.response import HTTPResponse, plain_error
from .http.status_codes import HTTPStatus
from .logs import request_context


@dataclass(frozen=True)
class ErrorOutcome:
    """
    What went wrong, in enough detail to log it and answer the client.

    Attributes:
        log_message:    Message for the log record (server side only).
        public_message: Body of the HTTP response (client visible).
        status_code:    HTTP status of the response.
        cause:          Underlying exception, if the failure was ours.
        log_traceback:  Attach the cause's traceback to the log record.
    """

    log_message: str
    public_message: str
    status_code: int
    cause: Optional[BaseException] = None
    log_traceback: bool = False

    @property
    def is_server_error(self) -> bool:
        return self.cause is not None


# Client-side outcomes carry no cause and are logged at info level.

INVALID_PATH = ErrorOutcome(
    log_message="blocked - invalid path",
    public_message="Invalid path",
    status_code=HTTPStatus.BAD_REQUEST,
)

METHOD_NOT_ALLOWED = ErrorOutcome(
    log_message="blocked - method not allowed",
    public_message="Method Not Allowed",
    status_code=HTTPStatus.METHOD_NOT_ALLOWED,
)

BODY_TOO_LARGE = ErrorOutcome(
    log_message="blocked - request body too large",
    public_message="Request Entity Too Large",
    status_code=HTTPStatus.PAYLOAD_TOO_LARGE,
)


# Server-side outcomes wrap the exception that caused them.

def load_failed(cause: BaseException) -> ErrorOutcome:
    return ErrorOutcome(
        log_message="loading from static content",
        public_message="Error loading page",
        status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        cause=cause,
    )


def write_failed(cause: BaseException) -> ErrorOutcome:
    return ErrorOutcome(
        log_message="writing to response writer",
        public_message="Error loading page",
        status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        cause=cause,
    )


def unexpected_error(cause: BaseException) -> ErrorOutcome:
    """A handler raised something no stage knows how to answer."""
    return ErrorOutcome(
        log_message="unhandled error serving request",
        public_message="Internal Server Error",
        status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        cause=cause,
        log_traceback=True,
    )


class ErrorReporter:
    """
    Turns an ErrorOutcome into exactly one log record and one response.

    The logger is injected so tests (and embedding applications) decide
    where error records go; the default is the ``staticserver.errors``
    logger.

    Calling report() twice for the same request is a programming error: the
    first response is the one that gets written.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("staticserver.errors")

    def report(self, request: HTTPRequest, outcome: ErrorOutcome) -> HTTPResponse:
        context = request_context(request)

        if outcome.cause is not None:
            context["error"] = str(outcome.cause)
            self.logger.error(
                outcome.log_message,
                exc_info=outcome.cause if outcome.log_traceback else None,
                extra={"context": context},
            )
        else:
            self.logger.info(outcome.log_message, extra={"context": context})

        return plain_error(outcome.status_code, outcome.public_message)
