"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All tunables live in one dataclass. Values come from three layers, later
layers winning:

    defaults (below)  →  STATIC_* environment variables  →  CLI flags

The defaults match the production deployment: listen on every interface,
port 8080, tight header deadline, 15 s for everything else.

=============================================================================
"""

from dataclasses import dataclass
from typing import Mapping, Optional
import os


LOG_FORMATS = ("text", "json")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerConfig:
    """
    Configuration for the static server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK     host, port, backlog, buffer_size
    TIMEOUTS    read_header_timeout, read_timeout, write_timeout,
                idle_timeout
    LIMITS      max_body_bytes, max_request_size
    THREADING   workers, max_workers
    CONTENT     assets_dir
    LOGGING     log_level, log_format
    IDENTITY    server_name

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """Address to bind. Every interface by default (runs behind a proxy)."""

    port: int = 8080
    """Port to listen on. 0 asks the OS for a free port (tests)."""

    backlog: int = 128
    """Accept queue length."""

    buffer_size: int = 8192
    """Bytes per recv() call."""

    # ─────────────────────────────────────────────────────────────────────
    # TIMEOUTS (seconds)
    # ─────────────────────────────────────────────────────────────────────

    read_header_timeout: float = 5.0
    """
    Deadline for receiving the complete request head. For the first
    request it runs from accept, later ones from their first byte. A client
    that stalls mid-head gets 408 and is disconnected.
    """

    read_timeout: float = 15.0
    """Deadline for reading the whole request, head and body."""

    write_timeout: float = 15.0
    """Deadline for writing one response."""

    idle_timeout: float = 15.0
    """How long a keep-alive connection may wait for its next request."""

    # ─────────────────────────────────────────────────────────────────────
    # LIMITS
    # ─────────────────────────────────────────────────────────────────────

    max_body_bytes: int = 1024
    """Most body bytes any handler may read (BodyLimitMiddleware)."""

    max_request_size: int = 1024 * 1024
    """
    Transport cap on head + body. Larger requests are refused with 413
    before parsing.
    """

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL
    # ─────────────────────────────────────────────────────────────────────

    workers: int = 8
    """Worker threads kept running; each serves one connection at a time."""

    max_workers: int = 128
    """
    Ceiling the pool may grow to while every worker is busy (idle
    keep-alive connections hold a worker each).
    """

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    assets_dir: Optional[str] = None
    """Serve assets from this directory instead of the bundled ones."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"

    log_format: str = "text"
    """'text' (key=value) or 'json'."""

    # ─────────────────────────────────────────────────────────────────────
    # SERVER IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "staticserver"
    """Value of the Server response header."""

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        STATIC_HOST           bind address       (default: 0.0.0.0)
        STATIC_PORT           port               (default: 8080)
        STATIC_WORKERS        worker threads     (default: 8)
        STATIC_MAX_WORKERS    worker ceiling     (default: 128)
        STATIC_ASSETS_DIR     assets directory   (default: bundled assets)
        STATIC_LOG_LEVEL      logging level      (default: INFO)
        STATIC_LOG_FORMAT     text | json        (default: text)
        STATIC_MAX_BODY_BYTES body read cap      (default: 1024)

        Unset variables keep the dataclass default.

        =====================================================================

        Raises:
            ValueError: A numeric variable is not a number.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def get(name: str, default, convert=str):
            value = env.get(f"STATIC_{name}")
            if value is None or value == "":
                return default
            try:
                return convert(value)
            except ValueError:
                raise ValueError(f"STATIC_{name}: invalid value {value!r}") from None

        return cls(
            host=get("HOST", defaults.host),
            port=get("PORT", defaults.port, int),
            workers=get("WORKERS", defaults.workers, int),
            max_workers=get("MAX_WORKERS", defaults.max_workers, int),
            assets_dir=get("ASSETS_DIR", defaults.assets_dir),
            log_level=get("LOG_LEVEL", defaults.log_level),
            log_format=get("LOG_FORMAT", defaults.log_format),
            max_body_bytes=get("MAX_BODY_BYTES", defaults.max_body_bytes, int),
        )

    @property
    def address(self) -> str:
        """``host:port`` as logged at startup."""
        return f"{self.host}:{self.port}"

    def validate(self) -> None:
        """
        Fail fast on values the server cannot run with.

        Raises:
            ValueError: Describing the first bad value.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.workers < 1:
            raise ValueError("workers must be >= 1")

        if self.max_workers < self.workers:
            raise ValueError("max_workers must be >= workers")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        for name in ("read_header_timeout", "read_timeout", "write_timeout", "idle_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")

        if self.max_body_bytes < 0:
            raise ValueError("max_body_bytes must be >= 0")

        if self.max_request_size < 1024:
            raise ValueError("max_request_size must be >= 1024")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {', '.join(LOG_FORMATS)}")
