"""
End-to-end tests against a running server over a real socket.
"""

import logging
import socket
import time

import pytest

from staticserver.content import MemoryContentSource
from staticserver.http.request import HTTPRequest
from staticserver.middleware import SECURITY_HEADERS
from staticserver.http.router import RouteEntry, RouteTable
from staticserver.server import StaticServer


def parse_response(raw: bytes):
    """Split raw response bytes into (status, headers, body)."""
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    status = int(lines[0].split(" ")[1])
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip().lower()] = value.strip()
    return status, headers, body


def get(path: str, method: str = "GET", extra: bytes = b"") -> bytes:
    return (
        f"{method} {path} HTTP/1.1\r\n"
        f"Host: localhost\r\n"
        f"Connection: close\r\n"
    ).encode() + extra + b"\r\n"


class TestRoutes:
    """Each route returns its asset with the right headers."""

    @pytest.mark.parametrize("path, name, content_type", [
        ("/", "index.html", "text/html"),
        ("/ofyou", "index.html", "text/html"),
        ("/image.avif", "cash.avif", "image/avif"),
        ("/image-small.avif", "cash-small.avif", "image/avif"),
        ("/robots.txt", "robots.txt", "text/plain"),
    ])
    def test_asset(self, live_server, assets, path, name, content_type):
        status, headers, body = parse_response(live_server.request(get(path)))

        assert status == 200
        assert body == assets.fetch(name)
        assert headers["content-type"] == content_type
        assert headers["content-length"] == str(len(body))
        for header, value in SECURITY_HEADERS.items():
            assert headers[header.lower()] == value

    def test_image_cache_control(self, live_server):
        _, headers, _ = parse_response(live_server.request(get("/image.avif")))

        assert headers["cache-control"] == "public, max-age=31536000"

    def test_index_no_cache_control(self, live_server):
        _, headers, _ = parse_response(live_server.request(get("/")))

        assert "cache-control" not in headers


class TestRejections:
    """Error responses produced by the middleware and the listener."""

    def test_unknown_path_404(self, live_server, caplog):
        with caplog.at_level(logging.INFO):
            status, headers, body = parse_response(live_server.request(get("/missing")))

        assert status == 404
        assert body == b"404 page not found"
        assert "x-frame-options" not in headers
        assert not [r for r in caplog.records if r.name == "staticserver.access"]

    def test_method_not_allowed(self, live_server):
        status, headers, body = parse_response(live_server.request(get("/", method="POST")))

        assert status == 405
        assert body == b"Method Not Allowed"
        assert headers["allow"] == "GET"
        assert headers["x-frame-options"] == "DENY"

    def test_parent_path_on_route(self, live_server):
        """'/x/../robots.txt' matches no route and is still an invalid path."""
        status, headers, body = parse_response(live_server.request(get("/x/../robots.txt")))

        assert status == 400
        assert body == b"Invalid path"
        assert headers["x-content-type-options"] == "nosniff"

    def test_encoded_parent_path(self, live_server):
        status, _, body = parse_response(live_server.request(get("/%2e%2e/robots.txt")))

        assert status == 400
        assert body == b"Invalid path"

    def test_parent_path_outside_routes(self, live_server, caplog):
        """A '..' path that matches no route is still an invalid path."""
        with caplog.at_level(logging.INFO, logger="tests.errors"):
            status, headers, body = parse_response(live_server.request(get("/../../etc/passwd")))

        assert status == 400
        assert body == b"Invalid path"
        assert headers["x-frame-options"] == "DENY"
        records = [r for r in caplog.records if r.name == "tests.errors"]
        assert [r.getMessage() for r in records] == ["blocked - invalid path"]

    @pytest.mark.parametrize("path", ["/robots.txt/", "//image.avif", "/ROBOTS.TXT"])
    def test_near_miss_paths_404(self, live_server, path):
        status, _, body = parse_response(live_server.request(get(path)))

        assert status == 404
        assert body == b"404 page not found"

    def test_large_body_refused_413(self, live_server):
        """The declared length is refused before the body is read."""
        head = get("/robots.txt", extra=b"Content-Length: 524288\r\n")

        with socket.create_connection(("127.0.0.1", live_server.port), timeout=3.0) as sock:
            sock.sendall(head + b"x" * 4096)
            chunks = []
            while True:
                chunk = sock.recv(65536)
                if not chunk:
                    break
                chunks.append(chunk)

        status, headers, body = parse_response(b"".join(chunks))
        assert status == 413
        assert body == b"Request Entity Too Large"
        assert headers["connection"] == "close"

    def test_body_at_limit_accepted(self, live_server):
        body = b"x" * 1024
        raw = get("/robots.txt", extra=f"Content-Length: {len(body)}\r\n".encode()) + body

        status, _, _ = parse_response(live_server.request(raw))

        assert status == 200

    def test_malformed_request_400(self, live_server):
        status, headers, body = parse_response(live_server.request(b"garbage\r\n\r\n"))

        assert status == 400
        assert body == b"Bad Request"
        assert headers["connection"] == "close"

    def test_unsupported_version_505(self, live_server):
        status, _, _ = parse_response(live_server.request(b"GET / HTTP/3.0\r\n\r\n"))

        assert status == 505

    def test_stalled_request_408(self, live_server):
        with socket.create_connection(("127.0.0.1", live_server.port), timeout=5.0) as sock:
            sock.sendall(b"GET / HTTP/1.1\r\nHost:")
            raw = sock.recv(65536)

        status, _, body = parse_response(raw)
        assert status == 408
        assert body == b"Request Timeout"


class TestKeepAlive:
    """Connection reuse."""

    def test_two_requests_one_connection(self, live_server):
        request = b"GET /robots.txt HTTP/1.1\r\nHost: localhost\r\n\r\n"

        with socket.create_connection(("127.0.0.1", live_server.port), timeout=3.0) as sock:
            sock.sendall(request)
            first = sock.recv(65536)
            sock.sendall(request)
            second = sock.recv(65536)

        assert parse_response(first)[0] == 200
        assert parse_response(first)[1]["connection"] == "keep-alive"
        assert parse_response(second)[0] == 200

    def test_connection_close_honoured(self, live_server):
        _, headers, _ = parse_response(live_server.request(get("/")))

        assert headers["connection"] == "close"


class TestLogging:
    """Log records produced while serving."""

    def test_access_log(self, live_server, caplog):
        raw = get("/image.avif", extra=b"User-Agent: pytest\r\nX-Real-IP: 203.0.113.8\r\n")

        with caplog.at_level(logging.INFO):
            live_server.request(raw)

        records = [r for r in caplog.records if r.name == "staticserver.access"]
        assert len(records) == 1
        assert records[0].getMessage() == "handling new request"
        assert records[0].context["path"] == "/image.avif"
        assert records[0].context["user-agent"] == "pytest"
        assert records[0].context["x-real-ip"] == "203.0.113.8"
        assert records[0].context["remote"].startswith("127.0.0.1:")

    def test_fetch_failure_cause_only_in_log(self, server_factory, caplog):
        server = server_factory(MemoryContentSource({}))

        with caplog.at_level(logging.INFO):
            status, _, body = parse_response(server.request(get("/image.avif")))

        assert status == 500
        assert body == b"Error loading page"
        errors = [r for r in caplog.records if r.name == "tests.errors"]
        assert len(errors) == 1
        assert errors[0].levelno == logging.ERROR
        assert "cash.avif" in errors[0].context["error"]


class TestDispatch:
    """StaticServer.dispatch without a socket."""

    def test_unhandled_exception_is_reported_500(self, config, reporter, caplog):
        def broken(request):
            raise RuntimeError("boom")

        server = StaticServer(RouteTable([RouteEntry("/", broken)]), config, reporter)
        request = HTTPRequest(method="GET", path="/", client_address=("127.0.0.1", 1))

        with caplog.at_level(logging.INFO, logger="tests.errors"):
            response = server.dispatch(request)

        assert response.status == 500
        assert response.body == b"Internal Server Error"
        assert request.close_connection
        for header, value in SECURITY_HEADERS.items():
            assert response.get_header(header) == value

        assert len(caplog.records) == 1
        record = caplog.records[0]
        assert record.levelno == logging.ERROR
        assert record.context["error"] == "boom"
        assert record.exc_info[0] is RuntimeError

    def test_no_route_is_404(self, config):
        server = StaticServer(RouteTable([]), config)

        response = server.dispatch(HTTPRequest(method="GET", path="/nope"))

        assert response.status == 404
        assert response.body == b"404 page not found"

    def test_no_route_with_parent_segment_is_400(self, config, reporter):
        server = StaticServer(RouteTable([]), config, reporter)

        response = server.dispatch(HTTPRequest(method="GET", path="/a/../b"))

        assert response.status == 400
        assert response.body == b"Invalid path"
        assert response.get_header("X-Content-Type-Options") == "nosniff"


class TestWriteFailure:
    """A failed write is reported and the connection closed."""

    class BrokenConnection:
        id = "test"

        def __init__(self):
            self.attempts = []

        def send_response(self, data: bytes):
            self.attempts.append(data)
            raise BrokenPipeError("client went away")

    def test_reported_once(self, config, reporter, caplog):
        server = StaticServer(RouteTable([]), config, reporter)
        conn = self.BrokenConnection()
        request = HTTPRequest(method="GET", path="/", client_address=("127.0.0.1", 1))

        with caplog.at_level(logging.INFO, logger="tests.errors"):
            ok = server._write(conn, request, server.dispatch(request))

        assert not ok
        assert len(conn.attempts) == 2
        assert b"Error loading page" in conn.attempts[1]
        assert len(caplog.records) == 1
        assert caplog.records[0].getMessage() == "writing to response writer"
        assert caplog.records[0].context["error"] == "client went away"

    def test_fallback_carries_security_headers(self, config, reporter):
        server = StaticServer(RouteTable([]), config, reporter)
        conn = self.BrokenConnection()
        request = HTTPRequest(method="GET", path="/", client_address=("127.0.0.1", 1))

        server._write(conn, request, server.dispatch(request))

        _, headers, _ = parse_response(conn.attempts[1])
        for header, value in SECURITY_HEADERS.items():
            assert headers[header.lower()] == value
        assert headers["connection"] == "close"


class TestWorkerScaling:
    """Idle keep-alive connections do not starve new clients."""

    def test_new_client_served_while_workers_hold_idle_connections(
        self, config, server_factory, assets
    ):
        config.idle_timeout = 5.0
        server = server_factory(assets)
        request = b"GET /robots.txt HTTP/1.1\r\nHost: localhost\r\n\r\n"

        held = []
        try:
            # One idle keep-alive connection per configured worker.
            for _ in range(config.workers):
                sock = socket.create_connection(("127.0.0.1", server.port), timeout=3.0)
                held.append(sock)
                sock.sendall(request)
                assert parse_response(sock.recv(65536))[0] == 200

            started = time.monotonic()
            status, _, _ = parse_response(server.request(get("/robots.txt")))
            elapsed = time.monotonic() - started
        finally:
            for sock in held:
                sock.close()

        assert status == 200
        assert elapsed < 2.0
