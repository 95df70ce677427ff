"""
Unit tests for the route table and route wiring.
"""

import pytest

from staticserver.handlers import IMAGE, INDEX, ROBOTS, SMALL_IMAGE
from staticserver.http.request import HTTPRequest
from staticserver.http.response import HTTPResponse, ResponseBuilder
from staticserver.http.router import RouteEntry, RouteTable
from staticserver.routes import ROUTES, build_route_table


def make_request(method: str, path: str) -> HTTPRequest:
    """Helper to create a request for testing."""
    return HTTPRequest(method=method, path=path, client_address=("127.0.0.1", 5000))


def dummy_handler(request: HTTPRequest) -> HTTPResponse:
    """Dummy handler for testing."""
    return ResponseBuilder().text(request.path).build()


class TestRouteTable:
    """Tests for RouteTable."""

    def test_lookup_exact(self):
        table = RouteTable([RouteEntry("/a", dummy_handler)])

        entry = table.lookup("/a")
        assert entry is not None
        assert entry.path == "/a"

    def test_lookup_miss(self):
        table = RouteTable([RouteEntry("/a", dummy_handler)])

        assert table.lookup("/b") is None
        assert table.lookup("/a/b") is None

    def test_no_prefix_matching(self):
        """'/' does not catch other paths."""
        table = RouteTable([RouteEntry("/", dummy_handler)])

        assert table.lookup("/anything") is None

    def test_handle_dispatches(self):
        table = RouteTable([RouteEntry("/a", dummy_handler)])

        response = table.handle(make_request("GET", "/a"))

        assert response.body == b"/a"

    @pytest.mark.parametrize("path", [
        "/robots.txt/",
        "//robots.txt",
        "/./robots.txt",
        "/x/../robots.txt",
        "/ROBOTS.TXT",
    ])
    def test_only_exact_path_matches(self, path: str):
        """Non-canonical spellings of a route path are misses."""
        table = RouteTable([RouteEntry("/robots.txt", dummy_handler)])

        assert table.lookup(path) is None
        assert table.handle(make_request("GET", path)) is None

    def test_handle_not_found(self):
        table = RouteTable([RouteEntry("/a", dummy_handler)])

        assert table.handle(make_request("GET", "/missing")) is None

    def test_duplicate_route_rejected(self):
        with pytest.raises(ValueError):
            RouteTable([RouteEntry("/a", dummy_handler), RouteEntry("/a", dummy_handler)])

    def test_immutable(self):
        """No way to add routes after construction."""
        table = RouteTable([RouteEntry("/a", dummy_handler)])

        with pytest.raises(TypeError):
            table._entries["/b"] = RouteEntry("/b", dummy_handler)

        assert not hasattr(table, "add_route")

    def test_container_protocol(self):
        table = RouteTable([RouteEntry("/a", dummy_handler), RouteEntry("/b", dummy_handler)])

        assert len(table) == 2
        assert "/a" in table
        assert "/c" not in table
        assert [entry.path for entry in table] == ["/a", "/b"]
        assert table.paths == ("/a", "/b")


class TestBuildRouteTable:
    """Tests for the standard route wiring."""

    def test_routes_mapping(self):
        assert dict(ROUTES) == {
            "/": INDEX,
            "/ofyou": INDEX,
            "/image.avif": IMAGE,
            "/image-small.avif": SMALL_IMAGE,
            "/robots.txt": ROBOTS,
        }

    def test_all_routes_registered(self, assets, reporter):
        table = build_route_table(assets, reporter)

        assert set(table.paths) == {"/", "/ofyou", "/image.avif", "/image-small.avif", "/robots.txt"}

    def test_alias_shares_handler(self, assets, reporter):
        """'/ofyou' is served by the very same handler as '/'."""
        table = build_route_table(assets, reporter)

        assert table.lookup("/").handler is table.lookup("/ofyou").handler
        assert table.lookup("/").handler is not table.lookup("/robots.txt").handler

    def test_route_serves_asset(self, assets, reporter):
        table = build_route_table(assets, reporter)

        response = table.handle(make_request("GET", "/robots.txt"))

        assert response.status == 200
        assert response.body == assets.fetch("robots.txt")

    def test_custom_middleware(self, assets, reporter):
        """An empty middleware list leaves the bare handlers."""
        table = build_route_table(assets, reporter, middleware=[])

        response = table.handle(make_request("POST", "/robots.txt"))

        assert response.status == 200
        assert "X-Frame-Options" not in response.headers
