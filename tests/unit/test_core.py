"""
Unit tests for connection I/O and the thread pool.
"""

import socket
import threading
import time

import pytest

from staticserver.core import Connection, ConnectionState, ThreadPool
from staticserver.http.request import HTTPParseError


@pytest.fixture
def socket_pair():
    """(server side, client side) of a connected socket pair."""
    server_side, client_side = socket.socketpair()
    yield server_side, client_side
    for sock in (server_side, client_side):
        try:
            sock.close()
        except OSError:
            pass


def make_connection(sock: socket.socket, **kwargs) -> Connection:
    kwargs.setdefault("read_header_timeout", 1.0)
    kwargs.setdefault("read_timeout", 1.0)
    kwargs.setdefault("idle_timeout", 0.3)
    return Connection(socket=sock, address=("127.0.0.1", 40000), **kwargs)


class TestConnectionRead:
    """Tests for Connection.read_request."""

    def test_single_request(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        client_side.sendall(b"GET / HTTP/1.1\r\nHost: x\r\n\r\n")

        assert conn.read_request() == b"GET / HTTP/1.1\r\nHost: x\r\n\r\n"
        assert conn.requests_handled == 1

    def test_pipelined_requests(self, socket_pair):
        """Bytes past the first request stay buffered for the next."""
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        client_side.sendall(b"GET /a HTTP/1.1\r\n\r\nGET /b HTTP/1.1\r\n\r\n")

        assert conn.read_request() == b"GET /a HTTP/1.1\r\n\r\n"
        assert conn.read_request() == b"GET /b HTTP/1.1\r\n\r\n"

    def test_body_split_across_sends(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        def send_slowly():
            client_side.sendall(b"POST / HTTP/1.1\r\nContent-Length: 6\r\n\r\nabc")
            time.sleep(0.05)
            client_side.sendall(b"def")

        sender = threading.Thread(target=send_slowly)
        sender.start()
        data = conn.read_request()
        sender.join()

        assert data.endswith(b"\r\n\r\nabcdef")

    def test_peer_closed(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        client_side.close()

        assert conn.read_request() is None

    def test_silent_client_closed_quietly(self, socket_pair):
        server_side, _ = socket_pair
        conn = make_connection(server_side, read_header_timeout=0.2)

        assert conn.read_request() is None

    def test_stalled_header_times_out(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side, read_header_timeout=0.2)

        client_side.sendall(b"GET / HTTP/1.1\r\nHost:")

        with pytest.raises(TimeoutError):
            conn.read_request()

    def test_stalled_body_times_out(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side, read_timeout=0.2)

        client_side.sendall(b"POST / HTTP/1.1\r\nContent-Length: 10\r\n\r\nabc")

        with pytest.raises(TimeoutError):
            conn.read_request()

    def test_keep_alive_idle(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side, idle_timeout=0.2)

        client_side.sendall(b"GET / HTTP/1.1\r\n\r\n")
        assert conn.read_request() is not None

        assert conn.read_request() is None
        assert conn.state == ConnectionState.KEEP_ALIVE

    def test_oversized_head(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side, max_request_size=64)

        client_side.sendall(b"GET / HTTP/1.1\r\nX-Pad: " + b"a" * 100)

        with pytest.raises(HTTPParseError) as exc_info:
            conn.read_request()

        assert exc_info.value.status_code == 413

    def test_oversized_declared_body(self, socket_pair):
        """A Content-Length over the cap is refused before reading the body."""
        server_side, client_side = socket_pair
        conn = make_connection(server_side, max_request_size=1024)

        client_side.sendall(b"POST / HTTP/1.1\r\nContent-Length: 999999\r\n\r\n")

        with pytest.raises(HTTPParseError) as exc_info:
            conn.read_request()

        assert exc_info.value.status_code == 413

    def test_declared_body_over_body_cap(self, socket_pair):
        """Refused on the header alone, well under the transport cap."""
        server_side, client_side = socket_pair
        conn = make_connection(server_side, max_body_bytes=1024)

        client_side.sendall(b"GET / HTTP/1.1\r\nContent-Length: 2048\r\n\r\n")

        started = time.monotonic()
        with pytest.raises(HTTPParseError) as exc_info:
            conn.read_request()

        assert exc_info.value.status_code == 413
        assert time.monotonic() - started < 0.5

    def test_body_at_body_cap(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side, max_body_bytes=1024)
        request = b"GET / HTTP/1.1\r\nContent-Length: 1024\r\n\r\n" + b"x" * 1024

        client_side.sendall(request)

        assert conn.read_request() == request


class TestConnectionWrite:
    """Tests for Connection.send_response and close."""

    def test_send(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        conn.send_response(b"HTTP/1.1 200 OK\r\n\r\n")

        assert client_side.recv(1024) == b"HTTP/1.1 200 OK\r\n\r\n"

    def test_send_to_closed_peer_raises(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)
        client_side.close()

        with pytest.raises(OSError):
            conn.send_response(b"x" * 65536)

    def test_close_idempotent(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        with conn:
            pass
        conn.close()

        assert conn.state == ConnectionState.CLOSED
        assert client_side.recv(1024) == b""


class TestThreadPool:
    """Tests for ThreadPool."""

    def test_runs_tasks(self):
        pool = ThreadPool(min_workers=2)
        pool.start()
        done = threading.Event()

        assert pool.submit(done.set)
        assert done.wait(timeout=2.0)

        pool.shutdown(wait=True, timeout=2.0)

    def test_failing_task_does_not_kill_worker(self):
        pool = ThreadPool(min_workers=1, max_workers=1)
        pool.start()
        done = threading.Event()

        def broken():
            raise RuntimeError("boom")

        pool.submit(broken)
        pool.submit(done.set)

        assert done.wait(timeout=2.0)
        pool.shutdown(wait=True, timeout=2.0)
        assert pool.stats["failed"] == 1
        assert pool.stats["completed"] == 1

    def test_shutdown_waits_for_queued_tasks(self):
        pool = ThreadPool(min_workers=1, max_workers=1)
        pool.start()
        results = []

        for i in range(5):
            pool.submit(results.append, args=(i,))
        pool.shutdown(wait=True, timeout=5.0)

        assert results == [0, 1, 2, 3, 4]

    def test_submit_before_start(self):
        with pytest.raises(RuntimeError):
            ThreadPool(min_workers=1, max_workers=1).submit(print)

    def test_submit_after_shutdown(self):
        pool = ThreadPool(min_workers=1, max_workers=1)
        pool.start()
        pool.shutdown()

        with pytest.raises(RuntimeError):
            pool.submit(print)

    def test_full_queue_non_blocking(self):
        pool = ThreadPool(min_workers=1, max_workers=1, queue_size=1)
        pool.start()
        release = threading.Event()
        started = threading.Event()

        def block():
            started.set()
            release.wait(2.0)

        pool.submit(block)
        started.wait(2.0)
        assert pool.submit(print, args=("queued",))
        assert not pool.submit(print, args=("rejected",), block=False)

        release.set()
        pool.shutdown(wait=True, timeout=2.0)

    def test_invalid_worker_count(self):
        with pytest.raises(ValueError):
            ThreadPool(min_workers=0)

    def test_invalid_max_workers(self):
        with pytest.raises(ValueError):
            ThreadPool(min_workers=4, max_workers=2)

    def test_scales_up_when_all_busy(self):
        """A task submitted while every worker is blocked still runs."""
        pool = ThreadPool(min_workers=1, max_workers=2)
        pool.start()
        release = threading.Event()
        started = threading.Event()
        done = threading.Event()

        def block():
            started.set()
            release.wait(5.0)

        pool.submit(block)
        assert started.wait(2.0)
        pool.submit(done.set)

        assert done.wait(timeout=2.0)
        assert pool.stats["workers"] == 2

        release.set()
        pool.shutdown(wait=True, timeout=2.0)

    def test_never_exceeds_max_workers(self):
        pool = ThreadPool(min_workers=1, max_workers=2)
        pool.start()
        release = threading.Event()

        for _ in range(4):
            pool.submit(release.wait, args=(5.0,))
        time.sleep(0.1)

        assert pool.stats["workers"] == 2

        release.set()
        pool.shutdown(wait=True, timeout=2.0)

    def test_extra_workers_retire_when_idle(self):
        pool = ThreadPool(min_workers=1, max_workers=3, idle_timeout=0.1)
        pool.start()
        release = threading.Event()

        for _ in range(3):
            pool.submit(release.wait, args=(5.0,))
        time.sleep(0.1)
        assert pool.stats["workers"] == 3

        release.set()
        deadline = time.monotonic() + 3.0
        while pool.stats["workers"] > 1 and time.monotonic() < deadline:
            time.sleep(0.05)

        assert pool.stats["workers"] == 1
        assert pool.stats["completed"] == 3
        pool.shutdown(wait=True, timeout=2.0)
