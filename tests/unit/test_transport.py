"""
Unit tests for the transport: connection framing and the thread pool.
"""

import socket
import threading
import time

import pytest

from helloserver.core import Connection, ThreadPool
from helloserver.http.request import HTTPParseError


@pytest.fixture
def socket_pair():
    server_side, client_side = socket.socketpair()
    yield server_side, client_side
    for s in (server_side, client_side):
        s.close()


def make_connection(sock, **kwargs) -> Connection:
    kwargs.setdefault("timeout", 1.0)
    kwargs.setdefault("keep_alive_timeout", 0.3)
    return Connection(socket=sock, address=("127.0.0.1", 40000), **kwargs)


class TestConnection:
    """Tests for Connection.read_request() and friends."""

    def test_reads_one_request(self, socket_pair, hello_request: bytes):
        """Test reading one complete request."""
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        client_side.sendall(hello_request)

        assert conn.read_request() == hello_request
        assert conn.requests_handled == 1

    def test_reads_body_by_content_length(self, socket_pair, post_request: bytes):
        """Test the body is read up to Content-Length."""
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        client_side.sendall(post_request)

        assert conn.read_request() == post_request

    def test_reassembles_fragments(self, socket_pair, hello_request: bytes):
        """Test a request split across sends is reassembled."""
        server_side, client_side = socket_pair
        conn = make_connection(server_side, buffer_size=4)

        def trickle():
            for i in range(0, len(hello_request), 7):
                client_side.sendall(hello_request[i:i + 7])
                time.sleep(0.001)

        sender = threading.Thread(target=trickle)
        sender.start()
        data = conn.read_request()
        sender.join()

        assert data == hello_request

    def test_splits_pipelined_requests(self, socket_pair, hello_request: bytes, post_request: bytes):
        """Test pipelined requests are returned one at a time."""
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        client_side.sendall(hello_request + post_request)

        assert conn.read_request() == hello_request
        assert conn.read_request() == post_request
        assert conn.requests_handled == 2

    def test_clean_close_returns_none(self, socket_pair):
        """Test a peer closing without sending gives None."""
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        client_side.shutdown(socket.SHUT_WR)

        assert conn.read_request() is None

    def test_truncated_request_is_returned_for_parsing(self, socket_pair):
        """Test a request cut short is handed on as is."""
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        client_side.sendall(b"GET /hello HTTP/1.1\r\nHost: x")
        client_side.shutdown(socket.SHUT_WR)

        assert conn.read_request() == b"GET /hello HTTP/1.1\r\nHost: x"

    def test_oversized_request_is_413(self, socket_pair):
        """Test reading past max_request_size raises a 413."""
        server_side, client_side = socket_pair
        conn = make_connection(server_side, max_request_size=64)

        client_side.sendall(b"GET /hello HTTP/1.1\r\nX-Pad: " + b"a" * 200 + b"\r\n\r\n")

        with pytest.raises(HTTPParseError) as exc_info:
            conn.read_request()

        assert exc_info.value.status_code == 413

    def test_first_request_timeout(self, socket_pair):
        """Test a silent peer raises TimeoutError."""
        server_side, _ = socket_pair
        conn = make_connection(server_side, timeout=0.2)

        with pytest.raises(TimeoutError):
            conn.read_request()

    def test_keep_alive_timeout_returns_none(self, socket_pair, hello_request: bytes):
        """Test an idle keep-alive connection gives None."""
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        client_side.sendall(hello_request)
        conn.read_request()

        assert conn.read_request() is None

    def test_send_response(self, socket_pair):
        """Test send_response delivers the bytes."""
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        assert conn.send_response(b"HTTP/1.1 200 OK\r\n\r\n")
        assert client_side.recv(1024) == b"HTTP/1.1 200 OK\r\n\r\n"

    def test_close_is_idempotent(self, socket_pair):
        """Test closing twice is harmless."""
        server_side, client_side = socket_pair
        client_side.shutdown(socket.SHUT_WR)

        with make_connection(server_side) as conn:
            pass

        assert conn.closed
        conn.close()

        assert client_side.recv(1024) == b""


class TestThreadPool:
    """Tests for ThreadPool."""

    def test_runs_submitted_tasks(self):
        """Test submitted tasks run on the workers."""
        pool = ThreadPool(workers=2)
        pool.start()

        results = []
        lock = threading.Lock()

        def work(n):
            with lock:
                results.append(n)

        for i in range(10):
            pool.submit(work, i)

        assert pool.shutdown(timeout=5.0)
        assert sorted(results) == list(range(10))

    def test_submit_before_start_fails(self):
        """Test submit refuses work before start."""
        with pytest.raises(RuntimeError):
            ThreadPool(workers=1).submit(print)

    def test_submit_after_shutdown_fails(self):
        """Test submit refuses work after shutdown."""
        pool = ThreadPool(workers=1)
        pool.start()
        pool.shutdown(timeout=5.0)

        with pytest.raises(RuntimeError):
            pool.submit(print)

    def test_task_errors_do_not_kill_workers(self):
        """Test a failing task does not stop its worker."""
        pool = ThreadPool(workers=1)
        pool.start()
        done = threading.Event()

        def boom():
            raise ValueError("boom")

        pool.submit(boom)
        pool.submit(done.set)

        assert done.wait(5.0)
        assert pool.shutdown(timeout=5.0)
        assert pool.stats["failed"] == 1
        assert pool.stats["completed"] == 1

    def test_shutdown_timeout(self):
        """Test shutdown reports a stuck task."""
        pool = ThreadPool(workers=1)
        pool.start()
        release = threading.Event()

        pool.submit(release.wait, 5.0)

        assert pool.shutdown(timeout=0.1) is False
        release.set()

    def test_shutdown_is_idempotent(self):
        """Test shutting down twice succeeds."""
        pool = ThreadPool(workers=1)
        pool.start()

        assert pool.shutdown(timeout=5.0)
        assert pool.shutdown(timeout=5.0)

    def test_rejects_zero_workers(self):
        """Test a pool needs at least one worker."""
        with pytest.raises(ValueError):
            ThreadPool(workers=0)
