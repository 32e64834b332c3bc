"""
Unit tests for the networking core: Connection and ThreadPool.
"""

import socket
import threading
import time

import pytest

from userprofiles.core.connection import (
    Connection,
    ConnectionState,
    FramingError,
    RequestTooLarge,
    UnsupportedTransferEncoding,
)
from userprofiles.core.thread_pool import Task, ThreadPool


@pytest.fixture
def socket_pair():
    server_side, client_side = socket.socketpair()
    yield server_side, client_side
    for s in (server_side, client_side):
        try:
            s.close()
        except OSError:
            pass


def make_connection(sock, **kwargs) -> Connection:
    kwargs.setdefault("timeout", 2.0)
    kwargs.setdefault("keep_alive_timeout", 0.2)
    return Connection(socket=sock, address=("127.0.0.1", 50000), **kwargs)


class TestConnection:

    def test_reads_request_sent_in_pieces(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        def send():
            for part in (b"POST /users HTTP/1.1\r\nConte", b"nt-Length: 4\r\n\r\n", b"{", b"}  "):
                client_side.sendall(part)
                time.sleep(0.02)

        sender = threading.Thread(target=send)
        sender.start()
        data = conn.read_request()
        sender.join()

        assert data == b"POST /users HTTP/1.1\r\nContent-Length: 4\r\n\r\n{}  "
        assert conn.requests_handled == 1
        assert conn.state == ConnectionState.PROCESSING

    def test_pipelined_requests_are_split(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        client_side.sendall(
            b"GET /users HTTP/1.1\r\n\r\n"
            b"DELETE /users?id=1 HTTP/1.1\r\n\r\n"
        )

        assert conn.read_request() == b"GET /users HTTP/1.1\r\n\r\n"
        assert conn.read_request() == b"DELETE /users?id=1 HTTP/1.1\r\n\r\n"

    def test_client_close_returns_none(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        client_side.close()

        assert conn.read_request() is None

    def test_first_request_timeout_raises(self, socket_pair):
        server_side, _ = socket_pair
        conn = make_connection(server_side, timeout=0.1)

        with pytest.raises(TimeoutError):
            conn.read_request()

    def test_keep_alive_timeout_returns_none(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        client_side.sendall(b"GET /users HTTP/1.1\r\n\r\n")
        assert conn.read_request() is not None

        assert conn.read_request() is None

    def test_too_large(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side, max_request_size=64)

        client_side.sendall(b"GET /" + b"a" * 100 + b" HTTP/1.1\r\n\r\n")

        with pytest.raises(RequestTooLarge):
            conn.read_request()

    def test_send_and_close(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        assert conn.send_response(b"HTTP/1.1 200 OK\r\n\r\n") is True
        conn.close()

        assert client_side.recv(1024) == b"HTTP/1.1 200 OK\r\n\r\n"
        assert conn.state == ConnectionState.CLOSED
        conn.close()  # idempotent

    def test_too_large_is_a_framing_error(self):
        assert issubclass(RequestTooLarge, FramingError)
        assert RequestTooLarge.status_code == 413

    def test_keep_alive_state(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        client_side.sendall(b"GET /users HTTP/1.1\r\n\r\n")
        conn.read_request()
        conn.set_keep_alive()

        assert conn.state == ConnectionState.KEEP_ALIVE

    def test_content_length_scan(self):
        assert Connection._parse_content_length(b"Host: x\r\nContent-Length: 12") == 12
        assert Connection._parse_content_length(b"content-length:  7") == 7
        assert Connection._parse_content_length(b"Host: x") == 0
        assert Connection._parse_content_length(b"Content-Length: nope") == 0


class TestChunkedBody:
    """Transfer-Encoding: chunked requests."""

    def test_decoded_and_reframed(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        client_side.sendall(
            b"POST /users HTTP/1.1\r\n"
            b"Transfer-Encoding: chunked\r\n"
            b"\r\n"
            b"4\r\n{\"a\"\r\n"
            b"3;ext=1\r\n: 1\r\n"
            b"1\r\n}\r\n"
            b"0\r\n\r\n"
        )

        assert conn.read_request() == (
            b"POST /users HTTP/1.1\r\n"
            b"Content-Length: 8\r\n"
            b"\r\n"
            b"{\"a\": 1}"
        )

    def test_chunks_arriving_in_pieces(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        def send():
            for part in (
                b"PUT /users?id=1 HTTP/1.1\r\nTransfer-Encoding: Chunked\r\n\r\n",
                b"2\r",
                b"\n{}",
                b"\r\n0\r\n",
                b"\r\n",
            ):
                client_side.sendall(part)
                time.sleep(0.02)

        sender = threading.Thread(target=send)
        sender.start()
        data = conn.read_request()
        sender.join()

        assert data.endswith(b"Content-Length: 2\r\n\r\n{}")

    def test_trailers_dropped_and_next_request_kept(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        client_side.sendall(
            b"POST /users HTTP/1.1\r\nTransfer-Encoding: chunked\r\nContent-Length: 99\r\n\r\n"
            b"2\r\nhi\r\n0\r\nX-Trailer: 1\r\n\r\n"
            b"GET /users HTTP/1.1\r\n\r\n"
        )

        first = conn.read_request()
        assert first == b"POST /users HTTP/1.1\r\nContent-Length: 2\r\n\r\nhi"
        assert conn.read_request() == b"GET /users HTTP/1.1\r\n\r\n"

    @pytest.mark.parametrize("body", [
        b"zz\r\nhi\r\n0\r\n\r\n",
        b"2\r\nhiXX0\r\n\r\n",
        b"\r\n",
    ])
    def test_malformed_chunks(self, socket_pair, body):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        client_side.sendall(b"POST /users HTTP/1.1\r\nTransfer-Encoding: chunked\r\n\r\n" + body)

        with pytest.raises(FramingError) as exc:
            conn.read_request()
        assert exc.value.status_code == 400

    def test_client_closes_mid_body(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        client_side.sendall(b"POST /users HTTP/1.1\r\nTransfer-Encoding: chunked\r\n\r\n5\r\nab")
        client_side.shutdown(socket.SHUT_WR)

        with pytest.raises(FramingError):
            conn.read_request()

    def test_other_codings_rejected(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        client_side.sendall(b"POST /users HTTP/1.1\r\nTransfer-Encoding: gzip, chunked\r\n\r\n")

        with pytest.raises(UnsupportedTransferEncoding) as exc:
            conn.read_request()
        assert exc.value.status_code == 501


class TestThreadPool:

    def test_runs_submitted_tasks(self):
        pool = ThreadPool(min_workers=2, max_workers=4)
        pool.start()
        done = []
        lock = threading.Lock()

        def work(n):
            with lock:
                done.append(n)

        try:
            for n in range(20):
                assert pool.submit(work, args=(n,)) is True
        finally:
            pool.shutdown(wait=True, timeout=5.0)

        assert sorted(done) == list(range(20))

    def test_submit_before_start(self):
        with pytest.raises(RuntimeError):
            ThreadPool().submit(lambda: None)

    def test_full_queue_rejects(self):
        pool = ThreadPool(min_workers=1, max_workers=1, max_queue_size=1)
        pool.start()
        release = threading.Event()
        started = threading.Event()

        def block():
            started.set()
            release.wait(5)

        try:
            assert pool.submit(block)
            started.wait(2)
            assert pool.submit(block)          # fills the queue
            assert pool.submit(block) is False  # no room left
        finally:
            release.set()
            pool.shutdown(wait=True, timeout=5.0)

    def test_failing_task_does_not_kill_worker(self):
        pool = ThreadPool(min_workers=1, max_workers=1)
        pool.start()
        ran = threading.Event()

        def boom():
            raise RuntimeError("boom")

        try:
            pool.submit(boom)
            pool.submit(ran.set)
            assert ran.wait(2)
        finally:
            pool.shutdown()

        assert pool.stats["workers"]["total"] == 0

    def test_scales_up_when_busy(self):
        pool = ThreadPool(min_workers=1, max_workers=3)
        pool.start()
        release = threading.Event()
        started = threading.Event()

        def block():
            started.set()
            release.wait(5)

        try:
            pool.submit(block)
            started.wait(2)
            pool.submit(block)
            assert pool.stats["workers"]["total"] == 2
        finally:
            release.set()
            pool.shutdown(wait=True, timeout=5.0)

    def test_stale_task_runs_on_drop_instead(self):
        pool = ThreadPool(min_workers=1, max_workers=1)
        pool.start()
        release = threading.Event()
        started = threading.Event()
        dropped = threading.Event()
        ran = []

        def block():
            started.set()
            release.wait(5)

        try:
            pool.submit(block)
            started.wait(2)
            pool.submit(lambda: ran.append(True), timeout=0.05, on_drop=dropped.set)
            time.sleep(0.1)
            release.set()

            assert dropped.wait(2)
        finally:
            release.set()
            pool.shutdown(wait=True, timeout=5.0)

        assert ran == []

    def test_invalid_bounds(self):
        with pytest.raises(ValueError):
            ThreadPool(min_workers=4, max_workers=2)

    def test_stale_task(self):
        task = Task(func=lambda: None, timeout=0.01, submitted_at=time.time() - 1)

        assert task.is_stale is True
        assert Task(func=lambda: None).is_stale is False


class TestStaleConnection:
    """A connection that waited too long for a worker."""

    def test_answered_503_and_closed(self, socket_pair, config):
        from userprofiles import HTTPServer

        server_side, client_side = socket_pair
        server = HTTPServer(config)
        server._thread_pool = ThreadPool(min_workers=1, max_workers=1)
        server._thread_pool.start()
        release = threading.Event()
        started = threading.Event()

        def block():
            started.set()
            release.wait(5)

        try:
            server._thread_pool.submit(block)
            started.wait(2)

            server.config.timeout = 0.05
            conn = make_connection(server_side)
            server._handle_connection(conn)
            time.sleep(0.1)
            release.set()

            client_side.settimeout(5)
            chunks = []
            while True:
                chunk = client_side.recv(4096)
                if not chunk:
                    break
                chunks.append(chunk)
        finally:
            release.set()
            server._thread_pool.shutdown(wait=True, timeout=5.0)

        data = b"".join(chunks)
        assert data.startswith(b"HTTP/1.1 503 Service Unavailable")
        assert b'{"error": "Server overloaded"}' in data
        assert conn.state == ConnectionState.CLOSED
