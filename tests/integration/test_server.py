"""
Integration tests: the service on a real socket.
"""

import http.client
import json
import socket


AUTH = {"Authorization": "Bearer test-token"}


def call(port, method, path, payload=None, headers=None, raw_body=None):
    conn = http.client.HTTPConnection("127.0.0.1", port, timeout=5)
    try:
        body = raw_body if raw_body is not None else (
            json.dumps(payload).encode() if payload is not None else None
        )
        all_headers = dict(AUTH)
        all_headers.update(headers or {})
        if body is not None:
            all_headers["Content-Type"] = "application/json"
        conn.request(method, path, body=body, headers=all_headers)
        response = conn.getresponse()
        data = response.read()
        return response, (json.loads(data) if data else None)
    finally:
        conn.close()


def send_raw(port, payload: bytes) -> bytes:
    """Send raw bytes and read until the server closes the connection."""
    with socket.create_connection(("127.0.0.1", port), timeout=5) as s:
        s.sendall(payload)
        chunks = []
        while True:
            chunk = s.recv(4096)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


class TestLiveServer:

    def test_crud_round_trip(self, live_server):
        port = live_server.port

        response, user = call(port, "POST", "/users", {"name": "Ana", "email": "a@x.com"})
        assert response.status == 201
        assert user == {"id": 1, "name": "Ana", "email": "a@x.com", "role": "viewer"}
        assert response.getheader("Content-Type") == "application/json"
        assert response.getheader("Access-Control-Allow-Origin") == "*"
        assert response.getheader("X-Request-ID")

        response, user = call(port, "PUT", "/users?id=1", {"role": "admin"})
        assert response.status == 200
        assert user["role"] == "admin"

        response, users = call(port, "GET", "/users")
        assert users == [{"id": 1, "name": "Ana", "email": "a@x.com", "role": "admin"}]

        response, result = call(port, "DELETE", "/users?id=1")
        assert response.status == 200
        assert result["message"] == "User deleted"

        response, error = call(port, "GET", "/users?id=1")
        assert response.status == 404
        assert error == {"error": "User not found"}

    def test_unauthorized(self, live_server):
        response, error = call(live_server.port, "GET", "/users", headers={"Authorization": "Bearer x"})

        assert response.status == 401
        assert error == {"error": "Unauthorized. Use Bearer token."}

    def test_preflight(self, live_server):
        conn = http.client.HTTPConnection("127.0.0.1", live_server.port, timeout=5)
        try:
            conn.request("OPTIONS", "/users")
            response = conn.getresponse()
            assert response.read() == b""
        finally:
            conn.close()

        assert response.status == 200
        assert response.getheader("Access-Control-Allow-Methods") == "GET, POST, PUT, DELETE"
        assert response.getheader("Access-Control-Allow-Headers") == "Content-Type, Authorization"

    def test_malformed_json_body(self, live_server):
        response, error = call(live_server.port, "POST", "/users", raw_body=b"{oops")

        assert response.status == 400
        assert error == {"error": "Name and email are required"}

    def test_keep_alive_reuses_connection(self, live_server):
        conn = http.client.HTTPConnection("127.0.0.1", live_server.port, timeout=5)
        try:
            for _ in range(3):
                conn.request("GET", "/users", headers=AUTH)
                response = conn.getresponse()
                assert response.status == 200
                assert json.loads(response.read()) == []
        finally:
            conn.close()

    def test_persisted_file(self, live_server, data_file):
        call(live_server.port, "POST", "/users", {"name": "Ana", "email": "a@x.com"})

        assert json.loads(data_file.read_text()) == [
            {"id": 1, "name": "Ana", "email": "a@x.com", "role": "viewer"}
        ]

    def test_garbage_request_gets_400(self, live_server):
        with socket.create_connection(("127.0.0.1", live_server.port), timeout=5) as s:
            s.sendall(b"NOT HTTP AT ALL\r\n\r\n")
            data = s.recv(4096)

        assert data.startswith(b"HTTP/1.1 400 Bad Request")
        assert b'"error"' in data

    def test_unknown_method_without_token_is_401(self, live_server):
        data = send_raw(live_server.port, b"TRACE /users HTTP/1.1\r\nConnection: close\r\n\r\n")

        assert data.startswith(b"HTTP/1.1 401 Unauthorized")
        assert b"Access-Control-Allow-Origin: *" in data

    def test_unknown_method_with_token(self, live_server):
        response, error = call(live_server.port, "TRACE", "/users")
        assert response.status == 405
        assert error == {"error": "Method not allowed"}
        assert response.getheader("Access-Control-Allow-Origin") == "*"

        response, error = call(live_server.port, "TRACE", "/other")
        assert response.status == 404
        assert error == {"error": "Route not found"}

    def test_chunked_body(self, live_server):
        conn = http.client.HTTPConnection("127.0.0.1", live_server.port, timeout=5)
        try:
            parts = iter([b'{"name": "Ana", ', b'"email": "a@x.com"}'])
            conn.request("POST", "/users", body=parts, headers=AUTH, encode_chunked=True)
            response = conn.getresponse()
            assert response.status == 201
            assert json.loads(response.read())["name"] == "Ana"

            # Same connection: nothing of the chunked body is left over
            conn.request("GET", "/users", headers=AUTH)
            response = conn.getresponse()
            assert response.status == 200
            assert len(json.loads(response.read())) == 1
        finally:
            conn.close()

    def test_chunked_body_with_extension_and_trailer(self, live_server):
        data = send_raw(
            live_server.port,
            b"POST /users HTTP/1.1\r\n"
            b"Authorization: Bearer test-token\r\n"
            b"Transfer-Encoding: chunked\r\n"
            b"Connection: close\r\n"
            b"\r\n"
            b"f;note=x\r\n{\"name\": \"Bo\", \r\n"
            b"13\r\n\"email\": \"b@x.com\"}\r\n"
            b"0\r\n"
            b"X-Checksum: none\r\n"
            b"\r\n",
        )

        assert data.startswith(b"HTTP/1.1 201 Created")
        assert b'"email": "b@x.com"' in data

    def test_unsupported_transfer_encoding_is_501(self, live_server):
        data = send_raw(
            live_server.port,
            b"POST /users HTTP/1.1\r\nTransfer-Encoding: gzip\r\n\r\n",
        )

        assert data.startswith(b"HTTP/1.1 501 Not Implemented")

    def test_head_answer_has_no_body(self, live_server):
        conn = http.client.HTTPConnection("127.0.0.1", live_server.port, timeout=5)
        try:
            conn.request("HEAD", "/users", headers=AUTH)
            response = conn.getresponse()
            assert response.status == 405
            assert int(response.getheader("Content-Length")) > 0
            assert response.read() == b""

            conn.request("GET", "/users", headers=AUTH)
            response = conn.getresponse()
            assert response.status == 200
            assert json.loads(response.read()) == []
        finally:
            conn.close()

    def test_handler_crash_is_500(self, live_server, monkeypatch):
        def fail():
            raise OSError("disk full")

        monkeypatch.setattr(live_server.server.store, "_save", fail)

        response, error = call(live_server.port, "POST", "/users", {"name": "A", "email": "a@x.com"})

        assert response.status == 500
        assert error == {"error": "Internal Server Error"}
