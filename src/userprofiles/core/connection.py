"""
=============================================================================
CONNECTION
=============================================================================

Wraps one accepted client socket and turns the TCP byte stream back into
whole HTTP requests.

TCP does not preserve message boundaries: one recv() may return half a
request line, or one request plus the start of the next. The connection
keeps a buffer and only hands out a request once it holds

    1. everything up to the blank line (\\r\\n\\r\\n) that ends the headers
    2. exactly Content-Length bytes of body after it, or a chunked body
       up to its last chunk, handed on re-framed with a Content-Length

Bytes beyond that stay buffered for the next request on a keep-alive
connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        read_request()                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   recv() → buffer  until "\\r\\n\\r\\n" present                         │
    │        │                                                             │
    │   Content-Length (or Transfer-Encoding: chunked) from raw headers   │
    │        │                                                             │
    │   recv() → buffer  until body complete                              │
    │        │                                                             │
    │   split: [request bytes] [leftover → next request]                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The handler only ever sees a complete body; nothing is parsed while bytes
are still arriving.

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
import logging
import re
import socket
import time
import uuid


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


class FramingError(ValueError):
    """
    The byte stream cannot be cut into a request. Carries the status to
    answer with before the connection is closed.
    """

    status_code = 400


class RequestTooLarge(FramingError):
    """Buffered request grew past max_request_size."""

    status_code = 413


class UnsupportedTransferEncoding(FramingError):
    """A transfer-coding other than chunked."""

    status_code = 501


@dataclass
class Connection:
    """
    One client connection.

    Attributes:
        socket:           The accepted client socket
        address:          Client (ip, port)
        id:               Short id used in log lines
        requests_handled: Requests read so far on this connection
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0         # first request
    keep_alive_timeout: float = 5.0         # every request after that
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    CHUNK_SIZE_PATTERN = re.compile(rb"^[0-9A-Fa-f]{1,16}$")

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete request.

        Returns:
            The request bytes, or None when the client closed the
            connection (or went quiet between keep-alive requests).

        Raises:
            TimeoutError:    First request did not arrive in time.
            FramingError:    Body framing is broken (bad chunk), or one of
                             its subclasses: RequestTooLarge past
                             max_request_size, UnsupportedTransferEncoding
                             for codings other than chunked.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._append(chunk)

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            head = self._buffer[:header_end]

            transfer_encoding = self._header_value(head, "transfer-encoding")
            if transfer_encoding is not None:
                if transfer_encoding.lower() != "chunked":
                    raise UnsupportedTransferEncoding(
                        f"Unsupported Transfer-Encoding: {transfer_encoding}"
                    )
                body, request_end = self._read_chunked(body_start)
                request_data = self._dechunked_request(head, body)
                self._buffer = self._buffer[request_end:]

                self.requests_handled += 1
                self.state = ConnectionState.PROCESSING
                return request_data

            content_length = self._parse_content_length(head)

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    # Client gave up mid-body; the parser reports the short body
                    break
                self._append(chunk)

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.state = ConnectionState.PROCESSING
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            self.socket.settimeout(self.timeout)

    def _append(self, chunk: bytes) -> None:
        self._buffer += chunk
        if len(self._buffer) > self.max_request_size:
            raise RequestTooLarge(f"Request too large: {len(self._buffer)} bytes")

    def _recv(self) -> bytes:
        try:
            data = self.socket.recv(self.buffer_size)
            self.last_activity = time.time()
            return data
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _fill_until(self, marker: bytes, start: int) -> int:
        """Index of marker at or after start, reading more as needed."""
        index = self._buffer.find(marker, start)
        while index == -1:
            chunk = self._recv()
            if not chunk:
                raise FramingError("Incomplete chunked body")
            self._append(chunk)
            index = self._buffer.find(marker, start)
        return index

    def _fill_to(self, size: int) -> None:
        while len(self._buffer) < size:
            chunk = self._recv()
            if not chunk:
                raise FramingError("Incomplete chunked body")
            self._append(chunk)

    def _read_chunked(self, start: int) -> tuple[bytes, int]:
        """
        Decode a chunked body starting at buffer offset start.

            1a;ext=x\\r\\n          size in hex, extensions ignored
            <26 bytes>\\r\\n
            0\\r\\n                 last chunk
            Trailer: x\\r\\n        optional trailers, discarded
            \\r\\n

        Returns the body and the offset just past the final CRLF.
        """
        body = bytearray()
        pos = start

        while True:
            line_end = self._fill_until(b"\r\n", pos)
            size_field = self._buffer[pos:line_end].split(b";", 1)[0].strip()
            if not self.CHUNK_SIZE_PATTERN.match(size_field):
                raise FramingError(f"Invalid chunk size: {size_field[:16]!r}")
            size = int(size_field, 16)
            pos = line_end + 2

            if size == 0:
                break

            self._fill_to(pos + size + 2)
            if self._buffer[pos + size:pos + size + 2] != b"\r\n":
                raise FramingError("Chunk data not followed by CRLF")
            body += self._buffer[pos:pos + size]
            pos += size + 2

        # Trailer section ends with an empty line
        while True:
            line_end = self._fill_until(b"\r\n", pos)
            empty = line_end == pos
            pos = line_end + 2
            if empty:
                return bytes(body), pos

    @staticmethod
    def _dechunked_request(head: bytes, body: bytes) -> bytes:
        """Request bytes as if the body had been sent with Content-Length."""
        lines = head.split(b"\r\n")
        kept = [lines[0]] + [
            line for line in lines[1:]
            if not line.lower().startswith((b"transfer-encoding:", b"content-length:"))
        ]
        kept.append(f"Content-Length: {len(body)}".encode("latin-1"))
        return b"\r\n".join(kept) + b"\r\n\r\n" + body

    @staticmethod
    def _header_value(headers: bytes, name: str) -> Optional[str]:
        """First value of a header in raw header bytes, or None."""
        prefix = name.lower() + ":"
        for line in headers.decode("latin-1").split("\r\n")[1:]:
            if line.lower().startswith(prefix):
                return line.split(":", 1)[1].strip()
        return None

    @classmethod
    def _parse_content_length(cls, headers: bytes) -> int:
        """
        Content-Length from raw header bytes, 0 when absent or unreadable.

        A quick scan rather than a full parse: the length is needed before
        the request can be parsed at all. RequestParser rejects a bad value.
        """
        value = cls._header_value(b"\r\n" + headers, "content-length")
        if value is None:
            return 0
        try:
            return max(0, int(value))
        except ValueError:
            return 0

    # =========================================================================
    # WRITING / CLOSING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """sendall() the response. False when the client is gone."""
        self.state = ConnectionState.WRITING
        self.last_activity = time.time()

        try:
            self.socket.sendall(data)
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    def set_keep_alive(self) -> None:
        self.state = ConnectionState.KEEP_ALIVE

    def close(self) -> None:
        """
        Close gracefully: send FIN, drain what the client still sends,
        then release the descriptor.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
