"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses raw HTTP/1.1 request bytes into HTTPRequest objects (RFC 7230).

=============================================================================
HTTP REQUEST ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    PUT /users?id=1 HTTP/1.1\r\n          ← request line             │
    │    ─┬─ ─────┬───── ────┬───                                          │
    │   Method   URI      Version                                          │
    │             │                                                        │
    │        ┌────┴────┐                                                   │
    │      Path    Query string                                           │
    │     /users      id=1                                                 │
    │                                                                      │
    │    Host: localhost:3000\r\n              ← headers                  │
    │    Authorization: Bearer my-secret-token\r\n                        │
    │    Content-Type: application/json\r\n                               │
    │    Content-Length: 16\r\n                                           │
    │    \r\n                                  ← blank line               │
    │    {"role":"admin"}                      ← body                     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PARSING RULES
=============================================================================

1. Headers end at the first \r\n\r\n.
2. Header names are case-insensitive, so they are stored lowercase.
3. The body is exactly Content-Length bytes; anything after it belongs to
   the next request on a keep-alive connection.
4. Malformed requests raise HTTPParseError carrying the status to send:
   400 bad syntax, 413 too large, 505 bad version. Any method token is
   accepted here; the router answers 404/405 once auth has run.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any
from urllib.parse import parse_qs, urlparse, unquote
import json
import logging
import re


logger = logging.getLogger(__name__)


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the HTTP status code that should be returned to the client.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Attributes:
        method:         GET, POST, PUT, DELETE, OPTIONS, ...
        path:           Request path without query string ("/users")
        version:        "HTTP/1.1" or "HTTP/1.0"
        headers:        Header dict with LOWERCASE keys
        query_params:   "?id=1&id=2" → {"id": ["1", "2"]}
        body:           Raw body bytes
        client_address: (ip, port) of the peer, for logging
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""

    client_address: tuple[str, int] = ("", 0)

    _body_json: Optional[Any] = field(default=None, repr=False)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def content_type(self) -> Optional[str]:
        """Content-Type without parameters ("application/json")."""
        ct = self.headers.get("content-type", "")
        return ct.split(";")[0].strip().lower() or None

    @property
    def content_length(self) -> int:
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def authorization(self) -> Optional[str]:
        """Raw Authorization header value, or None when absent."""
        return self.headers.get("authorization")

    @property
    def json(self) -> Any:
        """
        Parse the request body as JSON (strict).

        Cached after the first access.

        Raises:
            HTTPParseError: If body is not valid JSON.
        """
        if self._body_json is None and self.body:
            try:
                self._body_json = json.loads(self.body.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise HTTPParseError(f"Invalid JSON body: {e}")
        return self._body_json

    @property
    def is_keep_alive(self) -> bool:
        """
        HTTP/1.1 keeps the connection unless "Connection: close";
        HTTP/1.0 closes it unless "Connection: keep-alive".
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    def json_or_default(self, default: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Parse the body as a JSON object, falling back to a default.

        =====================================================================
        PARSE-OR-DEFAULT CONTRACT
        =====================================================================

            body                          result
            ────────────────────────────  ─────────────────────────
            {"name": "Ana"}               {"name": "Ana"}
            (empty)                       default
            {not json                     default
            invalid UTF-8 bytes           default
            [1, 2] / "text" / 42          default  (not an object)

        The default is a fresh empty dict unless one is given. A bad body
        is therefore never an error by itself; handlers decide what a
        missing field means.

        =====================================================================
        """
        fallback = {} if default is None else default

        if not self.body:
            return fallback

        try:
            data = self.json
        except HTTPParseError as e:
            logger.debug(f"Unparsable request body, using default: {e}")
            return fallback

        if not isinstance(data, dict):
            logger.debug(f"Request body is {type(data).__name__}, not an object, using default")
            return fallback

        return data

    def get_header(self, name: str, default: str = "") -> str:
        return self.headers.get(name.lower(), default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """
        First value of a query parameter.

        Example:
            # URL: /users?id=1&id=2
            request.get_query("id")  # "1"
        """
        values = self.query_params.get(name, [])
        return values[0] if values else default


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

        Raw bytes
            │
            ├── 1. size check ............... 413 if too large
            ├── 2. split at \\r\\n\\r\\n ....... 400 if missing
            ├── 3. request line ............. 400 / 505
            ├── 4. headers (lowercased)
            ├── 5. body (Content-Length) .... 400 if short
            ▼
        HTTPRequest
    """

    # Method is an RFC 7230 token; which methods a path supports is the
    # router's business
    REQUEST_LINE_PATTERN = re.compile(r"^([!#$%&'*+.^_`|~0-9A-Za-z-]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data into an HTTPRequest object.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413,
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")

        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(
        self,
        line: str
    ) -> tuple[str, str, Dict[str, list[str]], str]:
        """Split "METHOD URI VERSION" and the URI into path and query."""
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, uri, version = match.groups()

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505,
            )

        parsed = urlparse(uri)
        path = unquote(parsed.path) or "/"
        query_params = parse_qs(parsed.query, keep_blank_values=True)

        return method, path, query_params, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse "Name: Value" lines.

        Names are lowercased; repeated headers are joined with ", " per
        RFC 7230; lines that do not look like headers are skipped.
        """
        headers: Dict[str, str] = {}

        for line in lines:
            if not line:
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 1024 * 1024
) -> HTTPRequest:
    """Parse one request with a throwaway RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
