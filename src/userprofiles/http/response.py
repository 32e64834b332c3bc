"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds HTTP/1.1 responses (RFC 7230) for the JSON API.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP RESPONSE STRUCTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    HTTP/1.1 201 Created\r\n                  ← status line          │
    │    Content-Type: application/json\r\n        ← headers              │
    │    Access-Control-Allow-Origin: *\r\n                               │
    │    Content-Length: 62\r\n                    ← auto-added           │
    │    Date: Mon, 19 Oct 2026 12:00:00 GMT\r\n   ← auto-added           │
    │    Server: UserProfiles/1.0\r\n              ← auto-added           │
    │    \r\n                                                              │
    │    {"id": 1, "name": "Ana", ...}             ← body                 │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Union
import json

from .status_codes import HTTPStatus


JSON_CONTENT_TYPE = "application/json"


@dataclass
class HTTPResponse:
    """
    An HTTP response ready to be serialized.

    Attributes:
        status:  HTTPStatus (an int)
        headers: Response headers, original case preserved
        body:    Body bytes
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """Status line, e.g. HTTP/1.1 200 OK."""
        return f"{self.version} {int(self.status)} {HTTPStatus(self.status).phrase}"

    @property
    def json(self) -> Any:
        """Decode a JSON body (used by tests and the access log)."""
        return json.loads(self.body.decode("utf-8")) if self.body else None

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        self.body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def to_bytes(self, server_name: str = "UserProfiles/1.0") -> bytes:
        """
        Serialize for socket.sendall().

        Content-Length, Date and Server are filled in when the handler did
        not set them.
        """
        response_headers = dict(self.headers)

        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))

        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTP responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.CREATED)
            .json(user.to_dict())
            .build())

    Every method but build() returns self.
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def json(self, data: Any, pretty: bool = False) -> "ResponseBuilder":
        """
        Serialize data as the JSON body and set Content-Type.

        ensure_ascii=False keeps non-ASCII names readable on the wire.
        """
        indent = 2 if pretty else None
        self._body = json.dumps(data, indent=indent, ensure_ascii=False).encode("utf-8")
        self._headers["Content-Type"] = JSON_CONTENT_TYPE
        return self

    def close_connection(self) -> "ResponseBuilder":
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def format_http_date(dt: datetime) -> str:
    """
    Format a UTC datetime as an HTTP-date: "Mon, 19 Oct 2026 12:00:00 GMT".

    Locale-independent on purpose; strftime("%a") would follow LC_TIME.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def ok(body: Union[dict, list]) -> HTTPResponse:
    """200 OK with a JSON body."""
    return ResponseBuilder().status(HTTPStatus.OK).json(body).build()


def created(body: Union[dict, list]) -> HTTPResponse:
    """201 Created with a JSON body (the new resource)."""
    return ResponseBuilder().status(HTTPStatus.CREATED).json(body).build()


def empty(status: HTTPStatus = HTTPStatus.OK) -> HTTPResponse:
    """
    Bodyless response that still advertises JSON.

    Used for CORS preflight answers.
    """
    return (ResponseBuilder()
        .status(status)
        .header("Content-Type", JSON_CONTENT_TYPE)
        .build())


def error_response(status: HTTPStatus, message: str) -> HTTPResponse:
    """{"error": message} with the given status."""
    return ResponseBuilder().status(status).json({"error": message}).build()


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    """500 Internal Server Error. Keep the message generic."""
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, message)
