"""
=============================================================================
API ERRORS
=============================================================================

Exceptions that map one-to-one onto HTTP error responses.

Handlers raise them instead of building error responses by hand; the
router catches them and turns them into JSON:

    raise NotFound("User not found")
            │
            ▼
    HTTP/1.1 404 Not Found
    Content-Type: application/json

    {"error": "User not found"}

    ┌──────────────────┬────────┬──────────────────────────────────────────┐
    │ Exception        │ Status │ Raised when                              │
    ├──────────────────┼────────┼──────────────────────────────────────────┤
    │ BadRequest       │  400   │ Required field or id parameter missing   │
    │ Unauthorized     │  401   │ Bearer token missing or wrong            │
    │ NotFound         │  404   │ Unknown user id or unknown route         │
    │ MethodNotAllowed │  405   │ Unsupported verb on a known route        │
    └──────────────────┴────────┴──────────────────────────────────────────┘

=============================================================================
"""

from typing import Iterable

from .response import HTTPResponse, error_response
from .status_codes import HTTPStatus


class APIError(Exception):
    """
    Base class for errors reported to the client.

    Carries the HTTP status to answer with, like HTTPParseError does
    for malformed requests.
    """

    status = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_response(self) -> HTTPResponse:
        """Render the error as a JSON response."""
        return error_response(self.status, self.message)


class BadRequest(APIError):
    status = HTTPStatus.BAD_REQUEST


class Unauthorized(APIError):
    status = HTTPStatus.UNAUTHORIZED

    def to_response(self) -> HTTPResponse:
        response = super().to_response()
        response.set_header("WWW-Authenticate", "Bearer")
        return response


class NotFound(APIError):
    status = HTTPStatus.NOT_FOUND


class MethodNotAllowed(APIError):
    status = HTTPStatus.METHOD_NOT_ALLOWED

    def __init__(self, message: str, allowed: Iterable[str] = ()):
        super().__init__(message)
        self.allowed = sorted(allowed)

    def to_response(self) -> HTTPResponse:
        response = super().to_response()
        if self.allowed:
            # RFC 7231: a 405 must list what the resource does accept
            response.set_header("Allow", ", ".join(self.allowed))
        return response
