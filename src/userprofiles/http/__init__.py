"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Everything that knows about HTTP messages and nothing about users:

    request.py       bytes → HTTPRequest (RequestParser, HTTPParseError)
    response.py      HTTPResponse / ResponseBuilder → bytes
    status_codes.py  HTTPStatus enum with reason phrases
    errors.py        APIError family, one class per error status
    router.py        (method, path) → handler dispatch

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ok,              # 200 OK
    created,         # 201 Created
    empty,           # bodyless (preflight)
    error_response,  # {"error": ...}
    internal_error,  # 500 Internal Server Error
)
from .status_codes import HTTPStatus
from .errors import APIError, BadRequest, Unauthorized, NotFound, MethodNotAllowed
from .router import Router, Route

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    # Response building
    "HTTPResponse",
    "ResponseBuilder",
    "ok",
    "created",
    "empty",
    "error_response",
    "internal_error",

    # Status codes
    "HTTPStatus",

    # Errors
    "APIError",
    "BadRequest",
    "Unauthorized",
    "NotFound",
    "MethodNotAllowed",

    # Routing
    "Router",
    "Route",
]
