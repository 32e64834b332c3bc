"""
=============================================================================
CORS MIDDLEWARE
=============================================================================

Lets browser front-ends on other origins call the API.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        PREFLIGHT FLOW                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Browser                                         Server            │
    │      │   OPTIONS /users                              │              │
    │      │   Origin: https://admin.example               │              │
    │      │   Access-Control-Request-Method: PUT          │              │
    │      │ ─────────────────────────────────────────────►│              │
    │      │                                               │              │
    │      │   200 OK (empty body, no auth required)       │              │
    │      │   Access-Control-Allow-Origin: *              │              │
    │      │   Access-Control-Allow-Methods: GET, ...      │              │
    │      │   Access-Control-Allow-Headers: Content-...   │              │
    │      │ ◄─────────────────────────────────────────────│              │
    │      │                                               │              │
    │      │   PUT /users?id=1                             │              │
    │      │   Authorization: Bearer ...                   │              │
    │      │ ─────────────────────────────────────────────►│              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The preflight is answered here, before AuthMiddleware runs: browsers never
attach credentials to it. The same headers go on every other response,
errors included.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, empty
from ..http.status_codes import HTTPStatus


@dataclass
class CORSConfig:
    """CORS policy. The defaults are what the user API advertises."""

    # ─────────────────────────────────────────────────────────────────────
    # "*" allows any origin; credentials are carried in a header, not a
    # cookie, so a wildcard origin is acceptable
    # ─────────────────────────────────────────────────────────────────────
    allow_origin: str = "*"

    allow_methods: List[str] = field(
        default_factory=lambda: ["GET", "POST", "PUT", "DELETE"]
    )

    allow_headers: List[str] = field(
        default_factory=lambda: ["Content-Type", "Authorization"]
    )

    def headers(self) -> Dict[str, str]:
        return {
            "Access-Control-Allow-Origin": self.allow_origin,
            "Access-Control-Allow-Methods": ", ".join(self.allow_methods),
            "Access-Control-Allow-Headers": ", ".join(self.allow_headers),
        }


class CORSMiddleware(Middleware):
    """
    Answers OPTIONS on any path and stamps CORS headers on every response.

    Position: after logging, before auth.

        pipeline.add(LoggingMiddleware())
        pipeline.add(CORSMiddleware())
        pipeline.add(AuthMiddleware(guard))
    """

    def __init__(self, config: Optional[CORSConfig] = None):
        self.config = config or CORSConfig()
        self._headers = self.config.headers()

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        if request.method == "OPTIONS":
            return self._handle_preflight(request)

        response = next(request)
        self._add_cors_headers(response)
        return response

    def _handle_preflight(self, request: HTTPRequest) -> HTTPResponse:
        response = empty(HTTPStatus.OK)
        self._add_cors_headers(response)
        return response

    def _add_cors_headers(self, response: HTTPResponse) -> None:
        response.headers.update(self._headers)
