"""
Bearer-token middleware.

Rejects any request whose Authorization header does not carry the
configured token, before it reaches the router. OPTIONS is let through so
a preflight never needs credentials (CORSMiddleware normally answers it
first anyway).
"""

import logging

from .base import Middleware, NextHandler
from ..auth import BearerTokenGuard
from ..http.errors import Unauthorized
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


class AuthMiddleware(Middleware):
    """401 {"error": "Unauthorized. Use Bearer token."} unless authorized."""

    MESSAGE = "Unauthorized. Use Bearer token."

    def __init__(self, guard: BearerTokenGuard):
        self.guard = guard

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        if request.method == "OPTIONS":
            return next(request)

        if not self.guard.is_authorized(request.authorization):
            # never log the header value itself
            logger.warning(
                f"Rejected {request.method} {request.path} from "
                f"{request.client_address[0] or '-'}: "
                f"{'bad' if request.authorization else 'missing'} bearer token"
            )
            return Unauthorized(self.MESSAGE).to_response()

        return next(request)
