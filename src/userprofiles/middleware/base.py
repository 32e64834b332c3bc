"""
=============================================================================
BASE MIDDLEWARE INTERFACE
=============================================================================

The middleware protocol and the pipeline that chains middleware around the
router (Chain of Responsibility).

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      REQUEST / RESPONSE FLOW                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Request ────────────────────────────────────────────────►         │
    │                                                                      │
    │   ┌──────────┐    ┌──────────┐    ┌──────────┐    ┌──────────┐     │
    │   │ Logging  │───►│   CORS   │───►│   Auth   │───►│  Router  │     │
    │   └────┬─────┘    └────┬─────┘    └────┬─────┘    └────┬─────┘     │
    │        │               │               │               │            │
    │   start timer     OPTIONS?        token ok?        /users           │
    │                   └► 200 now      └► 401 now       handlers         │
    │        ▲               ▲               ▲               │            │
    │   access log      add CORS         (nothing)           ▼            │
    │   X-Request-ID    headers                           response        │
    │                                                                      │
    │   ◄──────────────────────────────────────────────── Response        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A middleware either calls next(request) and post-processes the result, or
returns a response of its own without calling next (short-circuit).

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


# The next middleware, or the router at the end of the chain.
NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Abstract base class for middleware.

        class MyMiddleware(Middleware):
            def __call__(self, request, next):
                if not self.is_valid(request):
                    return error_response(400, "Invalid")   # short-circuit

                response = next(request)
                response.set_header("X-Processed-By", "MyMiddleware")
                return response
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """Handle the request, calling next(request) unless short-circuiting."""

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Ordered list of middleware wrapped around a final handler.

    First added is outermost:

        pipeline = MiddlewarePipeline()
        pipeline.add(LoggingMiddleware())   # sees every request first
        pipeline.add(CORSMiddleware())
        pipeline.add(AuthMiddleware(guard)) # closest to the router

        handler = pipeline.wrap(router.handle)
        response = handler(request)
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the chain around handler.

        Wrapping runs in reverse so that [A, B, C] becomes A(B(C(handler))).
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._create_wrapped_handler(middleware, current)
        return current

    @staticmethod
    def _create_wrapped_handler(
        middleware: Middleware,
        next_handler: NextHandler
    ) -> NextHandler:
        # A separate function so each closure binds its own pair; a lambda
        # in the loop above would capture the loop variables by reference.
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)
