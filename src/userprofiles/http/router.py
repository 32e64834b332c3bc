"""
=============================================================================
URL ROUTER
=============================================================================

Flat dispatch on (method, path).

=============================================================================
ROUTING FLOW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   PUT /users?id=1                                                    │
    │        │                                                             │
    │        ▼                                                             │
    │   ┌─────────────────────────────────────────────────────────────┐   │
    │   │  ROUTER                                                      │   │
    │   │                                                              │   │
    │   │   GET    /users  → UsersHandler.read                         │   │
    │   │   POST   /users  → UsersHandler.create                       │   │
    │   │   PUT    /users  → UsersHandler.update      ← MATCH          │   │
    │   │   DELETE /users  → UsersHandler.delete                       │   │
    │   │                                                              │   │
    │   └─────────────────────────────────────────────────────────────┘   │
    │        │                                                             │
    │        ├── path known, method matched   → call handler               │
    │        ├── path known, method unknown   → 405 + Allow header         │
    │        └── path unknown                 → 404                        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Paths are matched exactly after normalization ("/users/" == "/users").
The query string is never part of the match; handlers read it themselves.

APIError raised anywhere below the router is turned into its JSON error
response here, so handlers can simply `raise NotFound(...)`.

=============================================================================
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from .errors import APIError, MethodNotAllowed, NotFound
from .request import HTTPRequest
from .response import HTTPResponse


# Handler: a function that takes a request and returns a response
Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass
class Route:
    """A (method, path) pair bound to a handler."""

    path: str
    method: str
    handler: Handler


class Router:
    """
    Method + path router with decorator registration.

        router = Router()

        @router.get("/users")
        def list_users(request):
            return ok([...])

        response = router.handle(request)
    """

    NOT_FOUND_MESSAGE = "Route not found"
    NOT_ALLOWED_MESSAGE = "Method not allowed"

    def __init__(self):
        self._routes: Dict[Tuple[str, str], Route] = {}

    @staticmethod
    def normalize(path: str) -> str:
        """Leading slash, no trailing slash ("/" stays "/")."""
        return "/" + path.strip("/") if path != "/" else "/"

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(self, path: str, handler: Handler, method: str) -> Route:
        """
        Register a handler for one method on one path.

        Registering the same (method, path) twice replaces the first handler.
        """
        route = Route(path=self.normalize(path), method=method.upper(), handler=handler)
        self._routes[(route.method, route.path)] = route
        return route

    def route(self, path: str, method: str) -> Callable[[Handler], Handler]:
        """Decorator form of add_route(). Returns the handler unchanged."""
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, method)
            return handler
        return decorator

    def get(self, path: str) -> Callable[[Handler], Handler]:
        return self.route(path, "GET")

    def post(self, path: str) -> Callable[[Handler], Handler]:
        return self.route(path, "POST")

    def put(self, path: str) -> Callable[[Handler], Handler]:
        return self.route(path, "PUT")

    def delete(self, path: str) -> Callable[[Handler], Handler]:
        return self.route(path, "DELETE")

    # =========================================================================
    # MATCHING & DISPATCH
    # =========================================================================

    def match(self, method: str, path: str) -> Optional[Route]:
        return self._routes.get((method.upper(), self.normalize(path)))

    def get_allowed_methods(self, path: str) -> List[str]:
        """Methods registered for a path; empty when the path is unknown."""
        path = self.normalize(path)
        return sorted(method for method, route_path in self._routes if route_path == path)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Dispatch a request.

        1. Exact (method, path) match → handler
        2. Path known under another method → 405
        3. Otherwise → 404
        """
        try:
            route = self.match(request.method, request.path)
            if route:
                return route.handler(request)

            allowed = self.get_allowed_methods(request.path)
            if allowed:
                raise MethodNotAllowed(self.NOT_ALLOWED_MESSAGE, allowed)

            raise NotFound(self.NOT_FOUND_MESSAGE)
        except APIError as e:
            return e.to_response()

    # =========================================================================
    # UTILITY METHODS
    # =========================================================================

    def routes(self) -> List[Route]:
        """Registered routes, grouped by path, in registration order."""
        return list(self._routes.values())

    def print_routes(self) -> None:
        """
        Print the route table (startup banner).

            Registered Routes:
            ------------------------------------------------------------
              GET      /users
              POST     /users
            ------------------------------------------------------------
        """
        print("\nRegistered Routes:")
        print("-" * 60)
        for route in self.routes():
            print(f"  {route.method:8} {route.path}")
        print("-" * 60)
