"""
=============================================================================
/users HANDLERS
=============================================================================

CRUD over the user store. The record id travels in the query string, the
record fields in a JSON body:

    ┌────────┬────────────────────┬──────────────────────┬──────────────────┐
    │ Method │ Request            │ Success              │ Failure          │
    ├────────┼────────────────────┼──────────────────────┼──────────────────┤
    │ GET    │ /users             │ 200 [user, ...]      │                  │
    │ GET    │ /users?id=N        │ 200 user             │ 404              │
    │ POST   │ /users  {name,     │ 201 user             │ 400 missing      │
    │        │   email, role?}    │                      │   name/email     │
    │ PUT    │ /users?id=N {...}  │ 200 user             │ 400 no id, 404   │
    │ DELETE │ /users?id=N        │ 200 {message, user}  │ 400 no id, 404   │
    └────────┴────────────────────┴──────────────────────┴──────────────────┘

Bodies are read with json_or_default(): a missing or malformed body is an
empty object, so POST reports "Name and email are required" and PUT
changes nothing.

=============================================================================
"""

from typing import Optional
import logging

from ..http.errors import BadRequest, NotFound
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, created, ok
from ..http.router import Router
from ..store import UserStore, UserValidationError


logger = logging.getLogger(__name__)


USERS_PATH = "/users"


class UsersHandler:
    """
    Request handlers bound to one UserStore.

        handler = UsersHandler(store)
        handler.register(router)
    """

    ID_REQUIRED = "User ID is required"
    NOT_FOUND = "User not found"

    def __init__(self, store: UserStore):
        self.store = store

    def register(self, router: Router, path: str = USERS_PATH) -> None:
        router.add_route(path, self.read, "GET")
        router.add_route(path, self.create, "POST")
        router.add_route(path, self.update, "PUT")
        router.add_route(path, self.delete, "DELETE")

    # =========================================================================
    # HANDLERS
    # =========================================================================

    def read(self, request: HTTPRequest) -> HTTPResponse:
        """One record with ?id=N, otherwise the whole collection."""
        raw_id = self._raw_id(request)
        if raw_id is None:
            return ok([user.to_dict() for user in self.store.list_all()])

        user = self.store.find_by_id(self._parse_id(raw_id))
        if user is None:
            raise NotFound(self.NOT_FOUND)
        return ok(user.to_dict())

    def create(self, request: HTTPRequest) -> HTTPResponse:
        data = request.json_or_default()

        try:
            user = self.store.create(data.get("name"), data.get("email"), data.get("role"))
        except UserValidationError as e:
            raise BadRequest(str(e))

        return created(user.to_dict())

    def update(self, request: HTTPRequest) -> HTTPResponse:
        user_id = self._required_id(request)

        user = self.store.update(user_id, request.json_or_default())
        if user is None:
            raise NotFound(self.NOT_FOUND)
        return ok(user.to_dict())

    def delete(self, request: HTTPRequest) -> HTTPResponse:
        user_id = self._required_id(request)

        user = self.store.delete(user_id)
        if user is None:
            raise NotFound(self.NOT_FOUND)
        return ok({"message": "User deleted", "user": user.to_dict()})

    # =========================================================================
    # ID HANDLING
    # =========================================================================

    @staticmethod
    def _raw_id(request: HTTPRequest) -> Optional[str]:
        """The id query value; "?id=" counts as absent."""
        return request.get_query("id") or None

    def _required_id(self, request: HTTPRequest) -> int:
        raw_id = self._raw_id(request)
        if raw_id is None:
            raise BadRequest(self.ID_REQUIRED)
        return self._parse_id(raw_id)

    def _parse_id(self, raw_id: str) -> int:
        """
        Ids are plain ASCII digit strings ("7", "007"); anything else
        cannot name a record, so it is a 404 like any other unknown id.
        int() alone would also take "1_0" and non-ASCII digits.
        """
        if not (raw_id.isascii() and raw_id.isdigit()):
            logger.debug(f"Non-integer user id: {raw_id!r}")
            raise NotFound(self.NOT_FOUND)
        return int(raw_id)
