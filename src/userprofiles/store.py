"""
=============================================================================
USER STORE
=============================================================================

In-memory, ordered collection of user records mirrored to one JSON file.

=============================================================================
PERSISTENCE MODEL
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       MEMORY ←→ DISK                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   load()  (once, at startup)                                         │
    │     users.json exists?                                               │
    │       yes → parse the JSON array into User records                   │
    │       no  → start empty, write "[]" immediately                      │
    │                                                                      │
    │   create() / update() / delete()                                     │
    │     mutate the in-memory list                                        │
    │       └──► _save(): rewrite the WHOLE file (no append, no patch)    │
    │                                                                      │
    │   find_by_id() / list_all()                                          │
    │     memory only, never touch the disk                                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The list order is the insertion order and is also the on-disk order, so a
restart with no mutation in between reproduces the same sequence.

=============================================================================
CONCURRENCY
=============================================================================

The server handles connections on a pool of worker threads, so several
handlers can reach the store at once. Every public method takes the same
re-entrant lock: a mutation and its file rewrite happen as one step, and
the file on disk always reflects the latest mutation.

=============================================================================
"""

import json
import logging
import threading
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .models import DEFAULT_ROLE, MUTABLE_FIELDS, User, is_blank


logger = logging.getLogger(__name__)


class UserValidationError(ValueError):
    """Raised when a record is missing a required field."""


class UserStore:
    """
    Thread-safe user collection backed by a JSON file.

    Usage:
        store = UserStore("users.json")
        store.load()

        user = store.create("Ana", "a@x.com")      # id=1, role="viewer"
        store.update(user.id, {"role": "admin"})
        store.delete(user.id)

    Records handed out are copies: changing them does not change the store.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._users: List[User] = []
        self._lock = threading.RLock()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def load(self) -> None:
        """
        Read the persisted collection.

        Creates the file (and its parent directories) holding an empty
        array when it does not exist. OS errors and malformed JSON are not
        caught: a store that cannot be read is a startup failure.
        """
        with self._lock:
            if not self.path.exists():
                logger.info(f"{self.path} not found, creating new file")
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._users = []
                self._save()
                return

            raw = self.path.read_text(encoding="utf-8")
            data = json.loads(raw) if raw.strip() else []
            if not isinstance(data, list):
                raise ValueError(f"{self.path} must contain a JSON array")

            self._users = [User.from_dict(item) for item in data]
            logger.info(f"Loaded {len(self._users)} users from {self.path}")

    def _save(self) -> None:
        """Rewrite the whole file from the in-memory list."""
        payload = json.dumps(
            [user.to_dict() for user in self._users],
            indent=2,
            ensure_ascii=False,
        )
        self.path.write_text(payload, encoding="utf-8")
        logger.debug(f"Persisted {len(self._users)} users to {self.path}")

    # =========================================================================
    # QUERIES
    # =========================================================================

    def list_all(self) -> List[User]:
        with self._lock:
            return [replace(user) for user in self._users]

    def find_by_id(self, user_id: int) -> Optional[User]:
        with self._lock:
            index = self._index_of(user_id)
            return None if index is None else replace(self._users[index])

    def _index_of(self, user_id: int) -> Optional[int]:
        for index, user in enumerate(self._users):
            if user.id == user_id:
                return index
        return None

    def _next_id(self) -> int:
        # max + 1, not len + 1: deletes leave gaps that must never be reused
        # while a higher id still exists
        return max((user.id for user in self._users), default=0) + 1

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def create(self, name: Any, email: Any, role: Any = None) -> User:
        """
        Append a new record and persist.

        Raises:
            UserValidationError: name or email is missing or empty.
        """
        if is_blank(name) or is_blank(email):
            raise UserValidationError("Name and email are required")

        with self._lock:
            user = User(
                id=self._next_id(),
                name=name,
                email=email,
                role=DEFAULT_ROLE if is_blank(role) else role,
            )
            self._users.append(user)
            self._save()
            logger.info(f"Created user {user.id}")
            return replace(user)

    def update(self, user_id: int, fields: Dict[str, Any]) -> Optional[User]:
        """
        Apply a partial update and persist.

        Only name, email and role are considered, and only when present
        and not blank (see is_blank). Returns None for an unknown id.
        """
        with self._lock:
            index = self._index_of(user_id)
            if index is None:
                return None

            user = self._users[index]
            for name in MUTABLE_FIELDS:
                value = fields.get(name)
                if not is_blank(value):
                    setattr(user, name, value)

            self._save()
            logger.info(f"Updated user {user_id}")
            return replace(user)

    def delete(self, user_id: int) -> Optional[User]:
        """Remove a record and persist. Returns the removed record or None."""
        with self._lock:
            index = self._index_of(user_id)
            if index is None:
                return None

            removed = self._users.pop(index)
            self._save()
            logger.info(f"Deleted user {user_id}")
            return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._users)
