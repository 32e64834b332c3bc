"""
User record model.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict


DEFAULT_ROLE = "viewer"

# Fields a client may change after creation. "id" is deliberately absent.
MUTABLE_FIELDS = ("name", "email", "role")


def is_blank(value: Any) -> bool:
    """
    Whether a client-supplied field counts as missing.

    None, "", 0 and false are blank. Empty lists and objects are not:
    they are values, just unusual ones.
    """
    if isinstance(value, (list, dict)):
        return False
    return not value


@dataclass
class User:
    """
    One user entry.

    Field order matters: it is the key order of the JSON objects written
    to disk and returned to clients.
    """

    id: int
    name: str
    email: str
    role: str = DEFAULT_ROLE

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        """
        Build a User from a persisted JSON object.

        Unknown keys are dropped; a missing role falls back to the default.
        """
        return cls(
            id=int(data["id"]),
            name=data["name"],
            email=data["email"],
            role=data.get("role") or DEFAULT_ROLE,
        )
