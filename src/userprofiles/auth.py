"""
Static bearer-token authentication.

One shared secret for the whole process. There are no user accounts,
sessions or scopes: a request is either carrying the token or it is not.
"""

from typing import Optional


class BearerTokenGuard:
    """
    Checks the Authorization header against "Bearer <token>".

    The comparison is an exact string match: scheme, single space and
    token must all be identical.
    """

    SCHEME = "Bearer"

    def __init__(self, token: str):
        if not token:
            raise ValueError("Bearer token must not be empty")
        self._expected = f"{self.SCHEME} {token}"

    def is_authorized(self, header_value: Optional[str]) -> bool:
        if not header_value:
            return False
        return header_value == self._expected
