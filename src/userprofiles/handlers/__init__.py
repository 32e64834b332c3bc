"""
Request handlers.
"""

from .users import UsersHandler, USERS_PATH

__all__ = ["UsersHandler", "USERS_PATH"]
