"""
=============================================================================
USERPROFILES - User Record Service over a From-Scratch HTTP/1.1 Server
=============================================================================

CRUD over a list of user records kept in one JSON file, served on raw
sockets and guarded by a static bearer token.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    userprofiles/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m userprofiles)
    ├── server.py            # HTTPServer + create_app()
    ├── config.py            # ServiceConfig dataclass
    ├── models.py            # User record
    ├── store.py             # UserStore (JSON file persistence)
    ├── auth.py              # BearerTokenGuard
    ├── core/                # Sockets and threads
    │   ├── socket_server.py # TCP listener
    │   ├── connection.py    # Buffered request reading
    │   └── thread_pool.py   # Worker pool
    ├── http/                # HTTP protocol
    │   ├── request.py       # Request parsing
    │   ├── response.py      # Response building
    │   ├── router.py        # (method, path) dispatch
    │   ├── errors.py        # APIError family
    │   └── status_codes.py  # HTTPStatus
    ├── middleware/
    │   ├── logging.py       # Access log
    │   ├── cors.py          # CORS + preflight
    │   └── auth.py          # Bearer token check
    └── handlers/
        └── users.py         # /users CRUD

=============================================================================
QUICK START
=============================================================================

    from userprofiles import ServiceConfig, create_app

    app = create_app(ServiceConfig(port=3000, data_file="users.json"))
    app.run()

    $ curl -H "Authorization: Bearer my-secret-token" localhost:3000/users
    []

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServiceConfig
from .models import User
from .store import UserStore, UserValidationError
from .auth import BearerTokenGuard
from .server import HTTPServer, create_app

__all__ = [
    "__version__",
    "ServiceConfig",
    "User",
    "UserStore",
    "UserValidationError",
    "BearerTokenGuard",
    "HTTPServer",
    "create_app",
]
