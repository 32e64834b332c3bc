"""
=============================================================================
SERVICE CONFIGURATION
=============================================================================

Centralized configuration for the user profile service.

Everything the process needs to know at boot lives in one dataclass that
is built once and handed to the listener, the store and the auth guard.
Nothing reads module-level globals.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m userprofiles --port 4000                        │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── HTTP_PORT=4000 HTTP_AUTH_TOKEN=s3cret ...                  │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


DEFAULT_AUTH_TOKEN = "my-secret-token"
DEFAULT_DATA_FILE = "users.json"


@dataclass
class ServiceConfig:
    """
    Configuration for the user profile service.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, timeout

    HTTP SETTINGS
    - keep_alive, keep_alive_timeout, max_request_size

    THREADING SETTINGS
    - min_workers, max_workers

    APPLICATION
    - auth_token, data_file

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Address to bind. Use "0.0.0.0" inside containers."""

    port: int = 3000
    """TCP port the listener binds for the lifetime of the process."""

    backlog: int = 128
    """Maximum number of queued, not yet accepted connections."""

    buffer_size: int = 8192
    """Bytes requested per recv() call."""

    timeout: Optional[float] = 30.0
    """Socket timeout in seconds for the first request on a connection."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024  # 1 MB is plenty for user records

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 16

    # ─────────────────────────────────────────────────────────────────────
    # APPLICATION
    # ─────────────────────────────────────────────────────────────────────

    auth_token: str = DEFAULT_AUTH_TOKEN
    """
    Static shared secret. Clients must send
    "Authorization: Bearer <auth_token>" on every non-preflight request.
    """

    data_file: str = DEFAULT_DATA_FILE
    """
    Path of the JSON file holding the user collection.
    Relative paths resolve against the working directory.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"
    """Access log format: 'text' (human) or 'json' (log aggregators)."""

    server_name: str = "UserProfiles/1.0"

    @property
    def data_path(self) -> Path:
        """The data file as an absolute Path."""
        return Path(self.data_file).expanduser().resolve()

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        HTTP_HOST        Bind address (default: 127.0.0.1)
        HTTP_PORT        Port (default: 3000)
        HTTP_WORKERS     Max worker threads (default: 16)
        HTTP_TIMEOUT     Request timeout in seconds (default: 30)
        HTTP_LOG_LEVEL   Logging level (default: INFO)
        HTTP_AUTH_TOKEN  Bearer token (default: my-secret-token)
        HTTP_DATA_FILE   User collection file (default: users.json)

        =====================================================================
        """
        workers = int(os.getenv("HTTP_WORKERS", "16"))

        return cls(
            host=os.getenv("HTTP_HOST", "127.0.0.1"),
            port=int(os.getenv("HTTP_PORT", "3000")),
            min_workers=min(cls.min_workers, workers),
            max_workers=workers,
            timeout=float(os.getenv("HTTP_TIMEOUT", "30")),
            log_level=os.getenv("HTTP_LOG_LEVEL", "INFO"),
            auth_token=os.getenv("HTTP_AUTH_TOKEN", DEFAULT_AUTH_TOKEN),
            data_file=os.getenv("HTTP_DATA_FILE", DEFAULT_DATA_FILE),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Called at startup so a bad port or an empty token stops the
        process before it binds anything.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if not self.auth_token:
            raise ValueError("auth_token must not be empty")

        if not self.data_file:
            raise ValueError("data_file must not be empty")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"Unknown log_format: {self.log_format}")
