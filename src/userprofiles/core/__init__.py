"""
Networking core: TCP listener, per-client connection, worker pool.
"""

from .connection import (
    Connection,
    ConnectionState,
    FramingError,
    RequestTooLarge,
    UnsupportedTransferEncoding,
)
from .socket_server import SocketServer
from .thread_pool import ThreadPool, Task, Worker, WorkerState

__all__ = [
    "Connection",
    "ConnectionState",
    "FramingError",
    "RequestTooLarge",
    "UnsupportedTransferEncoding",
    "SocketServer",
    "ThreadPool",
    "Task",
    "Worker",
    "WorkerState",
]
