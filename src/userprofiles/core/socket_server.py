"""
=============================================================================
SOCKET SERVER
=============================================================================

TCP listener: one socket bound to one host/port for the life of the
process, and an accept loop that hands each client to a callback.

    start(handler)
        │
        ├──► _create_socket()    SO_REUSEADDR, TCP_NODELAY, 1s accept timeout
        ├──► bind() + listen()
        ├──► _setup_signals()    SIGINT / SIGTERM → shutdown()
        │
        └──► _accept_loop()      blocks until shutdown()
                 │
                 └──► Connection(...) → handler(conn)

The one second accept timeout lets the loop notice shutdown() even when no
client connects.

=============================================================================
"""

from typing import Callable, Optional, Tuple
import logging
import signal
import socket
import threading

from .connection import Connection
from ..config import ServiceConfig


logger = logging.getLogger(__name__)


ConnectionHandler = Callable[[Connection], None]


class SocketServer:
    """
    Low-level TCP listener used by HTTPServer.

        server = SocketServer(config)
        server.start(handle_connection)   # blocks until shutdown()
    """

    ACCEPT_TIMEOUT = 1.0

    def __init__(self, config: ServiceConfig):
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._bound = threading.Event()
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """
        The bound (host, port).

        With port 0 the OS picks a free port; after bind() this reports
        the real one.
        """
        if self._socket is not None:
            return self._socket.getsockname()[:2]
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Restart right away without waiting out TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # Responses are written in one sendall(); no point batching them
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        sock.settimeout(self.ACCEPT_TIMEOUT)
        return sock

    # =========================================================================
    # SIGNALS
    # =========================================================================

    def _setup_signals(self) -> None:
        """
        SIGINT/SIGTERM trigger a graceful shutdown.

        signal.signal() only works in the main thread; a server started
        from another thread (tests, embedding) relies on shutdown() instead.
        """
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not in main thread, skipping signal handlers")
            return

        def shutdown_handler(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown...")
            self.shutdown()

        for sig in (signal.SIGTERM, signal.SIGINT):
            self._original_handlers[sig] = signal.signal(sig, shutdown_handler)

    def _restore_signals(self) -> None:
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self, connection_handler: ConnectionHandler) -> None:
        """Bind, listen and run the accept loop. Blocks until shutdown()."""
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)

        self._running = True
        self._setup_signals()
        self._bound.set()

        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: ConnectionHandler) -> None:
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            connection_handler(conn)

    def shutdown(self) -> None:
        """Stop the accept loop. Safe to call more than once, from any thread."""
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False

    def _cleanup(self) -> None:
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._bound.clear()
        logger.info("Socket server stopped")

    def wait_until_bound(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening (for callers on other threads)."""
        return self._bound.wait(timeout)
