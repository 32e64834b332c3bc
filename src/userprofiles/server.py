"""
=============================================================================
USER PROFILE SERVER
=============================================================================

Ties the pieces together: listener, worker pool, parser, middleware
pipeline, router and the /users handlers over one UserStore.

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   SocketServer.accept()                                              │
    │        │                                                             │
    │        ▼                                                             │
    │   ThreadPool.submit(_process_connection)   full? → 503               │
    │        │                                   stale? → 503              │
    │        │                                                             │
    │        ▼  (worker thread, keep-alive loop)                           │
    │   Connection.read_request()                timeout? → 408            │
    │        │                                   framing? → 400/413/501    │
    │        ▼                                                             │
    │   RequestParser.parse()                    bad?     → 400/413/505    │
    │        │                                                             │
    │        ▼                                                             │
    │   Logging → CORS → Auth → Router → UsersHandler → UserStore          │
    │        │                                   crash?   → 500            │
    │        ▼                                                             │
    │   HTTPResponse.to_bytes() → Connection.send_response()               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from functools import partial
from typing import Callable, Optional
import logging

from .auth import BearerTokenGuard
from .config import ServiceConfig
from .core.connection import Connection, FramingError
from .core.socket_server import SocketServer
from .core.thread_pool import ThreadPool
from .handlers.users import UsersHandler
from .http.request import HTTPRequest, HTTPParseError, RequestParser
from .http.response import HTTPResponse, ResponseBuilder, internal_error
from .http.router import Router
from .http.status_codes import HTTPStatus
from .middleware.auth import AuthMiddleware
from .middleware.base import Middleware, MiddlewarePipeline
from .middleware.cors import CORSMiddleware
from .middleware.logging import LoggingMiddleware
from .store import UserStore


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Threaded HTTP/1.1 server.

        server = HTTPServer(ServiceConfig(port=3000))
        server.use(LoggingMiddleware())

        @server.get("/ping")
        def ping(request):
            return ok({"pong": True})

        server.run()    # blocks until Ctrl+C / SIGTERM

    handle() runs one already-parsed request through the middleware and
    router without any socket, which is how most tests drive it.
    """

    def __init__(self, config: Optional[ServiceConfig] = None):
        self.config = config or ServiceConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._router = Router()
        self._middleware = MiddlewarePipeline()

        self.store: Optional[UserStore] = None

        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._running = False

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def use(self, middleware: Middleware) -> "HTTPServer":
        """Append middleware. First added is outermost."""
        self._middleware.add(middleware)
        self._handler = None
        return self

    @property
    def router(self) -> Router:
        return self._router

    @property
    def address(self):
        """Bound (host, port); the configured pair before run()."""
        return self._socket_server.address

    def get(self, path: str):
        return self._router.get(path)

    def post(self, path: str):
        return self._router.post(path)

    def put(self, path: str):
        return self._router.put(path)

    def delete(self, path: str):
        return self._router.delete(path)

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """Run a parsed request through middleware and router."""
        if self._handler is None:
            self._handler = self._middleware.wrap(self._router.handle)
        return self._handler(request)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self, host: Optional[str] = None, port: Optional[int] = None) -> None:
        """Serve until stopped. Blocks."""
        if host:
            self.config.host = host
        if port is not None:
            self.config.port = port

        self._setup_logging()
        self._handler = self._middleware.wrap(self._router.handle)
        self._running = True
        self._thread_pool.start()

        logger.info(f"Starting HTTP server on {self.config.host}:{self.config.port}")
        self._print_startup_banner()

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def stop(self) -> None:
        """Ask a running server to stop (any thread)."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until run() is listening. False on timeout."""
        return self._socket_server.wait_until_bound(timeout)

    def _setup_logging(self) -> None:
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("userprofiles").setLevel(level)

    def _print_startup_banner(self) -> None:
        lines = [
            f"{self.config.server_name} running",
            f"http://{self.config.host}:{self.config.port}",
            f"Workers: {self.config.min_workers}-{self.config.max_workers} threads",
            "Authorization: Bearer <token>",
            "Press Ctrl+C to stop",
        ]
        width = max(len(line) for line in lines) + 4

        print()
        print("╔" + "═" * width + "╗")
        for line in lines:
            print("║  " + line.ljust(width - 2) + "║")
        print("╚" + "═" * width + "╝")

        self._router.print_routes()

    def _shutdown(self) -> None:
        logger.info("Shutting down server...")
        self._running = False
        self._thread_pool.shutdown(wait=True, timeout=5.0)
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection) -> None:
        """Accept-loop callback: hand the connection to the pool."""
        submitted = self._thread_pool.submit(
            self._process_connection,
            args=(conn,),
            timeout=self.config.timeout,
            on_drop=partial(self._reject_connection, conn),
        )

        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._reject_connection(conn)

    def _reject_connection(self, conn: Connection) -> None:
        """503 and close: pool full, or the connection waited too long for a worker."""
        self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
        conn.close()

    def _process_connection(self, conn: Connection) -> None:
        """Keep-alive loop for one connection (worker thread)."""
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                    if raw_request is None:
                        break

                    try:
                        request = self._parser.parse(raw_request, conn.address)
                    except HTTPParseError as e:
                        logger.debug(f"[{conn.id}] Parse error: {e}")
                        self._send_error(conn, e.status_code, str(e))
                        break

                    try:
                        response = self.handle(request)
                    except Exception as e:
                        # Store write failures land here too
                        logger.exception(f"[{conn.id}] Handler error: {e}")
                        response = internal_error()

                    keep_alive = request.is_keep_alive and self.config.keep_alive
                    if keep_alive:
                        response.headers.setdefault("Connection", "keep-alive")
                        response.headers.setdefault(
                            "Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}"
                        )
                    else:
                        response.headers["Connection"] = "close"

                    if not conn.send_response(self._serialize(request, response)):
                        break
                    if not keep_alive:
                        break

                    conn.set_keep_alive()

                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                    break

                except FramingError as e:
                    logger.debug(f"[{conn.id}] Framing error: {e}")
                    self._send_error(conn, e.status_code, str(e))
                    break

                except Exception as e:
                    logger.exception(f"[{conn.id}] Connection error: {e}")
                    break

    def _serialize(self, request: HTTPRequest, response: HTTPResponse) -> bytes:
        """
        Response bytes for the wire. A HEAD answer keeps its headers,
        Content-Length included, but carries no body.
        """
        data = response.to_bytes(self.config.server_name)
        if request.method == "HEAD":
            return data[:data.index(b"\r\n\r\n") + 4]
        return data

    def _send_error(self, conn: Connection, status: int, message: str) -> None:
        """Error raised before the pipeline ran (parse, timeout, overload)."""
        response = (ResponseBuilder()
            .status(HTTPStatus(status))
            .json({"error": message})
            .close_connection()
            .build())
        conn.send_response(response.to_bytes(self.config.server_name))


def create_app(
    config: Optional[ServiceConfig] = None,
    store: Optional[UserStore] = None,
) -> HTTPServer:
    """
    Build the user profile service.

    Loads the store (creating the data file if needed), installs the
    middleware in order and registers the /users routes.

        app = create_app(ServiceConfig(port=3000, data_file="users.json"))
        app.run()

    Raises:
        OSError / ValueError: the data file cannot be created or read.
    """
    config = config or ServiceConfig()
    server = HTTPServer(config)

    if store is None:
        store = UserStore(config.data_path)
        store.load()

    server.use(LoggingMiddleware(log_format=config.log_format))
    server.use(CORSMiddleware())
    server.use(AuthMiddleware(BearerTokenGuard(config.auth_token)))

    UsersHandler(store).register(server.router)
    server.store = store

    return server
