"""
=============================================================================
HTTP SERVER
=============================================================================

Ties the transport (SocketServer, ThreadPool, Connection) to the
application (middleware pipeline around a Router).

    ┌──────────────┐   accept    ┌─────────────┐   submit   ┌──────────────┐
    │ SocketServer │ ──────────► │ HTTPServer  │ ─────────► │  ThreadPool  │
    └──────────────┘  Connection │ _handle_... │            └──────┬───────┘
                                 └─────────────┘                   │ worker
                                                                   ▼
          ┌─────────────────────── _process_connection ────────────────────┐
          │  read_request → parse → handler(request) → to_bytes → send    │
          │        ▲                                                  │    │
          │        └────────────── keep-alive? ◄──────────────────────┘    │
          └────────────────────────────────────────────────────────────────┘

``handler`` is the middleware pipeline wrapped around ``router.handle``. It
is composed once, the first time it is needed, so all middleware must be
added before the first request.

Errors that happen before a request reaches the pipeline (unparseable
bytes, read timeouts, a full worker queue) are answered here with a small
JSON body and the connection is closed.

=============================================================================
"""

import logging
from typing import Optional, Callable

from .config import ServerConfig
from .core import SocketServer, Connection, ConnectionState, ThreadPool
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPResponse, ResponseBuilder, HTTPStatus,
    Router,
)
from .middleware import MiddlewarePipeline, Middleware


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Multi-threaded HTTP/1.1 server.

        server = HTTPServer(ServerConfig(port=8080))
        server.use(RequestLoggingMiddleware())

        @server.get("/")
        def index(request):
            return ok("Hello, world!")

        server.run()            # blocks until SIGINT/SIGTERM or shutdown()

    ``handle()`` runs one request through the pipeline without any socket,
    which is how most tests drive the application.
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)

        self._router = Router()
        self._middleware = MiddlewarePipeline()
        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None

        self._running = False

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def use(self, middleware: Middleware) -> "HTTPServer":
        """Add middleware. First added is outermost."""
        if self._handler is not None:
            raise RuntimeError("Middleware must be added before the first request")
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        return self._router

    @property
    def middleware(self) -> MiddlewarePipeline:
        return self._middleware

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> tuple:
        """Bound (host, port); the real port even when configured with 0."""
        return self._socket_server.address

    def route(self, path: str, method: str, **kwargs):
        return self._router.route(path, method, **kwargs)

    def get(self, path: str, **kwargs):
        return self._router.get(path, **kwargs)

    def post(self, path: str, **kwargs):
        return self._router.post(path, **kwargs)

    def put(self, path: str, **kwargs):
        return self._router.put(path, **kwargs)

    def delete(self, path: str, **kwargs):
        return self._router.delete(path, **kwargs)

    # =========================================================================
    # REQUEST DISPATCH
    # =========================================================================

    @property
    def handler(self) -> Callable[[HTTPRequest], HTTPResponse]:
        """The composed pipeline: middleware wrapped around the router."""
        if self._handler is None:
            self._build_handler()
        return self._handler

    def _build_handler(self):
        self._handler = self._middleware.wrap(self._router.handle)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """Run one request through middleware and router."""
        return self.handler(request)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Serve until stopped. Blocks.

        Args:
            host: Override ``config.host``.
            port: Override ``config.port``.
        """
        if host:
            self.config.host = host
        if port is not None:
            self.config.port = port

        self._setup_logging()
        self._build_handler()

        self._thread_pool.start()
        self._running = True

        scheme = "https" if self.config.tls_enabled else "http"
        logger.info(f"Starting HTTP server on {scheme}://{self.config.host}:{self.config.port}")
        self._print_startup_banner(scheme)

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Ask a running server to stop. Returns immediately."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the listening socket is up (for tests)."""
        return self._socket_server.wait_until_ready(timeout)

    def _print_startup_banner(self, scheme: str):
        print()
        print("=" * 64)
        print(f"  {self.config.server_name} running")
        print(f"  {scheme}://{self.config.host}:{self.config.port}")
        print(f"  Workers: {self.config.min_workers}-{self.config.max_workers} threads")
        print("  Press Ctrl+C to stop")
        print("=" * 64)
        self._router.print_routes()

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("usersapi").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False
        self._thread_pool.shutdown(wait=True, timeout=30.0)
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING (worker threads)
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Runs on the accept thread: hand the connection to a worker."""
        submitted = self._thread_pool.submit(
            self._process_connection,
            args=(conn,),
            timeout=self.config.timeout,
            block=False,
            on_drop=lambda: self._reject_connection(conn, "waited too long for a worker"),
        )

        if not submitted:
            self._reject_connection(conn, "worker queue full")

    def _reject_connection(self, conn: Connection, reason: str):
        """Answer 503 (plain HTTP only) and close without reading a request."""
        logger.warning(f"[{conn.id}] Rejecting connection: {reason}")
        if not conn.is_secure:
            # Replying on TLS would mean running a handshake just to refuse
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
        conn.close()

    def _process_connection(self, conn: Connection):
        """Serve requests on ``conn`` until it closes or stops keeping alive."""
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                    if raw_request is None:
                        break

                    try:
                        request = self._parser.parse(raw_request, conn.address, conn.is_secure)
                    except HTTPParseError as e:
                        logger.info(f"[{conn.id}] Bad request from {conn.client_ip}: {e}")
                        self._send_error(conn, HTTPStatus(e.status_code), str(e))
                        break

                    conn.state = ConnectionState.PROCESSING
                    try:
                        response = self.handler(request)
                    except Exception as e:
                        # Only reachable when no exception middleware is installed
                        logger.exception(f"[{conn.id}] Handler error: {e}")
                        response = (ResponseBuilder()
                            .status(HTTPStatus.INTERNAL_SERVER_ERROR)
                            .json({"error": "Internal Server Error"})
                            .build())

                    keep_alive = (
                        request.is_keep_alive
                        and self.config.keep_alive
                        and response.headers.get("Connection") != "close"
                    )
                    if keep_alive:
                        response.headers.setdefault("Connection", "keep-alive")
                        response.headers.setdefault(
                            "Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}"
                        )
                    else:
                        response.headers["Connection"] = "close"

                    if not conn.send_response(response.to_bytes(self.config.server_name)):
                        break

                    if not keep_alive:
                        break

                    conn.set_keep_alive()

                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                    break
                except ValueError as e:
                    # Connection.read_request: request over max_request_size
                    logger.info(f"[{conn.id}] {e}")
                    self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, str(e))
                    break
                except ConnectionError as e:
                    logger.debug(f"[{conn.id}] Connection dropped: {e}")
                    break
                except Exception as e:
                    logger.exception(f"[{conn.id}] Connection error: {e}")
                    break

    def _send_error(self, conn: Connection, status: HTTPStatus, message: str):
        response = (ResponseBuilder()
            .status(status)
            .json({"error": message})
            .close_connection()
            .build())
        conn.send_response(response.to_bytes(self.config.server_name))
