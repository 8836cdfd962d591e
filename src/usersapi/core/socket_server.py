"""
=============================================================================
TCP SOCKET SERVER
=============================================================================

Owns the listening socket and the accept loop. Everything above TCP
(parsing, routing, middleware) lives in HTTPServer; this module only hands
each accepted client over as a Connection.

    socket() → setsockopt() → bind() → listen() → [wrap in TLS] → accept loop

The listening socket has a 1 second timeout so the accept loop wakes up
regularly and notices shutdown() even when no client is connecting.

TLS is optional. When ``tls_certfile``/``tls_keyfile`` are configured the
listening socket is wrapped with an ``ssl.SSLContext`` and every accepted
socket is an ``ssl.SSLSocket``; the handshake runs later, in the worker
thread (see Connection.read_request).

=============================================================================
"""

import socket
import signal
import ssl
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP socket server.

        server = SocketServer(config)
        server.start(handle_connection)   # blocks until shutdown()

    SIGINT/SIGTERM trigger shutdown() when the server runs on the main
    thread. Signal handlers can only be installed there, so a server
    started from a background thread (tests) is stopped by calling
    shutdown() directly.
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._running = False
        self._ready_event = threading.Event()
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_secure(self) -> bool:
        return bool(self.config.tls_certfile)

    @property
    def address(self) -> Tuple[str, int]:
        """The bound address; the real port once bound with port 0."""
        if self._socket is not None:
            return self._socket.getsockname()[:2]
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Rebind immediately after a restart instead of waiting out TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # Small JSON responses; do not wait on Nagle
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        sock.settimeout(1.0)
        return sock

    def _create_ssl_context(self) -> ssl.SSLContext:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        context.load_cert_chain(
            certfile=self.config.tls_certfile,
            keyfile=self.config.tls_keyfile,
        )
        return context

    def _setup_signals(self):
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Bind, listen and accept until shutdown() is called.

        Args:
            connection_handler: Called once per accepted Connection, on the
                accept thread. It must hand the connection off quickly.

        Raises:
            OSError: The address could not be bound.
            ssl.SSLError: The certificate or key could not be loaded.
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)

        if self.is_secure:
            try:
                self._socket = self._create_ssl_context().wrap_socket(
                    self._socket,
                    server_side=True,
                    do_handshake_on_connect=False,
                )
            except OSError as e:
                # ssl.SSLError and a missing cert file are both OSError
                logger.error(f"Failed to load TLS certificate: {e}")
                self._socket.close()
                self._socket = None
                raise

        self._running = True
        self._setup_signals()

        host, port = self.address
        scheme = "https" if self.is_secure else "http"
        logger.info(f"Server listening on {scheme}://{host}:{port}")
        self._ready_event.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
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

    def shutdown(self):
        """Stop the accept loop. Safe to call more than once, from any thread."""
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False

    def _cleanup(self):
        self._restore_signals()
        self._ready_event.clear()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        logger.info("Socket server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. False on timeout."""
        return self._ready_event.wait(timeout)
