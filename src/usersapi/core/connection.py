"""
=============================================================================
CLIENT CONNECTION
=============================================================================

Wraps one accepted socket (plain TCP or TLS) and turns its byte stream into
whole HTTP requests.

TCP does not keep message boundaries: a request may arrive split across
several recv() calls, and with keep-alive the next request may arrive glued
to the end of this one. So reading is two-phase:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  1. recv() into _buffer until "\r\n\r\n" shows up (end of headers)  │
    │  2. read Content-Length, recv() until the body is complete          │
    │  3. cut exactly one request off the front of _buffer                │
    │     (whatever is left belongs to the next pipelined request)       │
    └─────────────────────────────────────────────────────────────────────┘

For TLS sockets the handshake is deferred until the first read, so a slow
or broken client stalls its own worker thread and never the accept loop.

=============================================================================
"""

import socket
import ssl
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Where a connection is in its lifecycle. Mostly for debug logs."""

    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The accepted client socket (``ssl.SSLSocket`` under TLS).
        address: Client's (ip, port).
        id: Short random id used to tag log lines.
        requests_handled: Requests read so far on this connection.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: float = 30.0              # first request
    keep_alive_timeout: float = 5.0    # every request after that
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)
    _handshake_done: bool = field(default=False, repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def is_secure(self) -> bool:
        """True when the connection is TLS-wrapped."""
        return isinstance(self.socket, ssl.SSLSocket)

    @property
    def age(self) -> float:
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request.

        Returns:
            The raw request bytes, or None if the client closed the
            connection (or went quiet on a keep-alive connection).

        Raises:
            TimeoutError: The first request did not arrive in time.
            ValueError: The request grew past ``max_request_size``.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            if self.is_secure and not self._handshake_done:
                self._do_handshake()

            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._append(chunk)

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break  # short body; the parser reports it
                self._append(chunk)

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.last_activity = time.time()
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            if self.state != ConnectionState.CLOSED:
                self.socket.settimeout(self.timeout)

    def _do_handshake(self):
        try:
            self.socket.do_handshake()
        except ssl.SSLError as e:
            # Typically a plain-HTTP client talking to the TLS port
            logger.warning(f"[{self.id}] TLS handshake failed: {e}")
            raise ConnectionError("TLS handshake failed") from e
        self._handshake_done = True

    def _append(self, chunk: bytes):
        self._buffer += chunk
        if len(self._buffer) > self.max_request_size:
            raise ValueError(f"Request too large: {len(self._buffer)} bytes")

    def _recv(self) -> bytes:
        try:
            data = self.socket.recv(self.buffer_size)
            self.last_activity = time.time()
            return data
        except (ConnectionResetError, BrokenPipeError):
            return b""

    @staticmethod
    def _parse_content_length(headers: bytes) -> int:
        """
        Pull Content-Length out of the raw header block.

        Only a framing hint: a malformed value reads as 0 here and the
        parser rejects the request properly afterwards.
        """
        for line in headers.decode("iso-8859-1").lower().split("\r\n"):
            if line.startswith("content-length:"):
                try:
                    return max(int(line.split(":", 1)[1].strip()), 0)
                except ValueError:
                    return 0
        return 0

    # =========================================================================
    # WRITING / CLOSING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """sendall() the bytes. False if the client has gone away."""
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
            self.last_activity = time.time()
            return True
        except (ConnectionResetError, BrokenPipeError, OSError) as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    def close(self):
        """
        Half-close, drain, close.

        shutdown(SHUT_WR) sends FIN first so the client sees a clean end of
        stream; unread request bytes are drained so the kernel does not
        answer them with a RST.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except (socket.timeout, OSError):
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests ({self.age:.1f}s)")

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
