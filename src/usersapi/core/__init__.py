"""
=============================================================================
TRANSPORT LAYER
=============================================================================

Sockets and threads. Nothing in here knows about users, routes or API keys.

    SocketServer   listening socket, accept loop, optional TLS
    Connection     one client: buffered request reads, sendall, clean close
    ThreadPool     bounded worker pool the connections are handed to

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
]
