"""
=============================================================================
usersapi
=============================================================================

A small users CRUD service on a from-scratch HTTP/1.1 server.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  core/        sockets, TLS, connections, worker thread pool         │
    │  http/        request parser, response builder, router              │
    │  middleware/  exception handling, HTTPS redirect, logging, API key  │
    │  users/       record, validation rules, locked store, handlers      │
    │  config.py    ServerConfig (transport) and ApiSettings (app)        │
    │  app.py       create_app(): the pipeline and the routes             │
    └─────────────────────────────────────────────────────────────────────┘

    from usersapi import ApiSettings, ServerConfig, create_app

    app = create_app(ApiSettings(api_key="s3cret"), ServerConfig(port=8080))
    app.run()

=============================================================================
"""

__version__ = "1.0.0"

from .server import HTTPServer
from .config import ServerConfig, ApiSettings
from .app import create_app
from .errors import UsersApiError, ConfigError, UserNotFound, ValidationFailed

__all__ = [
    "HTTPServer",
    "ServerConfig",
    "ApiSettings",
    "create_app",
    "UsersApiError",
    "ConfigError",
    "UserNotFound",
    "ValidationFailed",
    "__version__",
]
