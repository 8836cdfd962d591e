"""
Application assembly.

``create_app`` is the one place that decides the middleware order and
which routes exist:

    ExceptionHandling → HttpsRedirection → RequestLogging → ApiKey → Router

Everything is built eagerly, so a missing API key or a bad config fails
here, at startup, and not on the first request.
"""

import logging
from typing import Optional

from .config import ApiSettings, ServerConfig
from .middleware import (
    ApiKeyMiddleware,
    ExceptionHandlingMiddleware,
    HttpsRedirectionMiddleware,
    RequestLoggingMiddleware,
)
from .server import HTTPServer
from .users import UserStore, register_routes


logger = logging.getLogger(__name__)


def create_app(
    settings: ApiSettings,
    config: Optional[ServerConfig] = None,
    store: Optional[UserStore] = None,
) -> HTTPServer:
    """
    Build the users API server.

    Args:
        settings: API key and execution environment.
        config: Transport settings; defaults to ``ServerConfig()``.
        store: The user store; defaults to one seeded with Alice and Bob.

    Raises:
        ConfigError: Invalid configuration or no API key.
    """
    server = HTTPServer(config)
    store = store if store is not None else UserStore.seeded()

    server.use(ExceptionHandlingMiddleware(expose_details=settings.is_development))
    server.use(HttpsRedirectionMiddleware(https_port=server.config.https_port))
    server.use(RequestLoggingMiddleware())
    server.use(ApiKeyMiddleware(settings.api_key))

    register_routes(server.router, store)

    logger.debug(f"Application created ({settings.environment}, {len(store)} users)")
    return server
