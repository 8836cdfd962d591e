"""
=============================================================================
CONFIGURATION
=============================================================================

Two groups of settings, both plain dataclasses validated at startup:

    ServerConfig   how the process listens: address, TLS, workers, timeouts
    ApiSettings    what the application needs: the API key and the
                   execution environment

Sources, later ones winning:

    ┌──────────────────────────────────────────────────────────────────────┐
    │ 1. dataclass defaults                                                 │
    │ 2. appsettings.json                  {"ApiSettings": {"ApiKey": ...}} │
    │ 3. appsettings.<Environment>.json    same shape, optional             │
    │ 4. environment variables             HTTP_PORT, ApiSettings__ApiKey…  │
    │ 5. command-line flags                --port, --settings, … (__main__) │
    └──────────────────────────────────────────────────────────────────────┘

Keep the API key out of source control: put it in the environment
(``ApiSettings__ApiKey``) or in a settings file the deployment owns.

=============================================================================
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from .errors import ConfigError


DEVELOPMENT = "Development"
PRODUCTION = "Production"

DEFAULT_SETTINGS_FILE = "appsettings.json"

API_KEY_ENV = "ApiSettings__ApiKey"
ENVIRONMENT_ENV = "APP_ENVIRONMENT"


def _env_int(environ: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    value = environ.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}")


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    value = environ.get(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {value!r}")


@dataclass
class ServerConfig:
    """
    Transport settings.

        ServerConfig(host="0.0.0.0", port=8080, https_port=8443)

        ServerConfig(host="0.0.0.0", port=8443,
                     tls_certfile="cert.pem", tls_keyfile="key.pem",
                     https_port=8443)
    """

    # Network
    host: str = "127.0.0.1"
    port: int = 8080                    # 0 lets the OS pick (tests)
    backlog: int = 128
    buffer_size: int = 8192
    timeout: Optional[float] = 30.0     # seconds to wait for the first request

    # HTTP
    keep_alive: bool = True
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024

    # Worker pool
    min_workers: int = 4
    max_workers: int = 16
    queue_size: int = 100               # connections waiting for a worker

    # TLS
    tls_certfile: Optional[str] = None
    tls_keyfile: Optional[str] = None
    https_port: Optional[int] = None
    """
    Where plain-HTTP clients are redirected to. None disables the redirect
    (a warning is logged on the first plain request).
    """

    # Logging / identity
    log_level: str = "INFO"
    server_name: str = "usersapi/1.0"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """
        Build from environment variables.

            HTTP_HOST        bind address        (127.0.0.1)
            HTTP_PORT        listen port         (8080)
            HTTP_WORKERS     max worker threads  (16)
            HTTP_TIMEOUT     request timeout, s  (30)
            HTTP_LOG_LEVEL   logging level       (INFO)
            HTTPS_PORT       redirect target     (unset: no redirect)
            TLS_CERTFILE     PEM certificate     (unset: plain HTTP)
            TLS_KEYFILE      PEM private key

        Raises:
            ConfigError: A numeric variable does not parse.
        """
        env = os.environ if environ is None else environ
        return cls(
            host=env.get("HTTP_HOST", "127.0.0.1"),
            port=_env_int(env, "HTTP_PORT", 8080),
            max_workers=_env_int(env, "HTTP_WORKERS", 16),
            timeout=_env_float(env, "HTTP_TIMEOUT", 30.0),
            log_level=env.get("HTTP_LOG_LEVEL", "INFO"),
            https_port=_env_int(env, "HTTPS_PORT", None),
            tls_certfile=env.get("TLS_CERTFILE") or None,
            tls_keyfile=env.get("TLS_KEYFILE") or None,
        )

    @property
    def tls_enabled(self) -> bool:
        return bool(self.tls_certfile)

    def validate(self) -> None:
        """
        Raises:
            ConfigError: On the first invalid value.
        """
        if not 0 <= self.port < 65536:
            raise ConfigError(f"Invalid port: {self.port}. Must be 0-65535.")
        if self.https_port is not None and not 0 < self.https_port < 65536:
            raise ConfigError(f"Invalid https_port: {self.https_port}. Must be 1-65535.")
        if self.min_workers < 1:
            raise ConfigError("min_workers must be >= 1")
        if self.max_workers < self.min_workers:
            raise ConfigError("max_workers must be >= min_workers")
        if self.queue_size < 1:
            raise ConfigError("queue_size must be >= 1")
        if self.buffer_size < 1024:
            raise ConfigError("buffer_size must be >= 1024")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError("timeout must be > 0")
        if bool(self.tls_certfile) != bool(self.tls_keyfile):
            raise ConfigError("tls_certfile and tls_keyfile must be set together")


@dataclass
class ApiSettings:
    """
    Application settings.

    ``api_key`` is the shared secret every request must carry in
    X-API-KEY. ``environment`` selects the execution mode; only
    ``Development`` exposes exception details in 500 responses.
    """

    api_key: str
    environment: str = PRODUCTION

    def __post_init__(self):
        if not self.api_key:
            raise ConfigError("API Key is not configured.")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == DEVELOPMENT.lower()

    @classmethod
    def load(
        cls,
        path: Union[str, Path, None] = DEFAULT_SETTINGS_FILE,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "ApiSettings":
        """
        Read the settings file(s), then apply environment overrides.

        A missing settings file is fine as long as the key arrives some
        other way; a settings file that is not valid JSON is not.

        Raises:
            ConfigError: Unreadable settings file, or no API key anywhere.
        """
        env = os.environ if environ is None else environ
        environment = env.get(ENVIRONMENT_ENV) or PRODUCTION

        data: Dict[str, Any] = {}
        if path is not None:
            path = Path(path)
            _merge(data, _read_json(path))
            _merge(data, _read_json(path.with_name(f"{path.stem}.{environment}{path.suffix}")))

        section = data.get("ApiSettings")
        if section is not None and not isinstance(section, dict):
            raise ConfigError("ApiSettings must be a JSON object")
        section = section or {}

        api_key = env.get(API_KEY_ENV) or section.get("ApiKey")
        if api_key is not None and not isinstance(api_key, str):
            raise ConfigError("ApiSettings:ApiKey must be a string")

        return cls(
            api_key=api_key or "",
            environment=environment,
        )


def _read_json(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read settings file {path}: {e}")
    if not isinstance(data, dict):
        raise ConfigError(f"Settings file {path} must contain a JSON object")
    return data


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Recursive dict merge, override wins. Mutates ``base``."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
