"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Resolves the effective configuration from the process environment.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ Variable   Default        Rule                                      │
    ├─────────────────────────────────────────────────────────────────────┤
    │ PORT       3000           integer in [1025, 65535]                  │
    │ HOST       localhost      trimmed, must not be blank                │
    │ APP_ENV    development    trimmed, must not be blank                │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
FALLBACK POLICY
=============================================================================

Loading never fails. Each variable is resolved on its own:

    absent or ""              → default, logged at INFO
    malformed / out of range  → default, logged at WARNING with the value
    valid                     → used (trimmed for HOST and APP_ENV)

Ports below 1025 are refused so the server never needs root. Bad input
is reported in the server log only.

=============================================================================
USAGE
=============================================================================

    # From shell:
    PORT=8080 HOST=0.0.0.0 APP_ENV=production hello-server

    # In code:
    config = load_config()                      # reads os.environ
    config = load_config({"PORT": "8080"})      # any mapping works
    config = ServerConfig(port=8080)            # programmatic
    config.validate()                           # raises on bad values

=============================================================================
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional


logger = logging.getLogger(__name__)

DEFAULT_PORT = 3000
DEFAULT_HOST = "localhost"
DEFAULT_ENVIRONMENT = "development"

MIN_PORT = 1025
MAX_PORT = 65535


@dataclass(frozen=True)
class ServerConfig:
    """
    Effective configuration for one server process.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    FROM THE ENVIRONMENT
    - port, host, environment

    TRANSPORT TUNING (programmatic only)
    - backlog, buffer_size, timeout, keep_alive_timeout,
      max_request_size, workers

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # ENVIRONMENT SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    port: int = DEFAULT_PORT
    """TCP port to listen on, in [MIN_PORT, MAX_PORT]."""

    host: str = DEFAULT_HOST
    """Host name or address to bind to."""

    environment: str = DEFAULT_ENVIRONMENT
    """Free-form deployment label, e.g. development or production."""

    # ─────────────────────────────────────────────────────────────────────
    # TRANSPORT TUNING
    # ─────────────────────────────────────────────────────────────────────

    backlog: int = 128
    """Maximum number of queued, not yet accepted connections."""

    buffer_size: int = 8192
    """Bytes per recv() call."""

    timeout: float = 30.0
    """Seconds to wait for the first request on a new connection."""

    keep_alive_timeout: float = 5.0
    """Idle seconds before a kept-alive connection is closed."""

    max_request_size: int = 1024 * 1024
    """Largest accepted request (head plus body) in bytes."""

    workers: int = 4
    """Number of worker threads handling connections."""

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """Same as load_config(environ)."""
        return load_config(environ)

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: On the first invalid value found.
        """
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise ValueError(f"Invalid port: {self.port!r}. Must be an integer.")

        if not MIN_PORT <= self.port <= MAX_PORT:
            raise ValueError(f"Invalid port: {self.port}. Must be {MIN_PORT}-{MAX_PORT}.")

        if not isinstance(self.host, str) or not self.host.strip():
            raise ValueError("host must be a non-empty string")

        if not isinstance(self.environment, str) or not self.environment.strip():
            raise ValueError("environment must be a non-empty string")

        for name in ("backlog", "buffer_size", "max_request_size", "workers"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1")

        for name in ("timeout", "keep_alive_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")


def _resolve_port(raw: Optional[str]) -> int:
    if raw is None or raw == "":
        logger.info("PORT not set, using default port %d", DEFAULT_PORT)
        return DEFAULT_PORT

    value = raw.strip()
    # int() alone would also take "+80" and "8_080"
    if not value.isdecimal():
        logger.warning("Invalid PORT value %r, using default port %d", raw, DEFAULT_PORT)
        return DEFAULT_PORT

    port = int(value)
    if not MIN_PORT <= port <= MAX_PORT:
        logger.warning(
            "PORT %d out of range (%d-%d), using default port %d",
            port, MIN_PORT, MAX_PORT, DEFAULT_PORT,
        )
        return DEFAULT_PORT

    return port


def _resolve_text(name: str, raw: Optional[str], default: str) -> str:
    if raw is None or raw == "":
        logger.info("%s not set, using default %r", name, default)
        return default

    value = raw.strip()
    if not value:
        logger.warning("%s is blank, using default %r", name, default)
        return default

    return value


def load_config(environ: Optional[Mapping[str, str]] = None) -> ServerConfig:
    """
    Build the effective configuration from environment variables.

    Args:
        environ: Variables to read. Defaults to os.environ.

    Returns:
        A ServerConfig whose port, host and environment always satisfy
        validate().
    """
    if environ is None:
        environ = os.environ

    config = ServerConfig(
        port=_resolve_port(environ.get("PORT")),
        host=_resolve_text("HOST", environ.get("HOST"), DEFAULT_HOST),
        environment=_resolve_text("APP_ENV", environ.get("APP_ENV"), DEFAULT_ENVIRONMENT),
    )

    logger.info(
        "Configuration loaded - port=%d host=%s environment=%s",
        config.port, config.host, config.environment,
    )
    return config
