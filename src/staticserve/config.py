"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

One immutable ServerConfig object carries every setting. It is built once
(from the command line, the environment or code), validated at startup, and
then only read.

    ┌───────────────────────────────────────────────────────────────────────┐
    │                                                                        │
    │   argv ──► argparse ──► ServerConfig.from_args() ──► validate()       │
    │   env  ─────────────────► ServerConfig.from_env() ──┘                 │
    │                                                        │               │
    │                                       build_handler(config)            │
    │                                       HTTPServer(handler, config)      │
    │                                                                        │
    └───────────────────────────────────────────────────────────────────────┘

Bind addresses use the "host:port" form:

    127.0.0.1:8080      IPv4 loopback
    :8080               all interfaces
    [::1]:8080          IPv6 loopback
    localhost:0         any free port (tests)

=============================================================================
"""

from dataclasses import dataclass
from typing import Optional
import os


class ConfigError(Exception):
    """
    Invalid startup configuration.

    The CLI reports these as a single "Error: ..." line and exits 1.
    """


def parse_bind(bind: str) -> tuple[str, int]:
    """
    Split a "host:port" bind address.

    Args:
        bind: "host:port", "[v6-address]:port" or ":port".

    Returns:
        (host, port). An empty host means all interfaces.

    Raises:
        ConfigError: If the address is malformed or the port is out of range.

    Examples:
        >>> parse_bind("127.0.0.1:8080")
        ('127.0.0.1', 8080)
        >>> parse_bind("[::1]:9000")
        ('::1', 9000)
        >>> parse_bind(":80")
        ('', 80)
    """
    host, sep, port_text = bind.rpartition(":")
    if not sep:
        raise ConfigError(f"invalid bind address {bind!r}: missing port")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ConfigError(f"invalid bind address {bind!r}: IPv6 hosts must be bracketed")

    try:
        port = int(port_text)
    except ValueError:
        raise ConfigError(f"invalid bind address {bind!r}: bad port {port_text!r}")

    if not 0 <= port < 65536:
        raise ConfigError(f"invalid port: {port}. Must be 0-65535.")

    return host, port


@dataclass(frozen=True)
class ServerConfig:
    """
    Configuration for the file server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    FEATURES (the command-line surface)
    - bind, root, log, cors, gzip, auth

    NETWORK SETTINGS
    - backlog, buffer_size, timeout

    HTTP SETTINGS
    - keep_alive, keep_alive_timeout, max_request_size, server_name

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # FEATURES
    # ─────────────────────────────────────────────────────────────────────

    bind: str = "127.0.0.1:8080"
    """Listen address, "host:port"."""

    root: str = "."
    """Directory whose files are served."""

    log: bool = False
    """Emit one access-log line per request."""

    cors: bool = False
    """Add permissive CORS headers to every response."""

    gzip: bool = False
    """Gzip response bodies for clients that accept it."""

    gzip_level: int = 6
    """Compression level, 1 (fast) to 9 (small)."""

    auth: str = ""
    """
    Authenticator spec, e.g. "basic?realm=Private&secrets=/etc/site.htpasswd".
    Empty disables authentication.
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    backlog: int = 128
    """Maximum number of queued connections."""

    buffer_size: int = 8192
    """Receive buffer size in bytes."""

    timeout: Optional[float] = 30.0
    """Socket timeout in seconds for reading a request."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    """Allow several requests per TCP connection."""

    keep_alive_timeout: float = 5.0
    """Idle time before a kept-alive connection is closed."""

    max_request_size: int = 1024 * 1024
    """Requests larger than this get 413. A file server reads no bodies."""

    server_name: str = "staticserve"
    """Value of the Server response header."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """DEBUG, INFO, WARNING or ERROR."""

    log_format: str = "text"
    """Access log format: 'text' or 'json'."""

    @property
    def address(self) -> tuple[str, int]:
        """The bind address split into (host, port)."""
        return parse_bind(self.bind)

    @classmethod
    def from_args(cls, args) -> "ServerConfig":
        """
        Build a configuration from an argparse namespace.

        Attributes missing from ``args`` keep their defaults.
        """
        values = {}
        for name in ("bind", "root", "log", "cors", "gzip", "gzip_level",
                     "auth", "log_level", "log_format"):
            value = getattr(args, name, None)
            if value is not None:
                values[name] = value
        return cls(**values)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        STATICSERVE_BIND        Listen address (default: 127.0.0.1:8080)
        STATICSERVE_ROOT        Directory to serve (default: .)
        STATICSERVE_LOG         "1" enables access logging
        STATICSERVE_CORS        "1" enables CORS headers
        STATICSERVE_GZIP        "1" enables compression
        STATICSERVE_AUTH        Authenticator spec
        STATICSERVE_LOG_LEVEL   Logging level (default: INFO)

        =====================================================================
        """
        def flag(name: str) -> bool:
            return os.getenv(name, "").lower() in ("1", "true", "yes", "on")

        return cls(
            bind=os.getenv("STATICSERVE_BIND", "127.0.0.1:8080"),
            root=os.getenv("STATICSERVE_ROOT", "."),
            log=flag("STATICSERVE_LOG"),
            cors=flag("STATICSERVE_CORS"),
            gzip=flag("STATICSERVE_GZIP"),
            auth=os.getenv("STATICSERVE_AUTH", ""),
            log_level=os.getenv("STATICSERVE_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigError: On the first invalid setting.
        """
        parse_bind(self.bind)

        if not os.path.isdir(self.root):
            raise ConfigError(f"root directory does not exist: {self.root}")

        if not 1 <= self.gzip_level <= 9:
            raise ConfigError(f"gzip_level must be 1-9, got {self.gzip_level}")

        if self.buffer_size < 1024:
            raise ConfigError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError("timeout must be > 0")

        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigError(f"unknown log level: {self.log_level}")

        if self.log_format not in ("text", "json"):
            raise ConfigError(f"log_format must be 'text' or 'json', got {self.log_format!r}")
