"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Everything the static server needs to know before it binds a socket lives
in one frozen dataclass. Nothing mutates it after construction, so worker
threads can read it freely without locking.

=============================================================================
WHERE VALUES COME FROM
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION PRIORITY                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. Command-line flags       hs -p 3000 -d ./public                │
    │   2. Environment variables    HTTP_PORT=3000 HTTP_ROOT_DIR=./public │
    │   3. Dataclass defaults       port 8080, current directory          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class CacheStrategy(Enum):
    """
    Which validator the FileStreamer uses for conditional requests.

    ETAG hashes the file content on every request: exact but costs a full
    read. LAST_MODIFIED compares the mtime as an HTTP-date: cheap but only
    second-granular.
    """
    ETAG = "etag"
    LAST_MODIFIED = "last-modified"


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ServerConfig:
    """
    Configuration for the static file server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    WHAT TO SERVE
    - port, root_directory, host

    NETWORK / HTTP
    - backlog, buffer_size, timeout, keep_alive, keep_alive_timeout,
      max_request_size

    THREADING
    - min_workers, max_workers

    CONTENT
    - chunk_size, cache_strategy, compression, template_path

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # WHAT TO SERVE
    # ─────────────────────────────────────────────────────────────────────

    port: int = 8080
    root_directory: str = field(default_factory=os.getcwd)
    """Directory whose contents are served. Stored as an absolute path."""

    host: str = "0.0.0.0"
    """Listen on every interface so the LAN address in the banner works."""

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK / HTTP
    # ─────────────────────────────────────────────────────────────────────

    backlog: int = 128
    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    """Idle timeout for client sockets in seconds."""

    keep_alive: bool = True
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024  # requests are headers only

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 16

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    chunk_size: int = 64 * 1024
    """How many bytes of a file are read (and sent) at a time."""

    cache_strategy: CacheStrategy = CacheStrategy.ETAG
    compression: bool = True
    template_path: Optional[str] = None
    """Directory listing template. None means the bundled template."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING / IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"
    server_name: str = "staticserver/1.0"

    def __post_init__(self):
        # frozen dataclass: normalisation has to go through object.__setattr__
        object.__setattr__(self, "root_directory", os.path.abspath(self.root_directory))
        if isinstance(self.cache_strategy, str):
            object.__setattr__(self, "cache_strategy", CacheStrategy(self.cache_strategy))

    @classmethod
    def from_env(cls, **overrides) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        HTTP_HOST            Bind address (default: 0.0.0.0)
        HTTP_PORT            Port (default: 8080)
        HTTP_ROOT_DIR        Directory to serve (default: cwd)
        HTTP_WORKERS         Max worker threads (default: 16)
        HTTP_TIMEOUT         Socket idle timeout in seconds (default: 30)
        HTTP_LOG_LEVEL       Logging level (default: INFO)
        HTTP_LOG_FORMAT      Access log format, text or json (default: text)
        HTTP_CACHE_STRATEGY  etag or last-modified (default: etag)
        HTTP_COMPRESSION     Enable gzip/deflate (default: true)

        Keyword overrides win over the environment; the CLI uses this to
        layer its flags on top.

        =====================================================================
        """
        values = {k: v for k, v in overrides.items() if v is not None}

        # overridden fields never read (or parse) their variable
        def from_var(name: str, var: str, default: str, convert=str):
            if name not in values:
                values[name] = convert(os.getenv(var, default))

        from_var("host", "HTTP_HOST", "0.0.0.0")
        from_var("port", "HTTP_PORT", "8080", int)
        from_var("root_directory", "HTTP_ROOT_DIR", os.getcwd())
        from_var("max_workers", "HTTP_WORKERS", "16", int)
        from_var("timeout", "HTTP_TIMEOUT", "30", float)
        from_var("log_level", "HTTP_LOG_LEVEL", "INFO")
        from_var("log_format", "HTTP_LOG_FORMAT", "text")
        from_var("cache_strategy", "HTTP_CACHE_STRATEGY", "etag", CacheStrategy)
        if "compression" not in values:
            values["compression"] = _env_flag("HTTP_COMPRESSION", True)

        # a small HTTP_WORKERS also lowers the initial pool size
        values.setdefault("min_workers", min(4, values["max_workers"]))
        return cls(**values)

    def validate(self) -> None:
        """
        Validate configuration values.

        Called by StaticServer before anything is bound, so a typo in a
        directory name fails at startup rather than on the first request.
        """
        # 0 lets the OS pick a free port; SocketServer.address reports it
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if not os.path.isdir(self.root_directory):
            raise ValueError(f"Root directory does not exist: {self.root_directory}")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"Invalid log_format: {self.log_format}. Use 'text' or 'json'.")

        if self.template_path is not None and not os.path.isfile(self.template_path):
            raise ValueError(f"Template file does not exist: {self.template_path}")
