"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All tunables of the server in one dataclass.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │   Priority (highest to lowest):                                     │
    │                                                                     │
    │   1. Command-line arguments                                         │
    │      └── pagejar serve deck.zip 8080                                │
    │                                                                     │
    │   2. Environment variables                                          │
    │      └── PAGEJAR_PORT=8080 pagejar serve deck.zip                   │
    │                                                                     │
    │   3. Default values (in this dataclass)                             │
    └─────────────────────────────────────────────────────────────────────┘

The configuration is validated once, when the server is built
(fail-fast), and never changes afterwards.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from . import __version__

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerConfig:
    """
    Configuration for the presentation server.

    Development (the default) binds to localhost on a random port:

        ServerConfig()                          # 127.0.0.1:<ephemeral>

    Showing slides to a room from a laptop:

        ServerConfig(host="0.0.0.0", port=8080)
    """

    # -------------------------------------------------------------------------
    # NETWORK
    # -------------------------------------------------------------------------

    host: str = "127.0.0.1"
    """Address to bind to. A presenter serves its own machine by default."""

    port: int = 0
    """Listening port. 0 lets the OS pick a free one; read it from server.port."""

    backlog: int = 128
    """Maximum number of queued, not yet accepted connections."""

    buffer_size: int = 8192
    """Bytes requested per recv() call, and size of the response write buffer."""

    timeout: float = 60.0
    """
    Idle read timeout per connection, in seconds.
    A connection silent for this long is closed without a response.
    """

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------

    max_line_size: int = 8192
    """Longest request or header line accepted, in bytes."""

    max_header_lines: int = 100
    """Most header lines accepted in one request."""

    server_name: str = f"pagejar/{__version__}"
    """Value of the Server header."""

    # -------------------------------------------------------------------------
    # CONTENT
    # -------------------------------------------------------------------------

    root_dir: str = ""
    """Directory inside the store that request paths are relative to."""

    # -------------------------------------------------------------------------
    # LOGGING
    # -------------------------------------------------------------------------

    log_level: str = "WARNING"
    """Level for the "pagejar" logger tree (DEBUG shows the wire trace)."""

    log_format: str = "text"
    """Access log format: "text" or "json"."""

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        PAGEJAR_HOST        Bind address (default: 127.0.0.1)
        PAGEJAR_PORT        Port (default: 0, OS-assigned)
        PAGEJAR_TIMEOUT     Idle timeout in seconds (default: 60)
        PAGEJAR_ROOT_DIR    Root directory inside the store (default: "")
        PAGEJAR_LOG_LEVEL   Logging level (default: WARNING)
        PAGEJAR_LOG_FORMAT  Access log format (default: text)

        =====================================================================

        Args:
            environ: Mapping to read instead of os.environ.

        Raises:
            ValueError: If a numeric variable does not parse.
        """
        env = os.environ if environ is None else environ
        return cls(
            host=env.get("PAGEJAR_HOST", "127.0.0.1"),
            port=int(env.get("PAGEJAR_PORT", "0")),
            timeout=float(env.get("PAGEJAR_TIMEOUT", "60")),
            root_dir=env.get("PAGEJAR_ROOT_DIR", ""),
            log_level=env.get("PAGEJAR_LOG_LEVEL", "WARNING").upper(),
            log_format=env.get("PAGEJAR_LOG_FORMAT", "text").lower(),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: Naming the first invalid field.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is None or self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.max_line_size < 256:
            raise ValueError("max_line_size must be >= 256")

        if self.max_header_lines < 1:
            raise ValueError("max_header_lines must be >= 1")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"Invalid log_format: {self.log_format}. Must be text or json.")
