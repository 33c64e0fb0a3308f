"""
=============================================================================
PRESENTATION SERVER
=============================================================================

Ties the pieces together: a SocketServer accepting connections, one
keep-alive loop per connection, and a StaticHandler answering requests
from a ResourceStore.

=============================================================================
ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  HTTPServer                                                         │
    │                                                                     │
    │   built once, read-only afterwards:                                 │
    │     ServerConfig, ContentTypes, AliasTable, PathResolver,           │
    │     ResourceStore, StaticHandler                                    │
    │                                                                     │
    │   SocketServer ── accept ──► thread: _process_connection(conn)      │
    │                                  │                                  │
    │                                  ▼                                  │
    │                    ┌──► RequestReader.read()                        │
    │                    │         │                                      │
    │                    │    StaticHandler.handle() ──► ResponseWriter   │
    │                    │         │                                      │
    │                    └─── keep-alive? ── no ──► close                 │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
WHEN DOES A CONNECTION END?
=============================================================================

    peer closes the socket           → quietly
    idle timeout expires             → quietly (DEBUG log)
    malformed request                → no response, WARNING log
    response says Connection: close  → after the response (HTTP/1.0,
                                       "Connection: close", or 501)
    socket error                     → ERROR log, only this connection

=============================================================================
"""

import logging
import socket
import time
from typing import Mapping, Optional

from .access_log import AccessLog, log_access
from .config import ServerConfig
from .core.connection import Connection
from .core.socket_server import SocketServer
from .handlers.static import StaticHandler
from .http.mime_types import ContentTypes
from .http.paths import DEFAULT_DOCUMENT, AliasTable, PathResolver
from .http.request import HTTPParseError, RequestReader
from .resources.store import ResourceStore, load_filemap, load_metadata

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class HTTPServer:
    """
    HTTP/1.1 server for a read-only set of resources.

    =========================================================================
    USAGE
    =========================================================================

        store = open_store("talk.zip")
        server = HTTPServer(store, ServerConfig(root_dir="presentation"))
        print(f"Serving on {server.url}")
        server.serve()                      # blocks until shutdown()

    The listening socket is bound by the constructor, so `port` is valid
    right away, even for an OS-assigned port (config.port == 0).

    =========================================================================

    Args:
        store: Where resources come from. Not closed by the server.
        config: Server configuration; defaults are used if omitted.
        content_types: Content type tables; the built-in ones by default.
        aliases: Request path → resource path table. Loaded from the
                 store's file-map control file when omitted.

    Raises:
        ValueError: If the configuration is invalid.
        OSError: If the address cannot be bound.
    """

    def __init__(
        self,
        store: ResourceStore,
        config: Optional[ServerConfig] = None,
        content_types: Optional[ContentTypes] = None,
        aliases: Optional[Mapping[str, str]] = None,
    ):
        self.config = config or ServerConfig()
        self.config.validate()

        self.store = store
        self.metadata = load_metadata(store, self.config.root_dir)

        if aliases is None:
            aliases = load_filemap(store, self.config.root_dir)
        self.aliases = aliases if isinstance(aliases, AliasTable) else AliasTable(aliases)

        self.resolver = PathResolver(
            self.aliases,
            default_document=self.metadata.start_page or DEFAULT_DOCUMENT,
            root_dir=self.config.root_dir,
        )
        self.handler = StaticHandler(
            store,
            self.resolver,
            content_types=content_types,
            server_name=self.config.server_name,
        )

        self._socket_server = SocketServer(self.config)
        self._socket_server.bind()

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def port(self) -> int:
        """The bound port (the real one when config.port was 0)."""
        return self._socket_server.port

    @property
    def host(self) -> str:
        return self._socket_server.address[0]

    @property
    def url(self) -> str:
        """Base URL to open in a browser."""
        host = self.config.host
        if host in ("", "0.0.0.0", "::"):
            host = "localhost"
        elif ":" in host:
            host = f"[{host}]"
        return f"http://{host}:{self.port}/"

    @property
    def title(self) -> Optional[str]:
        """Presentation title from the metadata control file, if any."""
        return self.metadata.title

    @property
    def is_running(self) -> bool:
        return self._socket_server.is_running

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def serve(self, install_signal_handlers: bool = False):
        """
        Serve until shutdown() is called (blocking).

        Args:
            install_signal_handlers: Let SIGINT/SIGTERM stop the server.
                                     Only honored on the main thread.
        """
        logger.info(f"Serving {self.store!r} on {self.url}")
        self._socket_server.serve_forever(
            self._process_connection,
            install_signal_handlers=install_signal_handlers,
        )
        logger.info("Server stopped")

    def shutdown(self):
        """
        Stop accepting connections. Idempotent, callable from any thread.

        Connections already accepted finish on their own.
        """
        self._socket_server.shutdown()

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_for_shutdown(timeout)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
        return False

    def setup_logging(self):
        """Configure root logging from config.log_level and log_format."""
        level = getattr(logging, self.config.log_level.upper(), logging.WARNING)

        logging.basicConfig(
            level=level,
            format=LOG_FORMAT,
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("pagejar").setLevel(level)

    # =========================================================================
    # CONNECTION HANDLING (runs in the connection's own thread)
    # =========================================================================

    def _process_connection(self, conn: Connection):
        """
        Keep-alive loop for one connection.

        Requests are handled strictly one after the other. The loop owns
        the connection and closes it on the way out, whatever the reason.
        """
        host, port = self._socket_server.address
        reader = RequestReader(
            conn,
            max_line_size=self.config.max_line_size,
            max_header_lines=self.config.max_header_lines,
            default_host=f"{host}:{port}",
        )

        with conn:
            while True:
                try:
                    request = reader.read()
                except HTTPParseError as e:
                    logger.warning(f"[{conn.id}] Dropping malformed request from {conn.client_ip}: {e}")
                    break
                except socket.timeout:
                    logger.debug(f"[{conn.id}] Idle timeout")
                    break
                except OSError as e:
                    logger.error(f"[{conn.id}] Read failed: {e}")
                    break

                if request is None:
                    break

                started = time.time()
                try:
                    outcome = self.handler.handle(request, conn.writer)
                except OSError as e:
                    logger.error(f"[{conn.id}] Write failed for {request.path}: {e}")
                    break
                except Exception:
                    logger.exception(
                        f"[{conn.id}] Unexpected error handling {request.method} {request.path}"
                    )
                    break

                conn.finish_exchange()
                log_access(
                    AccessLog(
                        method=request.method,
                        path=request.path,
                        client_ip=conn.client_ip,
                        status_code=int(outcome.status),
                        content_length=outcome.body_bytes,
                        duration_ms=(time.time() - started) * 1000,
                        request_id=f"{conn.id}-{conn.requests_handled}",
                        user_agent=request.header("user-agent") or "-",
                    ),
                    self.config.log_format,
                )

                if not outcome.keep_alive:
                    break
