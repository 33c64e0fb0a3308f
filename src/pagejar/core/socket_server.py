"""
=============================================================================
SOCKET SERVER (CONNECTION ACCEPTOR)
=============================================================================

Owns the listening socket and hands every accepted connection to its
own thread.

=============================================================================
THREAD PER CONNECTION
=============================================================================

    main thread                      connection threads
    ───────────                      ──────────────────
    bind() + listen()
         │
    serve_forever()
         │
         ├── accept() ──► Connection ──► Thread ──► handler(conn)  (keep-alive loop)
         ├── accept() ──► Connection ──► Thread ──► handler(conn)
         │      ⋮
         │
    shutdown()  ─── closes the listening socket, loop ends

Browsers open a handful of parallel keep-alive connections to load a
slide deck; each one gets a thread that lives as long as the connection.
Nothing bounds their number beyond the OS accept backlog.

=============================================================================
SHUTDOWN
=============================================================================

Closing the listening socket is the ONLY stop signal. accept() then
fails, and that failure is expected, not an error. Connections that
were already accepted are not interrupted; they end by themselves on
their idle timeout or when the peer hangs up.

=============================================================================
"""

import logging
import signal
import socket
import threading
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from .connection import Connection

logger = logging.getLogger(__name__)

# accept() wakes up this often to notice a shutdown from another thread
ACCEPT_POLL_INTERVAL = 0.5


class SocketServer:
    """
    Low-level TCP listener.

    The socket binds in bind(), before serving starts, so the port is
    known (even an OS-assigned one) as soon as the server is built.

    Usage:
        acceptor = SocketServer(config)
        acceptor.bind()
        print(acceptor.port)
        acceptor.serve_forever(handle_connection)   # blocks
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._address: Optional[Tuple[str, int]] = None
        self._running = False
        self._closed = threading.Event()
        self._lock = threading.Lock()
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port). Valid after bind()."""
        if self._address is None:
            raise RuntimeError("Socket is not bound")
        return self._address

    @property
    def port(self) -> int:
        return self.address[1]

    def _create_socket(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.config.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)

        # Restart on the same port without waiting out TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        sock.settimeout(ACCEPT_POLL_INTERVAL)
        return sock

    def bind(self):
        """
        Create the socket, bind and start listening.

        Raises:
            OSError: If the address is unavailable (port in use, ...).
        """
        sock = self._create_socket()
        try:
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            raise

        self._socket = sock
        self._address = tuple(sock.getsockname()[:2])
        self._closed.clear()

    def serve_forever(
        self,
        connection_handler: Callable[[Connection], None],
        install_signal_handlers: bool = False,
    ):
        """
        Accept connections until shutdown() is called.

        Args:
            connection_handler: Runs in a new thread for every connection
                                and owns it (including closing it).
            install_signal_handlers: Turn SIGINT/SIGTERM into shutdown().
                                     Ignored outside the main thread.
        """
        if self._socket is None:
            self.bind()

        self._running = True
        if install_signal_handlers:
            self._setup_signals()

        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")

        try:
            self._accept_loop(connection_handler)
        finally:
            self._restore_signals()
            self._running = False
            self._close_socket()
            logger.info("Socket server stopped")

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            sock = self._socket
            if sock is None:
                break

            try:
                client_socket, client_address = sock.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._running or self._closed.is_set():
                    # Listening socket closed by shutdown()
                    break
                logger.error(f"Accept error: {e}")
                continue

            conn = Connection(
                socket=client_socket,
                address=client_address[:2],
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
            )
            logger.debug(f"[{conn.id}] Accepted connection from {client_address[0]}:{client_address[1]}")

            worker = threading.Thread(
                target=connection_handler,
                args=(conn,),
                name=f"pagejar-conn-{conn.id}",
                daemon=True,
            )
            worker.start()

    def shutdown(self):
        """
        Stop accepting connections by closing the listening socket.

        Safe to call more than once and from any thread.
        """
        if self._closed.is_set():
            return
        logger.info("Shutting down socket server...")
        self._running = False
        self._close_socket()

    def _close_socket(self):
        with self._lock:
            sock = self._socket
            self._closed.set()
            if sock is None:
                return
            try:
                # Wakes a blocked accept() on Linux; close() alone may not
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            try:
                sock.close()
            except OSError:
                pass

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Block until the listening socket is closed. False on timeout."""
        return self._closed.wait(timeout)

    # =========================================================================
    # SIGNALS
    # =========================================================================

    def _setup_signals(self):
        """
        Route SIGTERM (kill, systemd) and SIGINT (Ctrl+C) to shutdown().

        Python only lets the main thread install handlers.
        """
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        for sig in (signal.SIGTERM, signal.SIGINT):
            self._original_handlers[sig] = signal.signal(sig, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()
