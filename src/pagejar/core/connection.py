"""
=============================================================================
CONNECTION
=============================================================================

Wraps one accepted client socket with the two things the HTTP layer
needs: line-at-a-time reading and a buffered byte sink for responses.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL
=============================================================================

recv() returns whatever the kernel has, not "one line":

    Client sends:   "GET / HTTP/1.1\\r\\nHost: x\\r\\n\\r\\n"

    recv() #1  →  "GET / HT"
    recv() #2  →  "TP/1.1\\r\\nHost: x\\r\\n\\r\\nGET /b"   ← next request already here!

So read_line() keeps a buffer. Whatever follows the line it returns
stays buffered for the next call, which is what makes back-to-back
requests on a keep-alive connection work.

=============================================================================
LIFETIME
=============================================================================

    accept ──► NEW ──► READING ◄──► WRITING ──► CLOSED
                          │                       ▲
                          └── EOF / timeout ──────┘

The connection owns the socket. Response writers only flush the
buffered sink; closing the transport happens here, once, when the
keep-alive loop is done with it.

=============================================================================
"""

import logging
import socket
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO, Optional

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states, for logging and debugging."""

    NEW = "new"
    READING = "reading"
    WRITING = "writing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    One client connection.

    Attributes:
        socket: The accepted client socket.
        address: Client's (ip, port) tuple.
        id: Short identifier used in log lines.
        state: Current lifecycle state.
        created_at: When the connection was accepted.
        requests_handled: Completed exchanges on this connection.
        buffer_size: Bytes asked for per recv().
        timeout: Idle read timeout in seconds. An expired read raises
                 socket.timeout out of read_line().
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 60.0

    _buffer: bytes = field(default=b"", repr=False)
    _writer: Optional[BinaryIO] = field(default=None, repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    # =========================================================================
    # READING
    # =========================================================================

    def read_line(self, limit: int = 8192) -> Optional[bytes]:
        """
        Read one line, without its line terminator.

        Lines end at LF; a CR right before it is dropped too, so both
        "\\r\\n" and bare "\\n" endings are accepted.

        Args:
            limit: Longest line accepted, in bytes.

        Returns:
            The line, a final unterminated line when the peer closes
            mid-line, or None when the peer closed and nothing is left.

        Raises:
            ValueError: If the line is longer than `limit`.
            socket.timeout: If the peer stays silent past the idle timeout.
        """
        self.state = ConnectionState.READING

        while True:
            newline = self._buffer.find(b"\n")
            if newline >= 0:
                line = self._buffer[:newline]
                self._buffer = self._buffer[newline + 1:]
                if line.endswith(b"\r"):
                    line = line[:-1]
                if len(line) > limit:
                    raise ValueError(f"Line too long (limit {limit} bytes)")
                return line

            if len(self._buffer) > limit:
                raise ValueError(f"Line too long (limit {limit} bytes)")

            chunk = self._recv()
            if not chunk:
                if self._buffer:
                    line, self._buffer = self._buffer, b""
                    return line
                return None
            self._buffer += chunk

    def _recv(self) -> bytes:
        """
        Receive from the socket; an abrupt disconnect reads as EOF.
        """
        try:
            data = self.socket.recv(self.buffer_size)
            self.last_activity = time.time()
            return data
        except (ConnectionResetError, BrokenPipeError):
            return b""

    # =========================================================================
    # WRITING
    # =========================================================================

    @property
    def writer(self) -> BinaryIO:
        """
        Buffered binary sink over the socket.

        Created on first use and reused for every response on this
        connection. Flushing it sends; closing it is left to close().
        """
        if self._writer is None:
            self._writer = self.socket.makefile("wb", buffering=self.buffer_size)
        self.state = ConnectionState.WRITING
        return self._writer

    def finish_exchange(self):
        """Count a completed request/response exchange."""
        self.requests_handled += 1
        self.last_activity = time.time()

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection gracefully.

            1. close the buffered sink (flushes what is left)
            2. shutdown(SHUT_WR), sending FIN
            3. drain whatever the client still sends, briefly
            4. close the socket

        Errors in any step are expected when the peer is already gone and
        do not stop the remaining steps. Safe to call more than once.
        """
        if self.state == ConnectionState.CLOSED:
            return

        if self._writer is not None:
            try:
                self._writer.close()
            except OSError as e:
                logger.debug(f"[{self.id}] Flush on close failed: {e}")

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(
            f"[{self.id}] Connection closed after {self.requests_handled} requests"
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
