"""
Low-level networking: the listening socket and per-connection I/O.

    SocketServer ── accept() ──► Connection ──► thread running the
                                                keep-alive loop
"""

from .connection import Connection, ConnectionState
from .socket_server import SocketServer

__all__ = ["Connection", "ConnectionState", "SocketServer"]
