"""
=============================================================================
HTTP REQUEST READER
=============================================================================

Reads HTTP/1.1 request heads off a connection and turns them into
immutable HTTPRequest values. Request bodies are never read: the server
only answers GET and HEAD.

=============================================================================
WHAT A REQUEST HEAD LOOKS LIKE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  (optional single blank line, left over from a previous request)    │
    │                                                                     │
    │  GET /slides/intro.html HTTP/1.1\\r\\n      ← request line           │
    │  ─┬─ ─────────┬──────── ────┬───                                    │
    │   │           │             └── must start with "HTTP/1"            │
    │   │           └──────────────── "/..." or "http://host/..."         │
    │   └──────────────────────────── any token (non GET/HEAD → 501)      │
    │                                                                     │
    │  Host: localhost:8080\\r\\n                 ← headers, split at the  │
    │  If-None-Match: "9a0364b9e99bb480dd25e1f0284c8555"\\r\\n   1st colon │
    │  \\r\\n                                     ← end of head            │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
EOF HANDLING
=============================================================================

    Stream ends before any byte of a request    → read() returns None
    Stream ends in the middle of a request head → HTTPParseError

A None result means "no more requests on this connection" and the
keep-alive loop stops. It is not an error.

=============================================================================
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence
from urllib.parse import unquote, urlsplit

logger = logging.getLogger(__name__)
wire_logger = logging.getLogger("pagejar.wire")


class HTTPParseError(ValueError):
    """
    Raised when a request head is malformed.

    Unlike the statuses produced for a well-formed request (400, 404,
    501), a parse error never gets a response: the connection is simply
    closed, because the peer is not speaking HTTP we understand.
    """


@dataclass(frozen=True)
class HTTPRequest:
    """
    An immutable, parsed HTTP request head.

    Attributes:
        method:         Method token exactly as sent ("GET", "HEAD", ...)
        target:         Raw request target ("/a%20b.html?x=1")
        path:           Decoded path without query ("/a b.html")
        version:        Protocol version ("HTTP/1.1")
        headers:        Read-only mapping, lowercase names
        host:           Host header, or the server's address when absent
        client_address: (ip, port) of the peer

    Header names are normalized on construction, so a request built by
    hand behaves the same as one produced by the parser:

        >>> HTTPRequest("GET", "/", "/", headers={"Host": "x"}).header("HOST")
        'x'
    """

    method: str
    target: str
    path: str
    version: str = "HTTP/1.1"
    headers: Mapping[str, str] = field(default_factory=dict)
    host: str = ""
    client_address: tuple = ("", 0)

    def __post_init__(self):
        normalized = {name.lower(): value for name, value in self.headers.items()}
        object.__setattr__(self, "headers", MappingProxyType(normalized))

    @property
    def url(self) -> str:
        """Absolute URL of the request, for logs and error pages."""
        return f"http://{self.host}{self.path}"

    @property
    def is_keep_alive(self) -> bool:
        """
        Check if the client wants the connection kept open.

            HTTP/1.1:  open unless   "Connection: close"
            HTTP/1.0:  closed unless "Connection: keep-alive"
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Turns the lines of a request head into an HTTPRequest.

    The parser is strict about the request line and lenient about
    everything the server does not act on. Only three things make a
    request line malformed:

        1. not exactly three space-separated tokens
        2. a target that is neither "/..." nor "http://..."
        3. a version that does not start with "HTTP/1"

    An unknown method is NOT a parse error; the handler answers it
    with 501 Not Implemented.
    """

    def parse_lines(
        self,
        lines: Sequence[str],
        client_address: tuple = ("", 0),
        default_host: str = "",
    ) -> HTTPRequest:
        """
        Parse a request line followed by header lines.

        Args:
            lines: Head lines without CRLF and without the terminating
                   blank line. lines[0] is the request line.
            client_address: Peer (ip, port), carried onto the request.
            default_host: Host to report when the request has no Host
                          header (the server's own host:port).

        Returns:
            The parsed request.

        Raises:
            HTTPParseError: If the request line or a header is malformed.
        """
        if not lines:
            raise HTTPParseError("Empty request")

        method, target, path, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        return HTTPRequest(
            method=method,
            target=target,
            path=path,
            version=version,
            headers=headers,
            host=headers.get("host", default_host),
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> tuple:
        parts = line.split(" ")
        if len(parts) != 3:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, target, version = parts

        if target.startswith("/"):
            # "//x" must stay a path, so no urlsplit here
            raw_path = target.split("?", 1)[0].split("#", 1)[0]
        elif target.startswith("http://"):
            raw_path = urlsplit(target).path or "/"
        else:
            raise HTTPParseError(f"Invalid request target: {target!r}")

        if not version.startswith("HTTP/1"):
            raise HTTPParseError(f"Unsupported HTTP version: {version!r}")

        return method, target, unquote(raw_path), version

    def _parse_headers(self, lines: Sequence[str]) -> Dict[str, str]:
        """
        Parse header lines into a dict with lowercase names.

        Repeated headers are joined with ", " (RFC 7230 section 3.2.2).
        A line starting with whitespace continues the previous header
        (obsolete line folding).
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if line[:1] in (" ", "\t"):
                if current_name is None:
                    raise HTTPParseError(f"Continuation without a header: {line!r}")
                headers[current_name] = f"{headers[current_name]} {line.strip()}"
                continue

            colon = line.find(":")
            if colon <= 0:
                raise HTTPParseError(f"Invalid header line: {line!r}")

            name = line[:colon].strip().lower()
            if not name:
                raise HTTPParseError(f"Invalid header line: {line!r}")
            value = line[colon + 1:].strip()

            if name in headers:
                headers[name] = f"{headers[name]}, {value}"
            else:
                headers[name] = value
            current_name = name

        return headers


def parse_request(
    data: bytes,
    client_address: tuple = ("", 0),
    default_host: str = "",
) -> HTTPRequest:
    """
    Parse a complete request head held in memory.

    Convenience for tests and tools; the server itself uses
    RequestReader on a live connection. Anything after the first blank
    line is ignored.

    Example:
        >>> parse_request(b"GET /a%20b HTTP/1.1\\r\\nHost: h\\r\\n\\r\\n").path
        '/a b'
    """
    text = data.decode("utf-8", errors="replace")
    lines = text.split("\r\n")
    if lines and not lines[0].strip():
        lines = lines[1:]

    head: List[str] = []
    for line in lines:
        if not line.strip():
            break
        head.append(line)

    return RequestParser().parse_lines(head, client_address, default_host)


class RequestReader:
    """
    Reads successive request heads from one connection.

        reader = RequestReader(connection, default_host="localhost:8080")
        while (request := reader.read()) is not None:
            ...

    The connection only needs a read_line(limit) method returning the
    next line as bytes without its line terminator, or None at EOF (see
    pagejar.core.connection.Connection).
    """

    def __init__(
        self,
        connection,
        parser: Optional[RequestParser] = None,
        max_line_size: int = 8192,
        max_header_lines: int = 100,
        default_host: str = "",
    ):
        self._connection = connection
        self._parser = parser or RequestParser()
        self._max_line_size = max_line_size
        self._max_header_lines = max_header_lines
        self._default_host = default_host

    def read(self) -> Optional[HTTPRequest]:
        """
        Read the next request head.

        Returns:
            The parsed request, or None when the peer has no further
            request (clean EOF, or a second blank line where the request
            line should be).

        Raises:
            HTTPParseError: If the head is malformed, too long, or cut off.
            socket.timeout: If the peer goes quiet (propagated).
        """
        lines: List[str] = []
        blank_allowed = True

        while True:
            try:
                raw = self._connection.read_line(self._max_line_size)
            except ValueError as e:
                raise HTTPParseError(str(e)) from e

            if raw is None:
                if lines:
                    raise HTTPParseError("Connection closed in the middle of a request")
                return None

            line = raw.decode("utf-8", errors="replace")
            wire_logger.debug(f">> {line}")

            if not line.strip():
                if blank_allowed and not lines:
                    blank_allowed = False
                    continue
                break

            blank_allowed = False
            lines.append(line)
            if len(lines) > self._max_header_lines + 1:
                raise HTTPParseError(
                    f"Too many header lines (limit {self._max_header_lines})"
                )

        if not lines:
            return None

        return self._parser.parse_lines(
            lines,
            client_address=getattr(self._connection, "address", ("", 0)),
            default_host=self._default_host,
        )
