"""
=============================================================================
HTTP RESPONSE WRITER
=============================================================================

Streams one HTTP response onto a binary sink. Unlike a response object
that is built in memory and serialized at the end, a ResponseWriter
writes as it goes, so a 200 MB video never sits in memory.

=============================================================================
STATE MACHINE
=============================================================================

    ResponseWriter(...)          write_body(stream)
          │                            │
          ▼                            ▼
    ┌──────────┐  write_body()  ┌──────────┐   body sent   ┌──────────┐
    │  HEADER  │ ─────────────► │   BODY   │ ────────────► │   DONE   │
    └──────────┘                └──────────┘               └──────────┘
          │  header() ok              ▲                          ▲
          │                     header() → ResponseStateError    │
          └──────────────────── close() (empty body) ────────────┘

The state never goes back. Calling header() or write_body() outside
HEADER is a bug in the caller and raises ResponseStateError.

=============================================================================
BODY FRAMING
=============================================================================

The writer reads a PROBE (up to 1 MiB) from the body stream first:

    probe shorter than 1 MiB          probe filled completely
    (stream exhausted)                (more may follow)
            │                                  │
            ▼                                  ▼
    Content-Length: 5321              Transfer-Encoding: chunked

    <5321 bytes>                      100000\\r\\n<1 MiB>\\r\\n
                                      2a\\r\\n<42 bytes>\\r\\n
                                      0\\r\\n\\r\\n

Memory is bounded by one probe buffer, and small files (almost all of
them) still get the simpler fixed-length form.

HEAD: every header is computed exactly as for GET, including
Content-Length or Transfer-Encoding, but no body byte is written. Once
chunked framing is chosen, HEAD stops reading the source: the headers
are final and nothing more depends on the remaining bytes.

=============================================================================
"""

import html
import io
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import BinaryIO, Dict, Optional

from .status_codes import HTTPStatus

logger = logging.getLogger(__name__)
wire_logger = logging.getLogger("pagejar.wire")

PROBE_SIZE = 1024 * 1024
CRLF = b"\r\n"


class ResponseState(Enum):
    """Framing state of a response. Only ever moves forward."""

    HEADER = "header"
    BODY = "body"
    DONE = "done"


class ResponseStateError(RuntimeError):
    """A ResponseWriter method was called in the wrong state."""


class ResponseWriter:
    """
    Writes one response: status line, headers, then a framed body.

    Usage:
        with ResponseWriter(conn.writer, HTTPStatus.OK, request.method) as out:
            out.header("ETag", etag)
            with resource.open() as body:
                out.write_body(body, content_type="text/html")

    The constructor already writes the status line and a Server header.
    Leaving the with-block (or calling close()) flushes the sink but never
    closes it: the transport belongs to the connection, which may carry
    more responses.

    Args:
        stream: Binary sink (a socket makefile, or BytesIO in tests).
        status: Response status.
        method: Request method; "HEAD" suppresses body bytes.
        server_name: Value of the Server header.
        probe_size: Framing probe size, PROBE_SIZE unless testing.
    """

    def __init__(
        self,
        stream: BinaryIO,
        status: HTTPStatus,
        method: str = "GET",
        server_name: str = "pagejar",
        probe_size: int = PROBE_SIZE,
    ):
        self._stream = stream
        self.status = status
        self.method = method
        self.probe_size = probe_size
        self.state = ResponseState.HEADER
        self.body_bytes = 0

        self._write_line(f"HTTP/1.1 {status.value} {status.phrase}")
        self.header("Server", server_name)

    # =========================================================================
    # HEADERS
    # =========================================================================

    def header(self, name: str, value: str) -> "ResponseWriter":
        """
        Write one header line.

        Content-Length and Transfer-Encoding are written by write_body();
        do not set them here.

        Raises:
            ResponseStateError: If the headers are already finished.
        """
        self._expect(ResponseState.HEADER)
        self._write_line(f"{name}: {value}")
        return self

    def headers(self, headers: Dict[str, Optional[str]]) -> "ResponseWriter":
        """Write several headers. Entries with a None value are skipped."""
        for name, value in headers.items():
            if value is not None:
                self.header(name, value)
        return self

    # =========================================================================
    # BODY
    # =========================================================================

    def write_body(
        self,
        source: BinaryIO,
        content_type: Optional[str] = None,
        content_encoding: Optional[str] = None,
    ) -> int:
        """
        Frame and send a body read from `source`, then finish the response.

        Args:
            source: Readable binary stream; read to its end, not closed.
            content_type: Content-Type header to write, if any.
            content_encoding: Content-Encoding header to write, if any.

        Returns:
            Number of body bytes as framed. For HEAD none of them is sent;
            a chunked HEAD body is not read past the probe and counts 0.

        Raises:
            ResponseStateError: If called outside HEADER.
        """
        self._expect(ResponseState.HEADER)
        if content_type is not None:
            self.header("Content-Type", content_type)
        if content_encoding is not None:
            self.header("Content-Encoding", content_encoding)

        block = _read_fully(source, self.probe_size)

        if len(block) < self.probe_size:
            self.header("Content-Length", str(len(block)))
            self._finish_headers()
            wire_logger.debug(f"<< body - {len(block)} bytes")
            self._write_payload(block)
        else:
            self.header("Transfer-Encoding", "chunked")
            self._finish_headers()
            if self.method == "HEAD":
                self.state = ResponseState.DONE
                return self.body_bytes
            while block:
                wire_logger.debug(f"<< body-chunk - {len(block)} bytes")
                self._write_payload(f"{len(block):x}".encode("ascii") + CRLF)
                self._write_payload(block)
                self._write_payload(CRLF)
                block = _read_fully(source, self.probe_size)
            self._write_payload(b"0" + CRLF + CRLF)

        self.state = ResponseState.DONE
        return self.body_bytes

    def write_bytes(
        self,
        data: bytes,
        content_type: Optional[str] = None,
        content_encoding: Optional[str] = None,
    ) -> int:
        """write_body() for a body already in memory."""
        return self.write_body(io.BytesIO(data), content_type, content_encoding)

    # =========================================================================
    # COMPLETION
    # =========================================================================

    def close(self):
        """
        Finish the response and flush.

        From HEADER this ends the header block with no body. The sink
        itself is never closed.
        """
        if self.state == ResponseState.HEADER:
            self._finish_headers()
        self.state = ResponseState.DONE
        self._stream.flush()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _expect(self, state: ResponseState):
        if self.state != state:
            raise ResponseStateError(f"Expected state {state.name}, but is {self.state.name}")

    def _finish_headers(self):
        self._stream.write(CRLF)
        self.state = ResponseState.BODY

    def _write_line(self, line: str):
        wire_logger.debug(f"<< {line}")
        self._stream.write(line.encode("utf-8") + CRLF)

    def _write_payload(self, data: bytes):
        # Chunk framing counts too
        self.body_bytes += len(data)
        if self.method != "HEAD":
            self._stream.write(data)


def _read_fully(source: BinaryIO, size: int) -> bytes:
    """
    Read exactly `size` bytes, or fewer only at end of stream.

    A single read() may legitimately return less than asked for
    (pipes, sockets, some archive members), which must not be
    mistaken for the end of the body.
    """
    parts = []
    remaining = size
    while remaining > 0:
        data = source.read(remaining)
        if not data:
            break
        parts.append(data)
        remaining -= len(data)
    return b"".join(parts)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def format_http_date(dt: Optional[datetime] = None) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Wed, 01 Jan 2026 12:00:00 GMT

    Naive datetimes are taken as UTC; aware ones are converted. Without
    an argument, the current time is used.
    """
    if dt is None:
        dt = datetime.now(timezone.utc)
    elif dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)

    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# ERROR PAGES
# =============================================================================
#
# Minimal HTML documents. They echo what the client sent (escaped) and
# nothing about the server's internals.
#
# =============================================================================

_PAGE = (
    '<html><head><meta charset="utf-8"><title>{title}</title></head>'
    "<body>{body}<p><sub>pagejar</sub></p></body></html>"
)


def not_found_page(url: str) -> bytes:
    """404 body naming the requested URL."""
    return _PAGE.format(
        title=HTTPStatus.NOT_FOUND.phrase,
        body=f"<p>The requested resource could not be found.</p><tt>{html.escape(url)}</tt>",
    ).encode("utf-8")


def bad_request_page(reason: str, path: str) -> bytes:
    """400 body with a reason and the offending path."""
    return _PAGE.format(
        title=HTTPStatus.BAD_REQUEST.phrase,
        body=f"<p>{html.escape(reason)}</p><tt>{html.escape(path)}</tt>",
    ).encode("utf-8")


def not_implemented_page(method: str) -> bytes:
    """501 body naming the rejected method."""
    return _PAGE.format(
        title=HTTPStatus.NOT_IMPLEMENTED.phrase,
        body=(
            f"<p>Support for HTTP method '{html.escape(method)}' not implemented.</p>"
            "<p>Server only supports GET and HEAD.</p>"
        ),
    ).encode("utf-8")
