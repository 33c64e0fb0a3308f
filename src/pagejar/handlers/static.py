"""
=============================================================================
STATIC RESOURCE HANDLER
=============================================================================

Answers one request from a ResourceStore. Everything served is static:
a presentation's HTML, scripts, stylesheets, images and videos.

=============================================================================
FLOW
=============================================================================

    request
       │
       ├── method not GET/HEAD ───────────────► 501 + Allow, close connection
       │
       ├── PathResolver.resolve(path)
       │      └── PathViolation ──────────────► 400
       │
       ├── control file, or store.lookup() None ─► 404
       │
       ├── If-None-Match == ETag ─────────────► 304 (ETag, no body)
       │
       └── 200 + ETag, Last-Modified, no-cache directives, body

Every response carries Date and Connection (keep-alive or close).

=============================================================================
CACHING
=============================================================================

A presenter's content changes whenever the author rebuilds it, so the
browser is told not to cache:

    Cache-Control: no-store, no-cache, must-revalidate
    Pragma: no-cache
    Expires: 0

The ETag still lets it skip the download when nothing changed since
the last request in this server run.

=============================================================================
"""

import logging
from dataclasses import dataclass
from typing import BinaryIO, Dict, Optional

from ..http.mime_types import DEFAULT_CONTENT_TYPES, ContentTypes
from ..http.paths import PathResolver, PathViolation
from ..http.request import HTTPRequest
from ..http.response import (
    PROBE_SIZE,
    ResponseWriter,
    bad_request_page,
    format_http_date,
    not_found_page,
    not_implemented_page,
)
from ..http.status_codes import HTTPStatus
from ..resources.store import ResourceStore, is_control_file

logger = logging.getLogger(__name__)

ALLOWED_METHODS = ("GET", "HEAD")

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


@dataclass(frozen=True)
class Outcome:
    """What happened in one exchange, for the access log and the loop."""

    status: HTTPStatus
    body_bytes: int
    keep_alive: bool


class StaticHandler:
    """
    Serves GET and HEAD requests from a ResourceStore.

    Holds only read-only collaborators, so one instance serves every
    connection thread.

    Args:
        store: Where resources come from.
        resolver: Maps request paths to store keys.
        content_types: Content type guessing tables.
        server_name: Value of the Server header.
        probe_size: Body framing probe size.
    """

    def __init__(
        self,
        store: ResourceStore,
        resolver: Optional[PathResolver] = None,
        content_types: Optional[ContentTypes] = None,
        server_name: str = "pagejar",
        probe_size: int = PROBE_SIZE,
    ):
        self.store = store
        self.resolver = resolver or PathResolver()
        self.content_types = content_types or DEFAULT_CONTENT_TYPES
        self.server_name = server_name
        self.probe_size = probe_size

    def handle(self, request: HTTPRequest, stream: BinaryIO) -> Outcome:
        """
        Write the response to `request` onto `stream`.

        Returns:
            The outcome; keep_alive False means the connection must close.

        Raises:
            OSError: If writing to the client fails.
        """
        if request.method not in ALLOWED_METHODS:
            logger.debug(f"Method {request.method!r} not implemented")
            return self._send_page(
                stream,
                request,
                HTTPStatus.NOT_IMPLEMENTED,
                not_implemented_page(request.method),
                keep_alive=False,
                extra={"Allow": ", ".join(ALLOWED_METHODS)},
            )

        keep_alive = request.is_keep_alive

        try:
            key = self.resolver.resolve(request.path)
        except PathViolation:
            logger.warning(
                f"Path traversal attempt from {request.client_address[0]}: {request.path}"
            )
            return self._send_page(
                stream,
                request,
                HTTPStatus.BAD_REQUEST,
                bad_request_page("The path leaves the presentation root.", request.path),
                keep_alive,
            )

        resource = None
        if not is_control_file(key, self.resolver.root_dir):
            resource = self.store.lookup(key)
        if resource is None:
            return self._not_found(stream, request, keep_alive)

        etag = resource.metadata.etag
        if request.header("if-none-match") == etag:
            with self._writer(stream, request, HTTPStatus.NOT_MODIFIED) as out:
                out.headers(self._common_headers(keep_alive))
                out.header("ETag", etag)
            return Outcome(HTTPStatus.NOT_MODIFIED, 0, keep_alive)

        try:
            body = resource.open()
        except FileNotFoundError:
            # Gone between lookup and open
            return self._not_found(stream, request, keep_alive)

        content_type, encoding = self.content_types.guess(key)

        with body, self._writer(stream, request, HTTPStatus.OK) as out:
            out.headers(self._common_headers(keep_alive))
            out.header("ETag", etag)
            out.header("Last-Modified", format_http_date(resource.metadata.last_modified))
            out.headers(NO_CACHE_HEADERS)
            sent = out.write_body(body, content_type, encoding)

        return Outcome(HTTPStatus.OK, sent, keep_alive)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _writer(self, stream: BinaryIO, request: HTTPRequest, status: HTTPStatus) -> ResponseWriter:
        return ResponseWriter(
            stream,
            status,
            method=request.method,
            server_name=self.server_name,
            probe_size=self.probe_size,
        )

    def _common_headers(self, keep_alive: bool) -> Dict[str, str]:
        return {
            "Connection": "keep-alive" if keep_alive else "close",
            "Date": format_http_date(),
        }

    def _not_found(self, stream: BinaryIO, request: HTTPRequest, keep_alive: bool) -> Outcome:
        return self._send_page(
            stream, request, HTTPStatus.NOT_FOUND, not_found_page(request.url), keep_alive
        )

    def _send_page(
        self,
        stream: BinaryIO,
        request: HTTPRequest,
        status: HTTPStatus,
        page: bytes,
        keep_alive: bool,
        extra: Optional[Dict[str, str]] = None,
    ) -> Outcome:
        """Send a small HTML error page."""
        with self._writer(stream, request, status) as out:
            out.headers(self._common_headers(keep_alive))
            out.headers(extra or {})
            sent = out.write_bytes(page, content_type="text/html; charset=utf-8")
        return Outcome(status, sent, keep_alive)
