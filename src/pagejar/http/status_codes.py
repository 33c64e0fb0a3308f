"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The handful of status codes a read-only resource server ever sends.

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  2xx   │ 200 OK               - Resource follows                   │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  3xx   │ 304 Not Modified     - Client's cached copy (ETag) is     │
    │        │                        still current, no body             │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  4xx   │ 400 Bad Request      - Path climbs above the served root  │
    │        │ 404 Not Found        - No resource behind the path        │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  5xx   │ 501 Not Implemented  - Anything but GET and HEAD          │
    └────────┴───────────────────────────────────────────────────────────┘

Why 501 and not 405 for POST/DELETE? RFC 7231 (6.6.2) reserves 501 for
methods the server does not support for ANY resource, which is exactly
the situation of a server that only ever reads.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    IntEnum, so a status compares equal to its number:

        >>> HTTPStatus.NOT_MODIFIED == 304
        True
        >>> HTTPStatus.NOT_MODIFIED.phrase
        'Not Modified'
    """

    OK = 200
    NOT_MODIFIED = 304
    BAD_REQUEST = 400
    NOT_FOUND = 404
    NOT_IMPLEMENTED = 501

    @property
    def phrase(self) -> str:
        """
        Get the reason phrase for this status code.

            HTTP/1.1 404 Not Found
                     ─── ─────────
                      │      │
                      │      └── Reason phrase
                      └───────── Status code
        """
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_error(self) -> bool:
        """Check if this is an error status code (4xx or 5xx)."""
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.NOT_MODIFIED: "Not Modified",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.NOT_IMPLEMENTED: "Not Implemented",
}
