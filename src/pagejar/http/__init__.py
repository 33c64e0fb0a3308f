"""
HTTP/1.1 protocol pieces: reading requests, framing responses, and
mapping request paths and file names to what the server sends.
"""

from .mime_types import ContentTypes, guess_content_type
from .paths import AliasTable, PathResolver, PathViolation, validate_path
from .request import HTTPParseError, HTTPRequest, RequestParser, RequestReader, parse_request
from .response import (
    PROBE_SIZE,
    ResponseState,
    ResponseStateError,
    ResponseWriter,
    format_http_date,
)
from .status_codes import HTTPStatus

__all__ = [
    "ContentTypes",
    "guess_content_type",
    "AliasTable",
    "PathResolver",
    "PathViolation",
    "validate_path",
    "HTTPParseError",
    "HTTPRequest",
    "RequestParser",
    "RequestReader",
    "parse_request",
    "PROBE_SIZE",
    "ResponseState",
    "ResponseStateError",
    "ResponseWriter",
    "format_http_date",
    "HTTPStatus",
]
