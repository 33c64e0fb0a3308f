"""
=============================================================================
CONTENT TYPE GUESSING
=============================================================================

Maps a resource name to the (Content-Type, Content-Encoding) pair the
server reports for it. This is GUESSING: only the file name is looked at,
never the content.

=============================================================================
WHY TWO HEADERS?
=============================================================================

The server never compresses anything itself. But a presentation may ship
pre-compressed files, and the browser must be told both what the bytes
ARE and how they were PACKED:

    slides.html.gz   →   Content-Type: text/html
                         Content-Encoding: gzip

    The browser unpacks gzip transparently and renders HTML.
    Reporting "application/gzip" instead would trigger a download.

=============================================================================
RESOLUTION ORDER
=============================================================================

    basename("/a/b/.x.svg.gz")   →  "x.svg.gz"     (leading dots stripped)
    last extension               →  "gz"

    1. Combined extension?    svgz, tgz, taz, tz, tbz2, txz
       └── yes → (base type, encoding)         "x.tgz" → (tar, gzip)

    2. Compression extension? gz, Z, bz2, bzip2, xz, br
       ├── second extension present → (type of it, encoding)
       │                                        "x.html.gz" → (html, gzip)
       └── none → raw extension as type, no encoding
                                                "x.gz" → (octet-stream, None)

    3. Plain lookup in the MIME table, defaulting to octet-stream.

Extensions are case-sensitive on purpose: "Z" is compress, "z" is not.

=============================================================================
"""

from pathlib import PurePosixPath
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple


# =============================================================================
# MIME TYPE DATABASE
# =============================================================================
#
# Keys are extensions WITHOUT the dot, exactly as they appear in file names.
# Compression extensions (gz, bz2, ...) are deliberately absent: they are
# encodings, not types.
#
# =============================================================================

MIME_TYPES = {
    # -------------------------------------------------------------------------
    # TEXT TYPES
    # -------------------------------------------------------------------------
    "html": "text/html",
    "htm": "text/html",
    "css": "text/css",
    "js": "application/javascript",
    "mjs": "application/javascript",
    "json": "application/json",
    "map": "application/json",     # Source maps
    "xml": "application/xml",
    "txt": "text/plain",
    "md": "text/markdown",
    "csv": "text/csv",

    # -------------------------------------------------------------------------
    # IMAGE TYPES
    # -------------------------------------------------------------------------
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "svg": "image/svg+xml",
    "ico": "image/x-icon",
    "webp": "image/webp",
    "avif": "image/avif",
    "bmp": "image/bmp",

    # -------------------------------------------------------------------------
    # FONT TYPES
    # -------------------------------------------------------------------------
    "woff": "font/woff",
    "woff2": "font/woff2",
    "ttf": "font/ttf",
    "otf": "font/otf",
    "eot": "application/vnd.ms-fontobject",

    # -------------------------------------------------------------------------
    # AUDIO / VIDEO TYPES
    # -------------------------------------------------------------------------
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
    "m4a": "audio/mp4",
    "mp4": "video/mp4",
    "webm": "video/webm",

    # -------------------------------------------------------------------------
    # DOCUMENT / ARCHIVE TYPES
    # -------------------------------------------------------------------------
    "pdf": "application/pdf",
    "zip": "application/zip",
    "tar": "application/x-tar",
    "7z": "application/x-7z-compressed",
    "wasm": "application/wasm",
}

# Content-Encoding name → file extensions that announce it
ENCODINGS = {
    "gzip": ("gz", "gzip"),
    "compress": ("Z",),
    "bzip2": ("bz2", "bzip2"),
    "xz": ("xz",),
    "br": ("br",),
}

# Single extensions that stand for "<base>.<compression>"
COMBINED_EXTENSIONS = {
    "svgz": ("svg", "gzip"),
    "tgz": ("tar", "gzip"),
    "taz": ("tar", "gzip"),
    "tz": ("tar", "gzip"),
    "tbz2": ("tar", "bzip2"),
    "txz": ("tar", "xz"),
}

# application/octet-stream = "I don't know what this is, treat as binary"
DEFAULT_MIME_TYPE = "application/octet-stream"


class ContentTypes:
    """
    Immutable extension tables plus the guessing logic.

    Built once and handed to the server by reference, so tests can use a
    private instance with extra types instead of patching a global:

        types = ContentTypes(extra_types={"reveal": "text/html"})
        types.guess("deck.reveal")          # ('text/html', None)
        types.guess("deck.reveal.br")       # ('text/html', 'br')

    All lookups read frozen mappings; one instance is safely shared by
    every connection thread without locking.
    """

    def __init__(
        self,
        extra_types: Optional[Mapping[str, str]] = None,
        default_type: str = DEFAULT_MIME_TYPE,
    ):
        types: Dict[str, str] = dict(MIME_TYPES)
        if extra_types:
            types.update({ext.lstrip("."): mime for ext, mime in extra_types.items()})

        encodings: Dict[str, str] = {}
        for name, extensions in ENCODINGS.items():
            for ext in extensions:
                encodings[ext] = name

        self._types = MappingProxyType(types)
        self._encodings = MappingProxyType(encodings)
        self._combined = MappingProxyType(dict(COMBINED_EXTENSIONS))
        self.default_type = default_type

    @property
    def types(self) -> Mapping[str, str]:
        """Read-only extension → MIME type table."""
        return self._types

    @property
    def encodings(self) -> Mapping[str, str]:
        """Read-only extension → content-encoding table."""
        return self._encodings

    def guess(self, name: str) -> Tuple[str, Optional[str]]:
        """
        Guess content type and content encoding for a resource name.

        Args:
            name: Resource name or path ("/presentation/img/logo.svgz").

        Returns:
            (mime_type, encoding) - encoding is None for plain files.

        Examples:
            >>> ContentTypes().guess("x.svgz")
            ('image/svg+xml', 'gzip')
            >>> ContentTypes().guess("x.html.gz")
            ('text/html', 'gzip')
            >>> ContentTypes().guess(".html")
            ('application/octet-stream', None)
        """
        extension, encoding = self._split_extensions(name)
        if extension is None:
            return self.default_type, None
        return self._types.get(extension, self.default_type), encoding

    def _split_extensions(self, name: str) -> Tuple[Optional[str], Optional[str]]:
        """Return (type extension, encoding name) or (None, None)."""
        base = _basename(name)

        last_dot = base.rfind(".")
        if last_dot < 0:
            return None, None

        extension = base[last_dot + 1:]

        combined = self._combined.get(extension)
        if combined is not None:
            return combined

        encoding = self._encodings.get(extension)
        if encoding is None:
            return extension, None

        second_last_dot = base.rfind(".", 0, last_dot)
        if second_last_dot < 0:
            # "archive.gz": nothing to unwrap
            return extension, None
        return base[second_last_dot + 1:last_dot], encoding


def _basename(name: str) -> str:
    """
    Last path segment with leading dots removed.

    ".html" is a hidden file named "html", not an HTML file, so after
    stripping it has no extension at all.
    """
    if name.endswith("/"):
        return ""
    return PurePosixPath(name).name.lstrip(".")


# Shared default instance for callers that don't need custom tables
DEFAULT_CONTENT_TYPES = ContentTypes()


def guess_content_type(name: str) -> Tuple[str, Optional[str]]:
    """
    Guess (type, encoding) with the default tables.

    Convenience wrapper around DEFAULT_CONTENT_TYPES.guess().
    """
    return DEFAULT_CONTENT_TYPES.guess(name)
