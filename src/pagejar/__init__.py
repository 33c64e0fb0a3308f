"""
=============================================================================
PAGEJAR - Serve a Packaged Static Presentation over HTTP
=============================================================================

A small HTTP/1.1 server, built on raw sockets, for one job: serving a
read-only set of static files (an HTML slide deck, usually shipped as a
zip or jar archive) to a browser.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    pagejar/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (pagejar serve / extract)
    ├── server.py            # HTTPServer and the keep-alive loop
    ├── config.py            # ServerConfig dataclass
    ├── access_log.py        # Access log records (text / JSON)
    ├── extract.py           # Unpack a presentation from an archive
    ├── core/                # Low-level networking
    │   ├── socket_server.py # Listening socket, thread per connection
    │   └── connection.py    # Line reading and buffered writing
    ├── http/                # HTTP protocol
    │   ├── request.py       # Request head reading and parsing
    │   ├── response.py      # Response framing state machine
    │   ├── paths.py         # Traversal check, aliases, default document
    │   ├── status_codes.py  # HTTP status enum
    │   └── mime_types.py    # Content type and encoding guessing
    ├── resources/           # Where the bytes come from
    │   └── store.py         # Directory, zip and in-memory stores
    └── handlers/
        └── static.py        # GET/HEAD, conditional GET, error pages

=============================================================================
QUICK START
=============================================================================

    from pagejar import HTTPServer, ServerConfig, open_store

    with open_store("talk.zip") as store:
        server = HTTPServer(store, ServerConfig(root_dir="presentation"))
        print(server.url)
        server.serve()

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .http.mime_types import ContentTypes
from .http.paths import AliasTable
from .resources.store import (
    DirectoryResourceStore,
    MemoryResourceStore,
    ZipResourceStore,
    open_store,
)
from .server import HTTPServer

__all__ = [
    "HTTPServer",
    "ServerConfig",
    "DirectoryResourceStore",
    "ZipResourceStore",
    "MemoryResourceStore",
    "ContentTypes",
    "AliasTable",
    "open_store",
    "__version__",
]
