"""
=============================================================================
RESOURCE STORES
=============================================================================

A ResourceStore answers one question: "what is behind this key?"

    store.lookup("presentation/index.html")
        │
        ├── None                         → 404
        └── Resource
              ├── path                   "presentation/index.html"
              ├── metadata
              │     ├── length           1234 (None = unknown upfront)
              │     ├── last_modified    datetime, UTC
              │     └── etag             '"3f2a..."'
              └── open()                 → binary stream, caller closes

Keys are relative ("presentation/img/logo.svg"), "/" separated, and
never start with a slash. The server does not care what backs a store:

    ┌────────────────────────┬─────────────────────────────────────────┐
    │ DirectoryResourceStore │ files under a directory                 │
    │ ZipResourceStore       │ entries of a .zip / .jar archive        │
    │ MemoryResourceStore    │ dict of key → bytes (tests, embedding)  │
    └────────────────────────┴─────────────────────────────────────────┘

=============================================================================
ETAGS
=============================================================================

    etag = '"' + md5(salt, key, size, mtime-or-crc).hexdigest() + '"'

The salt is the moment the store was created. An ETag is therefore
stable for as long as one server runs and changes on restart: content
served by a presenter tool is always treated as possibly stale between
runs.

=============================================================================
"""

import hashlib
import io
import logging
import posixpath
import time
import zipfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Callable, Dict, Mapping, Optional, Union

logger = logging.getLogger(__name__)

# Control files living next to the served content, never served themselves
FILEMAP_NAME = "pagejar-filemap.properties"
METADATA_NAME = "pagejar-metadata.properties"
CONTROL_FILES = frozenset({FILEMAP_NAME, METADATA_NAME})


@dataclass(frozen=True)
class ResourceMetadata:
    """What the server needs to know about a resource before sending it."""

    length: Optional[int]
    last_modified: datetime
    etag: str


class Resource:
    """
    A resource found in a store.

    Opening is deferred: a 304 answer never touches the content.
    """

    def __init__(self, path: str, metadata: ResourceMetadata, opener: Callable[[], BinaryIO]):
        self.path = path
        self.metadata = metadata
        self._opener = opener

    def open(self) -> BinaryIO:
        """Open the content as a binary stream. The caller closes it."""
        return self._opener()

    def __repr__(self) -> str:
        return f"Resource({self.path!r}, length={self.metadata.length})"


class ResourceStore(ABC):
    """
    Read-only namespace of resources.

    Implementations must be safe to call from many connection threads at
    once. Stores built on a resource that needs releasing (an open
    archive) close it in close(); every store works as a context manager.
    """

    def __init__(self):
        self._salt = str(time.time_ns()).encode("ascii")

    @abstractmethod
    def lookup(self, path: str) -> Optional[Resource]:
        """
        Find the resource behind a key.

        Args:
            path: Relative key ("presentation/index.html").

        Returns:
            The resource, or None if there is none (directories included).
        """

    def read_text(self, path: str, encoding: str = "utf-8") -> Optional[str]:
        """Read a whole resource as text, or None if it does not exist."""
        resource = self.lookup(path)
        if resource is None:
            return None
        with resource.open() as stream:
            return stream.read().decode(encoding)

    def close(self) -> None:
        """Release underlying resources. No-op by default."""

    def make_etag(self, path: str, *parts) -> str:
        """Quoted ETag over the store salt, the key and version parts."""
        digest = hashlib.md5(self._salt, usedforsecurity=False)
        digest.update(path.encode("utf-8"))
        for part in parts:
            digest.update(b"\0")
            digest.update(str(part).encode("ascii"))
        return f'"{digest.hexdigest()}"'

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class DirectoryResourceStore(ResourceStore):
    """
    Serves regular files below a directory.

    Keys are resolved against the root and must stay inside it, after
    symlinks are followed. This is the second line of defense behind
    validate_path(): "../etc/passwd" never leaves the directory even if
    it got this far.
    """

    def __init__(self, root: Union[str, Path]):
        super().__init__()
        self.root = Path(root).resolve()
        if not self.root.is_dir():
            raise NotADirectoryError(f"Not a directory: {self.root}")

    def lookup(self, path: str) -> Optional[Resource]:
        try:
            candidate = (self.root / path).resolve()
            candidate.relative_to(self.root)
        except ValueError:
            # relative_to() failed, or the key held a NUL byte
            logger.warning(f"Refusing {path!r}: outside {self.root}")
            return None

        try:
            if not candidate.is_file():
                return None
            stat = candidate.stat()
        except OSError:
            return None

        metadata = ResourceMetadata(
            length=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime, timezone.utc),
            etag=self.make_etag(path, stat.st_size, stat.st_mtime_ns),
        )
        return Resource(path, metadata, lambda: candidate.open("rb"))

    def __repr__(self) -> str:
        return f"DirectoryResourceStore({str(self.root)!r})"


class ZipResourceStore(ResourceStore):
    """
    Serves the entries of a zip (or jar) archive.

    The archive stays open for the lifetime of the store. zipfile
    serializes access to the shared file handle, so members can be read
    from several threads at once.
    """

    def __init__(self, archive: Union[str, Path]):
        super().__init__()
        self.archive = Path(archive)
        self._zip = zipfile.ZipFile(self.archive)
        self._entries: Dict[str, zipfile.ZipInfo] = {
            info.filename: info for info in self._zip.infolist() if not info.is_dir()
        }

    def lookup(self, path: str) -> Optional[Resource]:
        info = self._entries.get(path)
        if info is None:
            return None

        metadata = ResourceMetadata(
            length=info.file_size,
            last_modified=datetime(*info.date_time, tzinfo=timezone.utc),
            etag=self.make_etag(path, info.file_size, info.CRC),
        )
        return Resource(path, metadata, lambda: self._zip.open(info))

    def has_prefix(self, prefix: str) -> bool:
        """Check whether any entry lives below the directory `prefix`."""
        directory = prefix.strip("/") + "/"
        return any(name.startswith(directory) for name in self._entries)

    def close(self) -> None:
        self._zip.close()

    def __repr__(self) -> str:
        return f"ZipResourceStore({str(self.archive)!r})"


class MemoryResourceStore(ResourceStore):
    """
    Serves a fixed mapping of key → bytes.

        store = MemoryResourceStore({"index.html": b"<h1>Hi</h1>"})

    Leading slashes in keys are dropped. The mapping is copied, so later
    changes to the caller's dict are not seen.
    """

    def __init__(self, files: Mapping[str, bytes]):
        super().__init__()
        self._files = {key.lstrip("/"): bytes(data) for key, data in files.items()}
        self._created = datetime.now(timezone.utc)

    def lookup(self, path: str) -> Optional[Resource]:
        data = self._files.get(path)
        if data is None:
            return None

        metadata = ResourceMetadata(
            length=len(data),
            last_modified=self._created,
            etag=self.make_etag(path, len(data), hashlib.md5(data, usedforsecurity=False).hexdigest()),
        )
        return Resource(path, metadata, lambda: io.BytesIO(data))


def open_store(source: Union[str, Path]) -> ResourceStore:
    """
    Open the right store for a path on disk.

    Directories become a DirectoryResourceStore, zip/jar files a
    ZipResourceStore.

    Raises:
        FileNotFoundError: If the source does not exist.
        ValueError: If the source is a file but not a zip archive.
    """
    source = Path(source)
    if source.is_dir():
        return DirectoryResourceStore(source)
    if not source.exists():
        raise FileNotFoundError(f"No such file or directory: {source}")
    if not zipfile.is_zipfile(source):
        raise ValueError(f"Not a zip archive: {source}")
    return ZipResourceStore(source)


def load_properties(text: str) -> Dict[str, str]:
    """
    Parse a simple "key=value" table.

    Rules:
        - one entry per line, surrounding whitespace trimmed
        - blank lines and lines starting with "#" or "!" are comments
        - key and value are split at the first "=", or at the first ":"
          when the line has no "="
        - lines with neither are ignored

    Example:
        >>> load_properties("# map\\n/=start.html\\ntitle : Demo\\n")
        {'/': 'start.html', 'title': 'Demo'}
    """
    table: Dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line[0] in "#!":
            continue

        separator = "=" if "=" in line else ":"
        key, found, value = line.partition(separator)
        if not found:
            continue
        table[key.strip()] = value.strip()
    return table


@dataclass(frozen=True)
class PresentationMetadata:
    """Contents of the metadata control file."""

    title: Optional[str] = None
    start_page: Optional[str] = None


def load_metadata(store: ResourceStore, root_dir: str = "") -> PresentationMetadata:
    """Read the metadata control file below root_dir, if there is one."""
    text = store.read_text(_control_key(root_dir, METADATA_NAME))
    if text is None:
        return PresentationMetadata()

    table = load_properties(text)
    start_page = table.get("start-page", "").strip()
    return PresentationMetadata(
        title=table.get("title") or None,
        start_page="/" + start_page.lstrip("/") if start_page else None,
    )


def load_filemap(store: ResourceStore, root_dir: str = "") -> Dict[str, str]:
    """Read the file-map control file below root_dir as a plain dict."""
    text = store.read_text(_control_key(root_dir, FILEMAP_NAME))
    return load_properties(text) if text is not None else {}


def is_control_file(key: str, root_dir: str = "") -> bool:
    """
    Check whether a store key names one of the control files.

    The key is normalized first, so "presentation/./pagejar-filemap.properties"
    is caught as well.
    """
    normalized = posixpath.normpath(key) if key else key
    return any(normalized == _control_key(root_dir, name) for name in CONTROL_FILES)


def _control_key(root_dir: str, name: str) -> str:
    root = root_dir.strip("/")
    return f"{root}/{name}" if root else name
