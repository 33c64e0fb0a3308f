"""
=============================================================================
REQUEST PATH RESOLUTION
=============================================================================

Turns a decoded request path into the key a ResourceStore is asked for.

    request path ──► validate_path ──► alias table ──► default document
                          │                 │                 │
                     PathViolation     "/deck" →        "/" → "/index.html"
                        (400)         "/v2.html"       (then aliases again)
                                                              │
                                                              ▼
                                              root_dir + path, no leading "/"
                                              "presentation/index.html"

=============================================================================
TRAVERSAL CHECK
=============================================================================

Every segment between slashes moves one level down, ".." moves one
level up. Going above level 0 is a violation:

    /a/../b            "" a .. b       0→1→2→1→2     ok
    /../etc/passwd     "" .. etc ...   0→1→0→1→2     ok here, refused by key_for()
    ../x               .. x            0→-1          VIOLATION
    /a/../../../x      "" a .. .. ..   0→1→2→1→0→-1  VIOLATION

Empty segments (leading or doubled slashes) and "." count as a level
down. This is the first of three guards:

    1. validate_path()       depth never below zero
    2. PathResolver.key_for  normalized key must stay below root_dir
    3. DirectoryResourceStore refuses anything resolving outside its root

=============================================================================
"""

import logging
import posixpath
from types import MappingProxyType
from typing import Iterator, Mapping, Optional

from ..resources.store import load_properties

logger = logging.getLogger(__name__)

DEFAULT_DOCUMENT = "/index.html"


class PathViolation(ValueError):
    """A request path tried to climb above the served root."""

    def __init__(self, path: str):
        super().__init__(f"Path escapes the served root: {path!r}")
        self.path = path


def validate_path(path: str) -> str:
    """
    Check a decoded request path against directory traversal.

    Args:
        path: Decoded request path ("/a/../b.html").

    Returns:
        The path, unchanged.

    Raises:
        PathViolation: If the running depth ever drops below zero.
    """
    depth = 0
    for segment in path.split("/"):
        if segment == "..":
            depth -= 1
            if depth < 0:
                raise PathViolation(path)
        else:
            depth += 1
    return path


def _with_leading_slash(path: str) -> str:
    return "/" + path.strip().lstrip("/")


class AliasTable(Mapping[str, str]):
    """
    Read-only mapping from request path to target path.

    Both sides are normalized to exactly one leading slash, so a table
    line "deck=slides/v2.html" maps "/deck" to "/slides/v2.html".

        >>> aliases = AliasTable({"/": "start.html"})
        >>> aliases["/"]
        '/start.html'
    """

    def __init__(self, entries: Optional[Mapping[str, str]] = None):
        normalized = {
            _with_leading_slash(key): _with_leading_slash(value)
            for key, value in (entries or {}).items()
        }
        self._entries = MappingProxyType(normalized)

    @classmethod
    def from_properties(cls, text: str) -> "AliasTable":
        """Build a table from "key=value" lines (see load_properties)."""
        return cls(load_properties(text))

    def __getitem__(self, key: str) -> str:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"AliasTable({dict(self._entries)!r})"


class PathResolver:
    """
    Maps validated request paths to resource store keys.

    Built once per server; holds only read-only state, so every
    connection thread shares one instance.

    Example:
        resolver = PathResolver(AliasTable({"/": "/intro.html"}),
                                root_dir="presentation")
        resolver.resolve("/")           # "presentation/intro.html"
        resolver.resolve("/img/a.png")  # "presentation/img/a.png"
    """

    def __init__(
        self,
        aliases: Optional[Mapping[str, str]] = None,
        default_document: str = DEFAULT_DOCUMENT,
        root_dir: str = "",
    ):
        self.aliases = aliases if aliases is not None else AliasTable()
        self.default_document = _with_leading_slash(default_document)
        self.root_dir = root_dir.strip("/")

    def resolve(self, path: str) -> str:
        """
        Validate a request path and map it to a store key.

        The alias table is asked first with the path as requested, so an
        alias for "/" wins over the default document. On a miss, "/" is
        replaced by the default document, which may itself be aliased.

        Raises:
            PathViolation: If the path fails the traversal check, or its
                           key would leave the root directory.
        """
        validate_path(path)

        target = self.aliases.get(path)
        if target is None:
            if path == "/":
                path = self.default_document
            target = self.aliases.get(path, path)

        key = self.key_for(target)
        logger.debug(f"Resolved {path} -> {key}")
        return key

    def key_for(self, path: str) -> str:
        """
        Store key of a slash-rooted path, prefixed with the root dir.

        The key is normalized ("a/./b", "a//b", "a/x/../b" all become
        "a/b"), so stores and the control file check see the same name.

            "/../private.txt"  ──►  "../private.txt"  ──►  PathViolation

        Raises:
            PathViolation: If the normalized path climbs out of the root.
        """
        relative = posixpath.normpath(path.lstrip("/") or ".")
        if relative == ".." or relative.startswith("../"):
            raise PathViolation(path)
        if relative == ".":
            relative = ""
        if not self.root_dir:
            return relative
        return f"{self.root_dir}/{relative}"
