"""
Unit tests for request path validation and resolution.
"""

import pytest

from pagejar.http.paths import (
    DEFAULT_DOCUMENT,
    AliasTable,
    PathResolver,
    PathViolation,
    validate_path,
)


class TestValidatePath:
    """Tests for the traversal depth check."""

    @pytest.mark.parametrize("path", [
        "/",
        "/index.html",
        "/a/../b.html",
        "/../etc/passwd",
        "/a/b/../../c",
        "//x",
        "/./../x",
    ])
    def test_accepted(self, path: str):
        """Test paths that never climb above the root."""
        assert validate_path(path) == path

    @pytest.mark.parametrize("path", [
        "..",
        "../x",
        "/a/../../../x",
        "/../../etc/passwd",
    ])
    def test_rejected(self, path: str):
        """Test paths whose depth goes negative."""
        with pytest.raises(PathViolation) as excinfo:
            validate_path(path)

        assert excinfo.value.path == path

    def test_violation_is_value_error(self):
        """Test the exception hierarchy."""
        assert issubclass(PathViolation, ValueError)


class TestAliasTable:
    """Tests for AliasTable."""

    def test_normalizes_slashes(self):
        """Test that both sides get exactly one leading slash."""
        aliases = AliasTable({"deck": "slides/v2.html", "//old": "/new.html"})

        assert aliases["/deck"] == "/slides/v2.html"
        assert aliases["/old"] == "/new.html"
        assert len(aliases) == 2

    def test_from_properties(self):
        """Test loading from key=value text."""
        aliases = AliasTable.from_properties(
            "# file map\n"
            "/ = start.html\n"
            "\n"
            "deck=slides/v2.html\n"
        )

        assert dict(aliases) == {"/": "/start.html", "/deck": "/slides/v2.html"}

    def test_is_read_only(self):
        """Test that the table cannot be changed."""
        aliases = AliasTable({"/a": "/b"})

        with pytest.raises(TypeError):
            aliases["/c"] = "/d"

    def test_empty(self):
        """Test the empty table."""
        assert AliasTable().get("/") is None


class TestPathResolver:
    """Tests for PathResolver."""

    def test_plain_path(self):
        """Test that a plain path maps to a relative key."""
        assert PathResolver().resolve("/css/deck.css") == "css/deck.css"

    def test_root_dir_prefix(self):
        """Test that keys are prefixed with the root directory."""
        resolver = PathResolver(root_dir="/presentation/")

        assert resolver.resolve("/img/a.png") == "presentation/img/a.png"

    def test_default_document(self):
        """Test that "/" maps to the default document."""
        resolver = PathResolver()

        assert DEFAULT_DOCUMENT == "/index.html"
        assert resolver.resolve("/") == resolver.resolve("/index.html") == "index.html"

    def test_custom_default_document(self):
        """Test a start page from the metadata file."""
        resolver = PathResolver(default_document="start.html")

        assert resolver.resolve("/") == "start.html"

    def test_alias_wins_over_default_document(self):
        """Test that an alias for "/" beats the default document."""
        resolver = PathResolver(AliasTable({"/": "/intro.html"}))

        assert resolver.resolve("/") == "intro.html"
        assert resolver.resolve("/index.html") == "index.html"

    def test_default_document_can_be_aliased(self):
        """Test that the default document goes through the aliases too."""
        resolver = PathResolver(AliasTable({"/index.html": "/v2/index.html"}))

        assert resolver.resolve("/") == "v2/index.html"

    def test_alias_with_root_dir(self):
        """Test that alias targets are under the root directory."""
        resolver = PathResolver(AliasTable({"/deck": "slides.html"}), root_dir="presentation")

        assert resolver.resolve("/deck") == "presentation/slides.html"

    def test_traversal_raises(self):
        """Test that resolution validates first."""
        with pytest.raises(PathViolation):
            PathResolver().resolve("/a/../../../x")

    @pytest.mark.parametrize("path,key", [
        ("/./pagejar-metadata.properties", "presentation/pagejar-metadata.properties"),
        ("//pagejar-filemap.properties", "presentation/pagejar-filemap.properties"),
        ("/img/../pagejar-filemap.properties", "presentation/pagejar-filemap.properties"),
        ("/css//deck.css", "presentation/css/deck.css"),
        ("/a/./b/../c.html", "presentation/a/c.html"),
    ])
    def test_keys_are_normalized(self, path: str, key: str):
        """Test that dot segments and doubled slashes collapse in the key."""
        assert PathResolver(root_dir="presentation").resolve(path) == key

    @pytest.mark.parametrize("path", ["/../private.txt", "/../../etc/passwd", "/img/../../x"])
    def test_key_cannot_leave_root_dir(self, path: str):
        """Test that paths passing the depth count still stay below root_dir."""
        with pytest.raises(PathViolation):
            PathResolver(root_dir="docs").resolve(path)

    def test_key_cannot_leave_store_root(self):
        """Test the same check without a root directory."""
        with pytest.raises(PathViolation):
            PathResolver().resolve("/../private.txt")

    def test_alias_target_is_checked(self):
        """Test that alias targets are normalized and confined too."""
        resolver = PathResolver(AliasTable({"/up": "/../outside.html"}), root_dir="docs")

        with pytest.raises(PathViolation):
            resolver.resolve("/up")
