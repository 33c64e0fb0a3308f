"""
Unit tests for archive extraction.
"""

import zipfile
from pathlib import Path

import pytest

from pagejar.extract import ExtractError, extract_archive


def make_archive(path: Path, entries: dict) -> Path:
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return path


@pytest.fixture
def archive(tmp_path: Path) -> Path:
    return make_archive(tmp_path / "talk.zip", {
        "META-INF/MANIFEST.MF": "Manifest-Version: 1.0\n",
        "presentation/": "",
        "presentation/index.html": "<h1>Talk</h1>",
        "presentation/img/": "",
        "presentation/img/logo.svg": "<svg/>",
    })


class TestExtractArchive:
    """Tests for extract_archive()."""

    def test_extracts_presentation_dir(self, archive: Path, tmp_path: Path):
        """Test that only entries below the root are written."""
        target = tmp_path / "out"

        written = extract_archive(archive, target)

        assert (target / "index.html").read_text() == "<h1>Talk</h1>"
        assert (target / "img" / "logo.svg").read_text() == "<svg/>"
        assert not (target / "META-INF").exists()
        assert len(written) == 2

    def test_whole_archive(self, archive: Path, tmp_path: Path):
        """Test that an empty root extracts everything."""
        target = tmp_path / "out"

        extract_archive(archive, target, root_dir="")

        assert (target / "META-INF" / "MANIFEST.MF").exists()
        assert (target / "presentation" / "index.html").exists()

    def test_no_presentation(self, tmp_path: Path):
        """Test an archive without the root directory."""
        path = make_archive(tmp_path / "other.zip", {"readme.txt": "hi"})

        with pytest.raises(ExtractError):
            extract_archive(path, tmp_path / "out")

    def test_refuses_overwrite(self, archive: Path, tmp_path: Path):
        """Test that existing files are kept without force."""
        target = tmp_path / "out"
        target.mkdir()
        (target / "index.html").write_text("mine")

        with pytest.raises(ExtractError, match="-f"):
            extract_archive(archive, target)

        assert (target / "index.html").read_text() == "mine"

    def test_force_overwrites(self, archive: Path, tmp_path: Path):
        """Test that force replaces existing files."""
        target = tmp_path / "out"
        target.mkdir()
        (target / "index.html").write_text("mine")

        extract_archive(archive, target, force=True)

        assert (target / "index.html").read_text() == "<h1>Talk</h1>"

    def test_refuses_escaping_entries(self, tmp_path: Path):
        """Test that an entry cannot land outside the target."""
        path = make_archive(tmp_path / "evil.zip", {"presentation/../../evil.txt": "x"})

        with pytest.raises(ExtractError):
            extract_archive(path, tmp_path / "out")

        assert not (tmp_path / "evil.txt").exists()
