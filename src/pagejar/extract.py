"""
Extract the presentation directory of an archive to disk.

    talk.zip                               target/
    ├── presentation/index.html     ──►    ├── index.html
    ├── presentation/img/logo.svg   ──►    └── img/logo.svg
    └── META-INF/MANIFEST.MF               (outside the root: skipped)

Existing files are only replaced with force=True. Entries whose name
would land outside the target directory ("../x", "/etc/x") are refused.
"""

import logging
import shutil
import zipfile
from pathlib import Path
from typing import List, Union

logger = logging.getLogger(__name__)

PRESENTATION_DIR = "presentation"


class ExtractError(Exception):
    """Extraction refused or impossible; nothing more is written."""


def extract_archive(
    archive: Union[str, Path],
    target: Union[str, Path],
    root_dir: str = PRESENTATION_DIR,
    force: bool = False,
) -> List[Path]:
    """
    Extract the entries below `root_dir` into `target`.

    Args:
        archive: Zip or jar file.
        target: Destination directory; created if missing.
        root_dir: Directory inside the archive to extract. "" extracts
                  everything.
        force: Overwrite files that already exist.

    Returns:
        The files written, in archive order.

    Raises:
        ExtractError: If the archive has nothing below root_dir, a file
                      exists and force is False, or an entry escapes target.
        OSError: On I/O failures.
    """
    prefix = root_dir.strip("/") + "/" if root_dir.strip("/") else ""
    target = Path(target)

    with zipfile.ZipFile(archive) as zf:
        entries = [info for info in zf.infolist() if info.filename.startswith(prefix)]
        if not entries:
            raise ExtractError(f"{archive} doesn't contain a presentation in {root_dir!r}")

        target.mkdir(parents=True, exist_ok=True)
        base = target.resolve()
        written: List[Path] = []

        for info in entries:
            relative = info.filename[len(prefix):]
            if not relative:
                continue

            destination = (base / relative).resolve()
            try:
                destination.relative_to(base)
            except ValueError:
                raise ExtractError(f"Entry escapes the target directory: {info.filename}") from None

            if info.is_dir():
                destination.mkdir(parents=True, exist_ok=True)
                continue

            if destination.exists() and not force:
                raise ExtractError(f"File exists -- use '-f' to overwrite: {destination}")

            logger.info(f"Extracting to {destination}")
            destination.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(info) as source, open(destination, "wb") as sink:
                shutil.copyfileobj(source, sink)
            written.append(destination)

    return written
