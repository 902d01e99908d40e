"""Output storage for ssg.

FileStorage persists generated files below a base directory. Destination
names are normalized against the base directory, so parent directory
references can never escape it.
"""

from __future__ import annotations

import posixpath
import shutil
from pathlib import Path
from typing import IO

from .errors import SSGError


class EmptyNameError(SSGError, ValueError):
    """Destination name must not be empty."""

    def __init__(self) -> None:
        super().__init__("name must not be empty")


class FileStorage:
    """Persists files to a local directory.

    Safe for concurrent use as long as writers use distinct names.

    Attributes:
        base_dir: Root directory of the generated website.
    """

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)

    def destination(self, name: str) -> Path:
        """Return the filesystem path a name is stored at.

        Raises:
            EmptyNameError: If name is empty or blank.
        """
        if not name.strip():
            raise EmptyNameError()
        # Normalizing an absolute path drops all parent directory references.
        clean = posixpath.normpath("/" + name.lstrip("/"))
        return self.base_dir / clean.lstrip("/")

    def store(self, name: str, content: IO[bytes]) -> None:
        """Stream content into the file called name.

        Intermediate directories are created as needed and an existing file
        is overwritten.

        Args:
            name: Destination path relative to the base directory.
            content: Binary stream to copy.

        Raises:
            EmptyNameError: If name is empty or blank.
            OSError: If the file cannot be written.
        """
        dest = self.destination(name)
        dest.parent.mkdir(parents=True, exist_ok=True)
        with open(dest, "wb") as f:
            shutil.copyfileobj(content, f)
