"""Error hierarchy for ssg.

All ssg-specific errors inherit from SSGError so callers can catch them in
one place. Configuration errors are raised before any work starts,
content errors abort tree construction, build errors abort a run and
watch errors end a single watcher.
"""

from __future__ import annotations

from pathlib import PurePath


class SSGError(Exception):
    """Base error for all ssg operations."""


class ConfigError(SSGError):
    """Invalid or missing configuration."""


class Cancelled(SSGError):
    """The surrounding cancel scope was cancelled."""


class ContentError(SSGError):
    """Content tree construction failed.

    Attributes:
        source_path: Content-relative path of the offending file or directory.
        message: Human-readable error message.
    """

    def __init__(self, source_path: str | PurePath, message: str):
        self.source_path = str(source_path)
        self.message = message
        super().__init__(f"{self.source_path}: {message}")


class BuildError(SSGError):
    """Error during a build phase with file context.

    Attributes:
        phase: Name of the build phase that failed.
        source_path: Path of the item that was being processed.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        phase: str,
        source_path: str | PurePath,
        message: str,
        original_error: BaseException | None = None,
    ):
        self.phase = phase
        self.source_path = str(source_path)
        self.message = message
        self.original_error = original_error
        super().__init__(f"{phase}: {self.source_path}: {message}")


class WatchError(SSGError):
    """Walking a watched directory failed."""
