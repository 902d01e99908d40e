"""Configuration for ssg.

The configuration file is YAML, or JSON when its name ends in ``.json``::

    author: Jane Doe
    base_url: https://jane.example
    content_dir: content
    output_dir: public
    static_dir: static        # optional, defaults to the bundled theme
    templates_dir: templates  # optional, defaults to the bundled theme
    unsafe_html: false
    workers: 0                # 0 uses one worker per CPU

Relative directories are taken relative to the working directory.
Unknown keys are ignored.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

_PATH_KEYS = ("content_dir", "static_dir", "output_dir", "templates_dir")


class AuthorUnsetError(ConfigError):
    def __init__(self) -> None:
        super().__init__("author is unset")


class ContentDirUnsetError(ConfigError):
    def __init__(self) -> None:
        super().__init__("content dir is unset")


class OutputDirUnsetError(ConfigError):
    def __init__(self) -> None:
        super().__init__("output dir is unset")


@dataclass(frozen=True)
class Config:
    """Generator configuration values.

    Attributes:
        author: The website's author (required).
        base_url: Base URL used for absolute and canonical URLs.
        content_dir: Directory holding the website content (required).
        static_dir: Directory of static files copied into the website.
        output_dir: Directory the generated website is stored in (required).
        templates_dir: Directory of custom templates.
        unsafe_html: Allow raw HTML snippets in markdown.
        workers: Number of worker threads per build phase, 0 for one per CPU.
    """

    author: str = ""
    base_url: str = ""
    content_dir: Path | None = None
    static_dir: Path | None = None
    output_dir: Path | None = None
    templates_dir: Path | None = None
    unsafe_html: bool = False
    workers: int = 0

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> Config:
        """Create a configuration from a decoded mapping.

        Raises:
            ConfigError: If a value has the wrong type.
        """
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in data.items():
            if key not in known or value is None:
                continue
            if key in _PATH_KEYS:
                if not isinstance(value, str):
                    raise ConfigError(f"{key} must be a path")
                values[key] = Path(value) if value.strip() else None
            elif key == "unsafe_html":
                if not isinstance(value, bool):
                    raise ConfigError("unsafe_html must be a boolean")
                values[key] = value
            elif key == "workers":
                if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                    raise ConfigError("workers must be a non-negative integer")
                values[key] = value
            else:
                if not isinstance(value, str):
                    raise ConfigError(f"{key} must be a string")
                values[key] = value
        return cls(**values)

    def with_overrides(
        self,
        content: Path | None = None,
        static: Path | None = None,
        output: Path | None = None,
    ) -> Config:
        """Return a copy with the given directories replacing the configured ones.

        Unset overrides keep the configured value.
        """
        changes: dict[str, Any] = {}
        if content:
            changes["content_dir"] = Path(content)
        if static:
            changes["static_dir"] = Path(static)
        if output:
            changes["output_dir"] = Path(output)
        return replace(self, **changes)

    @property
    def worker_count(self) -> int:
        """Number of worker threads to use."""
        return self.workers or os.cpu_count() or 1

    def validate(self) -> None:
        """Check that the configuration is complete and usable.

        Raises:
            AuthorUnsetError: If no author is configured.
            ContentDirUnsetError: If no content directory is configured.
            OutputDirUnsetError: If no output directory is configured.
            ConfigError: If a configured directory does not exist.
        """
        if not self.author.strip():
            raise AuthorUnsetError()
        if self.content_dir is None:
            raise ContentDirUnsetError()
        _require_dir("source", self.content_dir)
        if self.output_dir is None:
            raise OutputDirUnsetError()
        _require_dir("output", self.output_dir)
        if self.static_dir is not None:
            _require_dir("static", self.static_dir)
        if self.templates_dir is not None:
            _require_dir("templates", self.templates_dir)


def _require_dir(kind: str, path: Path) -> None:
    if not path.is_dir():
        raise ConfigError(f"bad {kind} dir {str(path)!r}: not a directory")


def load_config(path: Path) -> Config:
    """Load the configuration from a YAML or JSON file.

    Files ending in ``.json`` are decoded as JSON, everything else as YAML.

    Args:
        path: Path of the configuration file.

    Returns:
        The parsed, not yet validated, configuration.

    Raises:
        ConfigError: If the file cannot be read or parsed.
    """
    try:
        with open(path, encoding="utf-8") as f:
            if Path(path).suffix == ".json":
                loaded = json.load(f)
            else:
                loaded = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigError(f"reading config {str(path)!r} failed: {exc}") from exc
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"parsing config {str(path)!r} failed: {exc}") from exc

    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"parsing config {str(path)!r} failed: expected a mapping")
    return Config.from_mapping(loaded)
