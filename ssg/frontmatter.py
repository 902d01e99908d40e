"""Front-matter parsing for ssg.

Page metadata lives in a fenced block at the very start of a markdown
document. The opening fence carries the format of the block::

    ```json
    {"title": "Hello", "created_at": "2021-07-17"}
    ```
    # Markdown body starts here

The reader consumes the stream line by line and stops right after the
closing fence, so whatever is left in the stream is the page body.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import date, datetime
from typing import IO, Any

import yaml

# Fence delimits front-matter blocks.
FENCE = "```"

# Layout of date-only values such as created_at.
SIMPLE_DATE_FORMAT = "%Y-%m-%d"


class FrontMatterError(ValueError):
    """Base class for front-matter errors."""


class NoFrontMatterError(FrontMatterError):
    """The content began without a front-matter."""


class UnsupportedFormatError(FrontMatterError):
    """The front-matter uses an unsupported format."""


class BadFrontMatterError(FrontMatterError):
    """The front-matter is incomplete or not decodable."""


def _decode_json(data: str) -> Any:
    return json.loads(data)


def _decode_yaml(data: str) -> Any:
    return yaml.safe_load(data)


_DECODERS: dict[str, Callable[[str], Any]] = {
    "json": _decode_json,
    "yaml": _decode_yaml,
    "yml": _decode_yaml,
}


def supported_formats() -> list[str]:
    """Return the format tags accepted on the opening fence."""
    return sorted(_DECODERS)


def _read_line(stream: IO[bytes]) -> str:
    raw = stream.readline()
    if not raw:
        raise BadFrontMatterError("unexpected end of input")
    try:
        return raw.decode("utf-8").rstrip("\r\n")
    except UnicodeDecodeError as exc:
        raise BadFrontMatterError(f"front-matter is not valid UTF-8: {exc}") from exc


def read_frontmatter(stream: IO[bytes]) -> dict[str, Any]:
    """Read a front-matter block from the start of a binary stream.

    Reading stops after the closing fence, leaving the stream positioned
    at the first byte of the document body.

    Args:
        stream: Binary stream positioned at the start of a document.

    Returns:
        The decoded metadata mapping.

    Raises:
        NoFrontMatterError: The document does not start with a fence.
        UnsupportedFormatError: The opening fence names an unknown format.
        BadFrontMatterError: The block is truncated or cannot be decoded.
    """
    fmt: str | None = None
    lines: list[str] = []

    while True:
        line = _read_line(stream)
        if line.strip() == FENCE:
            break
        if line.startswith(FENCE):
            fmt = line[len(FENCE) :].strip()
        elif fmt is None:
            raise NoFrontMatterError("content starts without a front-matter")
        else:
            lines.append(line)

    decoder = _DECODERS.get(fmt or "")
    if decoder is None:
        raise UnsupportedFormatError(
            f"cannot decode {fmt or ''!r} front-matter, "
            f"supported formats: {', '.join(supported_formats())}"
        )

    try:
        data = decoder("\n".join(lines))
    except (ValueError, yaml.YAMLError) as exc:
        raise BadFrontMatterError(f"decoding {fmt} front-matter failed: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BadFrontMatterError(
            f"front-matter must be a mapping, got {type(data).__name__}"
        )
    return data


def parse_simple_date(value: Any) -> date:
    """Parse a date-only value such as ``2021-07-17``.

    YAML already turns unquoted dates into date objects, so those are
    accepted as they are.

    Raises:
        BadFrontMatterError: If the value is not a valid date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.strptime(value.strip(), SIMPLE_DATE_FORMAT).date()
        except ValueError as exc:
            raise BadFrontMatterError(f"invalid date {value!r}: {exc}") from exc
    raise BadFrontMatterError(f"invalid date {value!r}")
