"""Content tree for ssg.

This module builds an in-memory model of the content directory. The tree
is scanned once per build, is never mutated afterwards and has no ties to
the filesystem once it is built.

Key names:
- FrontMatter: Decoded page metadata.
- Directory, Page, Asset: The three kinds of tree nodes.
- Node: Union of the node kinds.
- build_content_tree: Scan a content directory into a tree.
"""

from __future__ import annotations

import logging
import os
import posixpath
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Union

from .errors import ContentError
from .frontmatter import (
    BadFrontMatterError,
    FrontMatterError,
    parse_simple_date,
    read_frontmatter,
)
from .utils import is_home_page, is_markdown, join_content_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrontMatter:
    """Metadata of a page.

    Attributes:
        author: Author of the page.
        title: Title of the page.
        description: Short abstract of the page.
        created_at: When the page was written, if known.
        tags: Words categorizing the page.
        hidden: Excludes the page from menus, lists and feeds.
    """

    author: str = ""
    title: str = ""
    description: str = ""
    created_at: date | None = None
    tags: tuple[str, ...] = ()
    hidden: bool = False

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> FrontMatter:
        """Build front matter from a decoded metadata mapping.

        Unknown keys are ignored.

        Raises:
            BadFrontMatterError: If a known key has a value of the wrong type.
        """
        strings = {}
        for key in ("author", "title", "description"):
            value = data.get(key)
            if value is None:
                value = ""
            if not isinstance(value, str):
                raise BadFrontMatterError(f"{key} must be a string")
            strings[key] = value

        created_at = data.get("created_at")
        tags = data.get("tags") or []
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            raise BadFrontMatterError("tags must be a list of strings")
        hidden = data.get("hidden", False)
        if not isinstance(hidden, bool):
            raise BadFrontMatterError("hidden must be a boolean")

        return cls(
            created_at=parse_simple_date(created_at) if created_at is not None else None,
            tags=tuple(tags),
            hidden=hidden,
            **strings,
        )


@dataclass(frozen=True)
class Asset:
    """A regular file that is not markdown.

    Its bytes are streamed at copy time and never held in the tree.
    """

    path: str
    name: str

    @property
    def children(self) -> tuple[Node, ...]:
        return ()

    def walk(self, fn: Callable[[Node], None]) -> None:
        fn(self)


@dataclass(frozen=True)
class Page:
    """A markdown page with its decoded front matter and raw body.

    Attributes:
        path: Content-relative path of the source file, ending in ``.md``.
        frontmatter: Decoded page metadata.
        markdown: Markdown body following the front matter.
    """

    path: str
    frontmatter: FrontMatter
    markdown: str

    @property
    def name(self) -> str:
        """Pages are named by their front matter title, not their filename."""
        return self.frontmatter.title

    @property
    def filename(self) -> str:
        return posixpath.basename(self.path)

    @property
    def directory(self) -> str:
        return posixpath.dirname(self.path) or "."

    @property
    def is_home(self) -> bool:
        return is_home_page(self.path)

    @property
    def children(self) -> tuple[Node, ...]:
        return ()

    def walk(self, fn: Callable[[Node], None]) -> None:
        fn(self)


@dataclass(frozen=True)
class Directory:
    """A directory of the content tree.

    Children appear in scan order. Code that needs a particular order,
    like menus and list pages, sorts explicitly.
    """

    path: str
    name: str
    children: tuple[Node, ...] = field(default=())

    def walk(self, fn: Callable[[Node], None]) -> None:
        """Call fn on this directory, then depth-first on every child."""
        fn(self)
        for child in self.children:
            child.walk(fn)

    def pages(self) -> list[Page]:
        """Return the pages among the immediate children."""
        return [child for child in self.children if isinstance(child, Page)]

    def subdirectories(self) -> list[Directory]:
        return [child for child in self.children if isinstance(child, Directory)]

    def has_pages(self) -> bool:
        return any(isinstance(child, Page) for child in self.children)

    def has_home_page(self) -> bool:
        return any(isinstance(child, Page) and child.is_home for child in self.children)

    @property
    def is_section(self) -> bool:
        """A section has pages but no home page of its own."""
        return self.has_pages() and not self.has_home_page()

    @property
    def is_root(self) -> bool:
        return self.path == "."


Node = Union[Directory, Page, Asset]


def iter_nodes(node: Node) -> Iterator[Node]:
    """Yield node and all of its descendants, depth-first in child order."""
    yield node
    for child in node.children:
        yield from iter_nodes(child)


def sort_by_creation_date(pages: Iterable[Page]) -> list[Page]:
    """Sort pages newest first.

    Pages without a creation date keep their relative order and follow
    all dated pages.
    """
    return sorted(
        pages,
        key=lambda page: (
            page.frontmatter.created_at is None,
            -(page.frontmatter.created_at or date.min).toordinal(),
        ),
    )


def _read_page(source: Path, rel_path: str) -> Page:
    """Read front matter and markdown body of a page."""
    try:
        with open(source, "rb") as f:
            metadata = read_frontmatter(f)
            body = f.read()
    except FrontMatterError as exc:
        raise ContentError(rel_path, f"front-matter parsing failed: {exc}") from exc
    except OSError as exc:
        raise ContentError(rel_path, f"reading page failed: {exc}") from exc

    try:
        frontmatter = FrontMatter.from_mapping(metadata)
        markdown = body.decode("utf-8")
    except FrontMatterError as exc:
        raise ContentError(rel_path, f"front-matter parsing failed: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ContentError(rel_path, f"content is not valid UTF-8: {exc}") from exc

    return Page(path=rel_path, frontmatter=frontmatter, markdown=markdown)


def _scan_directory(root: Path, rel_path: str, name: str) -> Directory:
    source = root / rel_path
    try:
        entries = sorted(os.scandir(source), key=lambda entry: entry.name)
    except OSError as exc:
        raise ContentError(rel_path, f"listing directory failed: {exc}") from exc

    children: list[Node] = []
    for entry in entries:
        child_path = join_content_path(rel_path, entry.name)
        try:
            # Directory links are never followed, file links count as files.
            is_dir = entry.is_dir(follow_symlinks=False)
            is_file = not is_dir and entry.is_file()
        except OSError as exc:
            raise ContentError(child_path, f"stat failed: {exc}") from exc

        if is_dir:
            children.append(_scan_directory(root, child_path, entry.name))
        elif not is_file:
            logger.debug("skipping special file %s", child_path)
        elif is_markdown(entry.name):
            children.append(_read_page(Path(entry.path), child_path))
        else:
            children.append(Asset(path=child_path, name=entry.name))

    return Directory(path=rel_path, name=name, children=tuple(children))


def build_content_tree(root: Path, start: str = ".") -> Directory:
    """Scan a content directory into a content tree.

    The scan is a single-threaded, depth-first descent. Subdirectories
    become Directory nodes, ``.md`` files are parsed into Pages and all
    other regular files become Assets. Entries are visited in name order.
    Symbolic links to directories are skipped, links to files are read
    like the files they point to.

    Args:
        root: Content root directory.
        start: Root-relative directory to start scanning at.

    Returns:
        The Directory node for start.

    Raises:
        ContentError: If any directory cannot be listed or any page cannot
            be read or parsed. No partial tree is returned.
    """
    rel_path = posixpath.normpath(start)
    tree = _scan_directory(Path(root), rel_path, posixpath.basename(rel_path) or rel_path)
    logger.debug("scanned content tree at %s", root)
    return tree
