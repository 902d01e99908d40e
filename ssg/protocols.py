"""Protocol definitions for ssg.

This module defines the interfaces the build depends on. The build only
talks to these protocols, so tests can swap in in-memory storage or a
recording renderer.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import IO, TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .content import Directory, Page
    from .menu import MenuEntry


@runtime_checkable
class Renderer(Protocol):
    """Protocol for rendering pages, feed items and section lists.

    Renderers write text to the given stream. Errors are raised as they
    are and are fatal to the item being rendered.
    """

    @abstractmethod
    def render_page(
        self, out: IO[str], page: Page, site_menu: list[MenuEntry]
    ) -> None:
        """Render a single page with the site navigation."""
        ...

    @abstractmethod
    def render_feed_item(self, out: IO[str], page: Page) -> None:
        """Render a page for use as the content of a feed item."""
        ...

    @abstractmethod
    def render_section_list(
        self, out: IO[str], directory: Directory, site_menu: list[MenuEntry]
    ) -> None:
        """Render the list page of a section directory."""
        ...


@runtime_checkable
class Storage(Protocol):
    """Protocol for persisting files of the generated website.

    Implementations must accept concurrent writes to distinct names,
    create intermediate directories, reject empty names and keep every
    name inside their root.
    """

    @abstractmethod
    def store(self, name: str, content: IO[bytes]) -> None:
        """Persist content under name."""
        ...


@runtime_checkable
class Slugifier(Protocol):
    """Protocol for turning page titles into URL-safe file stems."""

    def __call__(self, title: str) -> str: ...
