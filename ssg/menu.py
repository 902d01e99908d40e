"""Navigation menu derivation for ssg.

The menu is derived from the immediate children of one directory; it never
recurses. Subdirectories holding pages become directory entries, visible
pages become page entries and assets are never listed.
"""

from __future__ import annotations

from dataclasses import dataclass

from .content import Directory, Node, Page
from .utils import HOME_FILENAME, title_case

HOME_TITLE = "Home"


@dataclass(frozen=True)
class MenuEntry:
    """An entry in the navigation menu.

    Attributes:
        title: Title shown in the menu.
        path: Content path of the page file or directory.
        is_dir: True if path points to a directory.
    """

    title: str
    path: str
    is_dir: bool = False

    @property
    def is_home(self) -> bool:
        return not self.is_dir and self.path == HOME_FILENAME


def _sort_key(entry: MenuEntry) -> tuple[bool, bool, str, str]:
    # Home first, then directories, then pages; alphabetical within a group.
    return (not entry.is_home, not entry.is_dir, entry.title, entry.path)


def _menu_entry(child: Node) -> MenuEntry | None:
    if isinstance(child, Directory):
        if child.has_pages():
            return MenuEntry(title=title_case(child.name), path=child.path, is_dir=True)
        return None
    if isinstance(child, Page):
        if child.frontmatter.hidden:
            return None
        if child.path == HOME_FILENAME:
            return MenuEntry(title=HOME_TITLE, path=child.path)
        return MenuEntry(title=child.name, path=child.path)
    return None


def build_menu(directory: Directory) -> list[MenuEntry]:
    """Build the menu entries for the immediate children of a directory.

    Args:
        directory: Directory whose children are listed.

    Returns:
        Entries ordered home page first, then directories, then pages,
        each group sorted by title.
    """
    entries = [
        entry
        for entry in (_menu_entry(child) for child in directory.children)
        if entry is not None
    ]
    return sorted(entries, key=_sort_key)
