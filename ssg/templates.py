"""Template rendering engine for ssg.

This module uses Jinja2 to render pages, section lists and feed items.
A template directory holds four templates:

- base.html.jinja: Shared layout, extended by the page and list templates.
- page.html.jinja: A single page.
- list.html.jinja: The list page of a section.
- feed.html.jinja: A page as embedded in a feed item.

When no template directory is configured the default theme bundled with
the package is used.

Key class:
- TemplateEngine: Loads templates and installs the template helpers.
"""

from __future__ import annotations

from pathlib import Path
from typing import IO, TYPE_CHECKING, Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from .utils import (
    INDEX_FILENAME,
    abs_link,
    join_content_path,
    page_output_path,
    replace_extension,
    slugify,
)

if TYPE_CHECKING:
    from .content import Page
    from .menu import MenuEntry
    from .protocols import Slugifier

THEME_DIR = Path(__file__).parent / "theme"
DEFAULT_TEMPLATES_DIR = THEME_DIR / "templates"
DEFAULT_STATIC_DIR = THEME_DIR / "assets"

PAGE_TEMPLATE = "page.html.jinja"
LIST_TEMPLATE = "list.html.jinja"
FEED_TEMPLATE = "feed.html.jinja"

TEMPLATE_NAMES = ("base.html.jinja", PAGE_TEMPLATE, LIST_TEMPLATE, FEED_TEMPLATE)


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Templates are compiled once and may be rendered from several worker
    threads at the same time.

    Attributes:
        templates_dir: Directory the templates are loaded from.
        base_url: Base URL prepended to generated links.
        author: Site author, available to templates as ``site.author``.
        env: Jinja2 environment.
    """

    def __init__(
        self,
        templates_dir: Path | None = None,
        base_url: str = "",
        author: str = "",
        slugifier: Slugifier = slugify,
    ):
        self.templates_dir = Path(templates_dir or DEFAULT_TEMPLATES_DIR)
        self.base_url = base_url.rstrip("/")
        self.author = author
        self._slugify = slugifier
        self.env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=select_autoescape(["html", "xml", "html.jinja"]),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        self._install_globals()

    def _install_globals(self) -> None:
        """Install the site data and helper functions in the environment."""
        self.env.globals["site"] = {"author": self.author, "base_url": self.base_url}
        self.env.globals["page_link"] = self.page_link
        self.env.globals["menu_link"] = self.menu_link
        self.env.globals["abs_link"] = self.abs_link
        self.env.globals["replace_extension"] = replace_extension
        self.env.globals["pygments_css"] = self._pygments_css

    @staticmethod
    def _pygments_css() -> str:
        """Return Pygments CSS styles for the .highlight class."""
        from pygments.formatters import HtmlFormatter

        return HtmlFormatter().get_style_defs(".highlight")

    def abs_link(self, path: str) -> str:
        """Return the absolute URL of a site path."""
        return abs_link(self.base_url, path)

    def page_link(self, page: Page) -> str:
        """Return the absolute URL of a rendered page.

        Examples:
            A page at ``blog/first.md`` titled "First Article" links to
            ``<base_url>/blog/first-article.html``.
        """
        return self.abs_link(page_output_path(page.path, page.name, self._slugify))

    def menu_link(self, entry: MenuEntry) -> str:
        """Return the absolute URL a navigation menu entry points to."""
        if entry.is_dir:
            return self.abs_link(join_content_path(entry.path, INDEX_FILENAME))
        return self.abs_link(page_output_path(entry.path, entry.title, self._slugify))

    def verify(self) -> None:
        """Load every template once so missing or broken ones fail early.

        Raises:
            jinja2.TemplateNotFound: If a template is missing.
            jinja2.TemplateSyntaxError: If a template does not compile.
        """
        for name in TEMPLATE_NAMES:
            self.env.get_template(name)

    def render(self, name: str, out: IO[str], context: dict[str, Any]) -> None:
        """Render the named template into a text stream.

        Args:
            name: Template file name.
            out: Stream the output is written to.
            context: Variables available to the template.
        """
        self.env.get_template(name).stream(context).dump(out)

