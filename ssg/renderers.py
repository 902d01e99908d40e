"""Content renderers for ssg.

This module implements the Renderer protocol on top of mistune and the
Jinja2 template engine. Markdown bodies are converted to HTML, fenced
code is highlighted with Pygments and headings get anchor ids.

Key classes:
- MarkdownRenderer: Renders pages, feed items and section lists.
"""

from __future__ import annotations

import re
from typing import IO, TYPE_CHECKING, Any

import mistune
from markupsafe import Markup, escape
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .content import sort_by_creation_date
from .menu import HOME_TITLE
from .templates import FEED_TEMPLATE, LIST_TEMPLATE, PAGE_TEMPLATE, TemplateEngine
from .utils import humanize, slugify

if TYPE_CHECKING:
    from .content import Directory, Page
    from .menu import MenuEntry

_TAG_RE = re.compile(r"<[^>]+>")

_PLUGINS = ["strikethrough", "footnotes", "table", "url", "task_lists"]


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from rendered heading text."""
    return slugify(_TAG_RE.sub("", text)) or "section"


class _HighlightRenderer(mistune.HTMLRenderer):
    """Markdown renderer with heading anchors and syntax highlighting.

    A new instance is needed for every document, the heading id counter
    is per document.
    """

    def __init__(self, escape: bool = True):
        super().__init__(escape=escape)
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        """Render a heading with a unique, auto-generated id."""
        base_id = _generate_heading_id(text)
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a code block with Pygments syntax highlighting.

        Args:
            code: The code content.
            info: Language identifier (e.g., 'python', 'go').

        Returns:
            HTML string with highlighted code. Unknown languages are
            rendered as plain escaped code.
        """
        lang = info.split()[0] if info else ""
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
                return highlight(code, lexer, formatter)
        lang_class = f' class="language-{escape(lang)}"' if lang else ""
        return f"<pre><code{lang_class}>{escape(code)}</code></pre>\n"


class MarkdownRenderer:
    """Renders markdown pages to HTML documents.

    Attributes:
        engine: Template engine used to lay out the converted markdown.
        unsafe_html: Pass raw HTML in markdown through instead of escaping it.
    """

    def __init__(self, engine: TemplateEngine, unsafe_html: bool = False):
        self.engine = engine
        self.unsafe_html = unsafe_html

    def to_html(self, markdown: str) -> Markup:
        """Convert a markdown document to HTML.

        Args:
            markdown: Markdown source.

        Returns:
            The rendered HTML, marked safe for templates.
        """
        renderer = _HighlightRenderer(escape=not self.unsafe_html)
        convert = mistune.create_markdown(renderer=renderer, plugins=_PLUGINS)
        return Markup(convert(markdown))

    def _page_context(self, page: Page, menu: list[MenuEntry]) -> dict[str, Any]:
        return {
            "title": page.frontmatter.title,
            "description": page.frontmatter.description,
            "content": self.to_html(page.markdown),
            "menu": menu,
            "page": page,
        }

    def render_page(self, out: IO[str], page: Page, site_menu: list[MenuEntry]) -> None:
        """Render a single page with the site navigation."""
        self.engine.render(PAGE_TEMPLATE, out, self._page_context(page, site_menu))

    def render_feed_item(self, out: IO[str], page: Page) -> None:
        """Render a page for the description of a feed item."""
        self.engine.render(FEED_TEMPLATE, out, self._page_context(page, []))

    def render_section_list(
        self, out: IO[str], directory: Directory, site_menu: list[MenuEntry]
    ) -> None:
        """Render the list page of a section.

        The list holds the visible pages of the directory, newest first.
        Pages without a creation date follow the dated ones.
        """
        pages = sort_by_creation_date(
            page for page in directory.pages() if not page.frontmatter.hidden
        )
        name = HOME_TITLE if directory.is_root else directory.name
        context = {
            "title": humanize(name),
            "description": f"List of {name}",
            "content": {"pages": pages, "dir": directory.path},
            "menu": site_menu,
        }
        self.engine.render(LIST_TEMPLATE, out, context)
