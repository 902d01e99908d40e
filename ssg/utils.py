"""Utility functions for ssg.

This module contains the small string and path helpers shared by the
content model, the renderers and the build.

Key functions:
    slugify: Convert page titles to URL slugs.
    title_case: Title-case a directory name for the navigation menu.
    humanize: Turn a directory name into a readable heading.
    page_output_path: Output path of a rendered page.
    join_content_path: Join content-relative path segments.
    abs_link: Absolute URL for a site path.
    replace_extension: Swap the extension of a path.
    ensure_clean_dir: Ensure a directory exists and is empty.
"""

from __future__ import annotations

import posixpath
import re
import shutil
import unicodedata
from collections.abc import Callable
from pathlib import Path

MARKDOWN_EXTENSION = ".md"
HOME_FILENAME = "index.md"
INDEX_FILENAME = "index.html"
FEED_FILENAME = "feed.rss"

_TRANSLITERATIONS = {
    "ä": "ae",
    "ö": "oe",
    "ü": "ue",
    "ß": "ss",
}

_WORD_RE = re.compile(r"[^\W_]+(?:['’][^\W_]+)*")


def _transliterate_german(text: str) -> str:
    """Replace umlauts and eszett with their transliterations."""
    return "".join(_TRANSLITERATIONS.get(char, char) for char in text)


def slugify(title: str, replacement: str = "-") -> str:
    """Convert a title to a URL-friendly slug.

    The title is lower-cased and trimmed, German umlauts are transliterated,
    accents are dropped through NFKD decomposition, and punctuation and
    whitespace become the replacement character. Runs of the replacement
    are collapsed and stripped from both ends. Letters outside the latin
    alphabet are kept as they are.

    Args:
        title: Title to convert.
        replacement: Character used in place of punctuation and whitespace.

    Returns:
        URL-friendly slug, empty if nothing usable is left.

    Examples:
        >>> slugify("raison d'être")
        'raison-d-etre'

        >>> slugify("Straße")
        'strasse'
    """
    text = _transliterate_german(title.strip().lower())
    chars: list[str] = []
    for char in unicodedata.normalize("NFKD", text):
        category = unicodedata.category(char)
        if category.startswith("M"):
            continue
        if category.startswith("P") or char.isspace():
            chars.append(replacement)
        else:
            chars.append(char)
    slug = re.sub(f"{re.escape(replacement)}{{2,}}", replacement, "".join(chars))
    return slug.strip(replacement)


def title_case(name: str) -> str:
    """Capitalize every word of a name, lower-casing the rest of it.

    Examples:
        >>> title_case("blog")
        'Blog'

        >>> title_case("release-notes")
        'Release-Notes'
    """
    return _WORD_RE.sub(lambda match: match.group(0).capitalize(), name)


def humanize(name: str) -> str:
    """Convert a directory or file name to a human-readable title.

    Examples:
        >>> humanize("release-notes")
        'Release Notes'
    """
    words = re.split(r"[\s\-_]+", name)
    return title_case(" ".join(word for word in words if word))


def is_markdown(path: str | Path) -> bool:
    """Check if a path names a markdown file."""
    return posixpath.splitext(str(path))[1] == MARKDOWN_EXTENSION


def is_home_page(path: str) -> bool:
    """Check if a content path names a home page (``index.md``)."""
    return posixpath.basename(path) == HOME_FILENAME


def page_output_path(
    source_path: str, title: str, slugifier: Callable[[str], str] = slugify
) -> str:
    """Return the output path for a page, relative to the output root.

    Home pages become ``index.html``, every other page is named after its
    slugified title. Both stay in the directory of the source file.

    Examples:
        >>> page_output_path("blog/first.md", "First Article")
        'blog/first-article.html'

        >>> page_output_path("index.md", "Welcome")
        'index.html'
    """
    if is_home_page(source_path):
        filename = INDEX_FILENAME
    else:
        filename = slugifier(title) + ".html"
    return join_content_path(posixpath.dirname(source_path), filename)


def join_content_path(directory: str, name: str) -> str:
    """Join a content-relative directory and a name into a normalized path.

    The content root may be given as ``"."`` or as an empty string.

    Examples:
        >>> join_content_path(".", "index.html")
        'index.html'

        >>> join_content_path("blog", "feed.rss")
        'blog/feed.rss'
    """
    return posixpath.normpath(posixpath.join(directory, name))


def join_root_url(root_url: str, path: str) -> str:
    """Safely join a root URL and a path, avoiding double slashes.

    Examples:
        >>> join_root_url('https://example.com/', 'about')
        'https://example.com/about'
    """
    if not root_url:
        return path
    base = root_url.rstrip("/")
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"


def abs_link(base_url: str, path: str) -> str:
    """Return an absolute URL for a site path.

    Parent directory references are dropped, so links never leave the
    site root.

    Examples:
        >>> abs_link("https://john.doe", "./articles/some-article.html")
        'https://john.doe/articles/some-article.html'

        >>> abs_link("https://john.doe", "../../etc/passwd")
        'https://john.doe/etc/passwd'
    """
    clean = posixpath.normpath("/" + path.lstrip("/"))
    return join_root_url(base_url, clean) if base_url else clean


def replace_extension(path: str, ext: str) -> str:
    """Replace the extension of path with ext.

    The path is returned unchanged if it has no extension. ext is expected
    to start with a dot.

    Examples:
        >>> replace_extension("index.md", ".html")
        'index.html'
    """
    root, actual = posixpath.splitext(path)
    if actual:
        return root + ext
    return path


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    If the directory exists, removes all contents. Creates the
    directory if it doesn't exist.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(str(path), ignore_errors=True)
        if path.exists():
            # Fallback for stubborn directories
            for item in path.rglob("*"):
                if item.is_file():
                    item.unlink()
            for item in sorted(
                [p for p in path.rglob("*") if p.is_dir()], reverse=True
            ):
                item.rmdir()
            path.rmdir()
    path.mkdir(parents=True, exist_ok=True)
