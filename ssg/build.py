"""Site building for ssg.

This module orchestrates a full build of the website. A build runs in
sequential phases, and every phase distributes its work over a bounded
pool of worker threads:

1. The content tree is scanned from the content directory.
2. Assets of the content tree and files of the static directory are copied.
3. Sections get a list page and, except for the site root, an RSS feed.
4. Every page is rendered.

Any error aborts the build. Files written before the error stay in the
output directory, which must then be treated as incomplete.

Key names:
- SiteBuilder: Runs the build phases against a renderer and a storage.
- BuildState: States a single run passes through.
- create_builder: Wire up a SiteBuilder from a configuration.
- build_site: Build the site described by a configuration.
"""

from __future__ import annotations

import enum
import functools
import io
import logging
import os
import threading
from collections.abc import Callable, Iterator
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any

from jinja2 import TemplateError, TemplateSyntaxError

from .config import Config
from .content import Asset, Directory, Page, build_content_tree, iter_nodes
from .distribute import CancelScope, Emit, one_to_n
from .errors import BuildError, Cancelled
from .feeds import FeedBuilder
from .menu import MenuEntry, build_menu
from .protocols import Renderer, Slugifier, Storage
from .renderers import MarkdownRenderer
from .storage import FileStorage
from .templates import DEFAULT_STATIC_DIR, TemplateEngine
from .utils import (
    FEED_FILENAME,
    INDEX_FILENAME,
    ensure_clean_dir,
    join_content_path,
    page_output_path,
    slugify,
)

logger = logging.getLogger(__name__)

PHASE_COPY = "copying static content failed"
PHASE_SECTIONS = "rendering sections failed"
PHASE_PAGES = "rendering pages failed"


class BuildState(enum.Enum):
    """States of a single build run.

    A run moves forward one state per completed phase. ``FAILED`` and
    ``DONE`` are terminal.
    """

    INIT = "init"
    TREE_BUILT = "tree built"
    STATIC_COPIED = "static copied"
    SECTIONS_RENDERED = "sections rendered"
    PAGES_RENDERED = "pages rendered"
    DONE = "done"
    FAILED = "failed"


@dataclass
class BuildResult:
    """Result of a site build.

    Attributes:
        tree: Content tree the site was built from.
        pages: All pages of the site.
        files_written: Number of files handed to the storage.
    """

    tree: Directory
    pages: list[Page]
    files_written: int


def _format_error_message(exc: BaseException) -> str:
    """Format an exception into a user-friendly error message."""
    if isinstance(exc, TemplateSyntaxError):
        return f"Template syntax error on line {exc.lineno}: {exc.message}"
    if isinstance(exc, TemplateError):
        return f"Template error: {exc}"
    if isinstance(exc, OSError):
        return f"{type(exc).__name__}: {exc.strerror or exc}"
    return f"{type(exc).__name__}: {exc}"


def _iter_files(root: Path) -> Iterator[str]:
    """Yield root-relative POSIX paths of all regular files below root.

    Directories are visited in name order.

    Raises:
        OSError: If a directory cannot be listed.
    """

    def on_error(exc: OSError) -> None:
        raise exc

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
        dirnames.sort()
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            if path.is_file():
                yield path.relative_to(root).as_posix()


class SiteBuilder:
    """Builds a website from a content directory.

    Attributes:
        content_dir: Root of the content tree.
        storage: Destination of all generated files.
        renderer: Turns pages and sections into HTML.
        static_dir: Optional directory whose files are copied verbatim.
        feed_builder: Serializes section feeds, no feeds are built if None.
        workers: Number of worker threads per phase.
        state: State of the current or last run.
    """

    def __init__(
        self,
        content_dir: Path,
        storage: Storage,
        renderer: Renderer,
        static_dir: Path | None = None,
        feed_builder: FeedBuilder | None = None,
        slugifier: Slugifier = slugify,
        workers: int | None = None,
    ):
        self.content_dir = Path(content_dir)
        self.storage = storage
        self.renderer = renderer
        self.static_dir = Path(static_dir) if static_dir is not None else None
        self.feed_builder = feed_builder
        self.workers = workers or os.cpu_count() or 1
        self.state = BuildState.INIT
        self._slugify = slugifier
        self._written = 0
        self._written_lock = threading.Lock()

    def run(self, parent: CancelScope | None = None) -> BuildResult:
        """Run a full build.

        Args:
            parent: Optional scope whose cancellation aborts the build.

        Returns:
            Summary of the build.

        Raises:
            ContentError: If the content tree cannot be built.
            BuildError: If copying or rendering fails.
            Cancelled: If parent was cancelled during the build.
        """
        self.state = BuildState.INIT
        self._written = 0
        scope = CancelScope(parent)
        try:
            scope.raise_if_cancelled()
            tree = build_content_tree(self.content_dir)
            self._advance(BuildState.TREE_BUILT)

            self._copy(tree, scope)
            self._advance(BuildState.STATIC_COPIED)

            site_menu = build_menu(tree)
            self._render_sections(tree, site_menu, scope)
            self._advance(BuildState.SECTIONS_RENDERED)

            self._render_pages(tree, site_menu, scope)
            self._advance(BuildState.PAGES_RENDERED)
        except BaseException:
            self.state = BuildState.FAILED
            scope.cancel()
            raise

        self._advance(BuildState.DONE)
        pages = [node for node in iter_nodes(tree) if isinstance(node, Page)]
        logger.info("built %d pages, wrote %d files", len(pages), self._written)
        return BuildResult(tree=tree, pages=pages, files_written=self._written)

    def _advance(self, state: BuildState) -> None:
        logger.info("build state %s -> %s", self.state.value, state.value)
        self.state = state

    def _store(self, name: str, content: IO[bytes]) -> None:
        self.storage.store(name, content)
        with self._written_lock:
            self._written += 1

    def _render(self, render: Callable[..., None], *args: Any) -> bytes:
        out = io.StringIO()
        render(out, *args)
        return out.getvalue().encode("utf-8")

    def _copy(self, tree: Directory, scope: CancelScope) -> None:
        """Copy assets and static files, both at the same time."""
        copy_scope = CancelScope(scope)
        jobs: list[Callable[[CancelScope], None]] = [
            functools.partial(self._copy_assets, tree)
        ]
        if self.static_dir is not None:
            jobs.append(functools.partial(self._copy_static_files, self.static_dir))

        def run_job(job: Callable[[CancelScope], None]) -> None:
            try:
                job(copy_scope)
            except BaseException:
                copy_scope.cancel()
                raise

        with ThreadPoolExecutor(
            max_workers=len(jobs), thread_name_prefix="ssg-copy"
        ) as executor:
            futures = [executor.submit(run_job, job) for job in jobs]
            wait(futures)

        errors = [f.exception() for f in futures if f.exception() is not None]
        for exc in errors:
            if not isinstance(exc, Cancelled):
                raise exc
        if errors:
            raise errors[0]

    def _copy_assets(self, tree: Directory, scope: CancelScope) -> None:
        def produce(emit: Emit, scope: CancelScope) -> None:
            for node in iter_nodes(tree):
                if isinstance(node, Asset):
                    emit(node)

        def consume(asset: Asset, scope: CancelScope) -> None:
            try:
                with open(self.content_dir / asset.path, "rb") as src:
                    self._store(asset.path, src)
            except Exception as exc:
                raise BuildError(
                    PHASE_COPY, asset.path, _format_error_message(exc), exc
                ) from exc
            logger.debug("copied asset %s", asset.path)

        one_to_n(produce, consume, self.workers, scope)

    def _copy_static_files(self, static_dir: Path, scope: CancelScope) -> None:
        def produce(emit: Emit, scope: CancelScope) -> None:
            try:
                for rel_path in _iter_files(static_dir):
                    emit(rel_path)
            except OSError as exc:
                raise BuildError(
                    PHASE_COPY, static_dir, _format_error_message(exc), exc
                ) from exc

        def consume(rel_path: str, scope: CancelScope) -> None:
            try:
                with open(static_dir / rel_path, "rb") as src:
                    self._store(rel_path, src)
            except Exception as exc:
                raise BuildError(
                    PHASE_COPY, rel_path, _format_error_message(exc), exc
                ) from exc
            logger.debug("copied static file %s", rel_path)

        one_to_n(produce, consume, self.workers, scope)

    def _render_sections(
        self, tree: Directory, site_menu: list[MenuEntry], scope: CancelScope
    ) -> None:
        """Render list pages and feeds, one unit of work per section."""

        def produce(emit: Emit, scope: CancelScope) -> None:
            for node in iter_nodes(tree):
                if isinstance(node, Directory) and node.is_section:
                    emit(node)

        def consume(directory: Directory, scope: CancelScope) -> None:
            dest = join_content_path(directory.path, INDEX_FILENAME)
            try:
                html = self._render(
                    self.renderer.render_section_list, directory, site_menu
                )
                self._store(dest, io.BytesIO(html))
                if self.feed_builder is not None and not directory.is_root:
                    dest = join_content_path(directory.path, FEED_FILENAME)
                    feed = self._build_feed(self.feed_builder, directory)
                    self._store(dest, io.BytesIO(feed))
            except Exception as exc:
                raise BuildError(
                    PHASE_SECTIONS, dest, _format_error_message(exc), exc
                ) from exc
            logger.debug("rendered section %s", directory.path)

        one_to_n(produce, consume, self.workers, scope)

    def _build_feed(self, feed_builder: FeedBuilder, directory: Directory) -> bytes:
        # Items stay local to the section, in tree order.
        items = []
        for page in directory.pages():
            if page.frontmatter.hidden:
                continue
            description = self._render(self.renderer.render_feed_item, page)
            items.append(feed_builder.item(page, description.decode("utf-8")))
        return feed_builder.build(directory, items)

    def _render_pages(
        self, tree: Directory, site_menu: list[MenuEntry], scope: CancelScope
    ) -> None:
        def produce(emit: Emit, scope: CancelScope) -> None:
            for node in iter_nodes(tree):
                if isinstance(node, Page):
                    emit(node)

        def consume(page: Page, scope: CancelScope) -> None:
            dest = page_output_path(page.path, page.name, self._slugify)
            try:
                html = self._render(self.renderer.render_page, page, site_menu)
                self._store(dest, io.BytesIO(html))
            except Exception as exc:
                raise BuildError(
                    PHASE_PAGES, page.path, _format_error_message(exc), exc
                ) from exc
            logger.debug("rendered %s -> %s", page.path, dest)

        one_to_n(produce, consume, self.workers, scope)


def create_builder(config: Config) -> SiteBuilder:
    """Create a SiteBuilder from a configuration.

    Missing static and template directories fall back to the theme that
    ships with ssg.

    Raises:
        ConfigError: If the configuration is incomplete.
        BuildError: If a template is missing or does not compile.
    """
    config.validate()
    engine = TemplateEngine(
        config.templates_dir, base_url=config.base_url, author=config.author
    )
    try:
        engine.verify()
    except TemplateError as exc:
        raise BuildError(
            "loading templates failed",
            getattr(exc, "filename", None) or engine.templates_dir,
            _format_error_message(exc),
            exc,
        ) from exc

    return SiteBuilder(
        content_dir=config.content_dir,
        storage=FileStorage(config.output_dir),
        renderer=MarkdownRenderer(engine, unsafe_html=config.unsafe_html),
        static_dir=config.static_dir or DEFAULT_STATIC_DIR,
        feed_builder=FeedBuilder(config.base_url, config.author),
        workers=config.worker_count,
    )


def build_site(
    config: Config, clean: bool = False, parent: CancelScope | None = None
) -> BuildResult:
    """Build the site described by a configuration.

    Args:
        config: Site configuration, validated before anything is written.
        clean: Empty the output directory before building.
        parent: Optional scope whose cancellation aborts the build.

    Returns:
        Summary of the build.

    Raises:
        ConfigError: If the configuration is incomplete.
    """
    config.validate()
    if clean:
        ensure_clean_dir(config.output_dir)
    return create_builder(config).run(parent)
