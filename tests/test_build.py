import threading

import pytest

from conftest import write_page
from ssg.build import (
    PHASE_COPY,
    PHASE_PAGES,
    BuildState,
    SiteBuilder,
    build_site,
    create_builder,
)
from ssg.config import Config, ContentDirUnsetError, OutputDirUnsetError
from ssg.distribute import CancelScope
from ssg.errors import BuildError, Cancelled, ConfigError, ContentError
from ssg.feeds import FeedBuilder
from ssg.renderers import MarkdownRenderer
from ssg.storage import FileStorage
from ssg.templates import TemplateEngine

EXPECTED_FILES = {
    "index.html",
    "about.html",
    "files/random.txt",
    "static/base.css",
    "blog/index.html",
    "blog/feed.rss",
    "blog/first-article.html",
    "blog/second-article.html",
}


def make_builder(content_dir, output_dir, static_dir=None, renderer=None, storage=None):
    engine = TemplateEngine(base_url="https://example.com", author="Jane Doe")
    return SiteBuilder(
        content_dir,
        storage or FileStorage(output_dir),
        renderer or MarkdownRenderer(engine),
        static_dir=static_dir,
        feed_builder=FeedBuilder("https://example.com", "Jane Doe"),
        workers=2,
    )


def output_files(root):
    return {p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file()}


class FailingRenderer:
    def render_page(self, out, page, site_menu):
        raise ValueError("boom")

    def render_feed_item(self, out, page):
        out.write("")

    def render_section_list(self, out, directory, site_menu):
        out.write("list")


class FailingStorage(FileStorage):
    def __init__(self, base_dir, failing_name):
        super().__init__(base_dir)
        self.failing_name = failing_name

    def store(self, name, content):
        if name == self.failing_name:
            raise PermissionError(13, "Permission denied")
        super().store(name, content)


def test_build_writes_expected_files(content_dir, static_dir, output_dir):
    builder = make_builder(content_dir, output_dir, static_dir)
    result = builder.run()

    assert output_files(output_dir) == EXPECTED_FILES
    assert result.files_written == len(EXPECTED_FILES)
    assert {page.path for page in result.pages} == {
        "index.md",
        "about.md",
        "blog/first.md",
        "blog/second.md",
    }
    assert builder.state is BuildState.DONE
    assert (output_dir / "files" / "random.txt").read_text(encoding="utf-8") == "random bytes"
    assert (output_dir / "static" / "base.css").read_text(encoding="utf-8") == "body{}"

    article = (output_dir / "blog" / "first-article.html").read_text(encoding="utf-8")
    assert "<p>The first one.</p>" in article
    assert '<a href="https://example.com/blog/index.html">Blog</a>' in article
    feed = (output_dir / "blog" / "feed.rss").read_text(encoding="utf-8")
    assert "https://example.com/blog/second-article.html" in feed


def test_build_is_deterministic(content_dir, static_dir, tmp_path):
    first = tmp_path / "first"
    second = tmp_path / "second"
    make_builder(content_dir, first, static_dir).run()
    make_builder(content_dir, second, static_dir).run()

    assert output_files(first) == output_files(second)
    for name in output_files(first):
        assert (first / name).read_bytes() == (second / name).read_bytes()


def test_root_section_gets_list_without_feed(tmp_path, output_dir):
    content = tmp_path / "flat"
    write_page(content / "a.md", "a", title="A")
    write_page(content / "b.md", "b", title="B")
    make_builder(content, output_dir).run()
    assert output_files(output_dir) == {"index.html", "a.html", "b.html"}


def test_hidden_pages_are_left_out_of_feeds(content_dir, output_dir):
    write_page(content_dir / "blog" / "draft.md", "wip", title="Draft", hidden=True)
    make_builder(content_dir, output_dir).run()
    assert (output_dir / "blog" / "draft.html").exists()
    feed = (output_dir / "blog" / "feed.rss").read_text(encoding="utf-8")
    assert "draft.html" not in feed


def test_render_failure_names_phase_and_page(content_dir, output_dir):
    builder = make_builder(content_dir, output_dir, renderer=FailingRenderer())
    with pytest.raises(BuildError) as excinfo:
        builder.run()
    assert excinfo.value.phase == PHASE_PAGES
    assert excinfo.value.source_path.endswith(".md")
    assert isinstance(excinfo.value.original_error, ValueError)
    assert builder.state is BuildState.FAILED


def test_copy_failure_aborts_build(content_dir, static_dir, output_dir):
    storage = FailingStorage(output_dir, "files/random.txt")
    builder = make_builder(content_dir, output_dir, static_dir, storage=storage)
    with pytest.raises(BuildError) as excinfo:
        builder.run()
    assert excinfo.value.phase == PHASE_COPY
    assert excinfo.value.source_path == "files/random.txt"
    assert "Permission denied" in excinfo.value.message
    assert builder.state is BuildState.FAILED
    assert not (output_dir / "index.html").exists()


def test_bad_front_matter_is_a_content_error(content_dir, output_dir):
    (content_dir / "broken.md").write_text("```json\n{oops\n```\n", encoding="utf-8")
    builder = make_builder(content_dir, output_dir)
    with pytest.raises(ContentError) as excinfo:
        builder.run()
    assert excinfo.value.source_path == "broken.md"
    assert builder.state is BuildState.FAILED
    assert output_files(output_dir) == set()


def test_cancelled_parent_aborts_build(content_dir, output_dir):
    parent = CancelScope()
    parent.cancel()
    builder = make_builder(content_dir, output_dir)
    with pytest.raises(Cancelled):
        builder.run(parent)
    assert builder.state is BuildState.FAILED


def test_concurrent_stores_are_counted(content_dir, output_dir):
    names = []
    lock = threading.Lock()

    class RecordingStorage(FileStorage):
        def store(self, name, content):
            with lock:
                names.append(name)
            super().store(name, content)

    result = make_builder(
        content_dir, output_dir, storage=RecordingStorage(output_dir)
    ).run()
    assert result.files_written == len(names) == len(set(names))


def make_config(content_dir, output_dir, **kwargs):
    return Config(
        author="Jane Doe",
        base_url="https://example.com",
        content_dir=content_dir,
        output_dir=output_dir,
        **kwargs,
    )


def test_build_site_uses_bundled_theme(content_dir, output_dir):
    (output_dir / "stale.html").write_text("old", encoding="utf-8")
    result = build_site(make_config(content_dir, output_dir, workers=1), clean=True)
    assert output_files(output_dir) == EXPECTED_FILES
    assert len(result.pages) == 4
    css = (output_dir / "static" / "base.css").read_text(encoding="utf-8")
    assert css


def test_build_site_keeps_stale_files_without_clean(content_dir, output_dir):
    (output_dir / "stale.html").write_text("old", encoding="utf-8")
    build_site(make_config(content_dir, output_dir))
    assert (output_dir / "stale.html").exists()


def test_create_builder_reports_broken_templates(content_dir, output_dir, tmp_path):
    templates = tmp_path / "templates"
    templates.mkdir()
    for name in ("base", "list", "feed"):
        (templates / f"{name}.html.jinja").write_text("", encoding="utf-8")
    (templates / "page.html.jinja").write_text("{% if %}", encoding="utf-8")

    with pytest.raises(BuildError) as excinfo:
        create_builder(make_config(content_dir, output_dir, templates_dir=templates))
    assert excinfo.value.phase == "loading templates failed"
    assert "Template syntax error" in excinfo.value.message


def test_create_builder_reports_missing_templates(content_dir, output_dir, tmp_path):
    with pytest.raises(BuildError) as excinfo:
        create_builder(make_config(content_dir, output_dir, templates_dir=tmp_path))
    assert excinfo.value.phase == "loading templates failed"


def test_unsafe_html_is_passed_to_renderer(tmp_path, output_dir):
    content = tmp_path / "content"
    write_page(content / "index.md", '<div class="raw">x</div>\n', title="Home")
    build_site(make_config(content, output_dir, unsafe_html=True))
    html = (output_dir / "index.html").read_text(encoding="utf-8")
    assert '<div class="raw">x</div>' in html


def test_render_helper_encodes_utf8(content_dir, output_dir):
    builder = make_builder(content_dir, output_dir)
    data = builder._render(lambda out, text: out.write(text), "é")
    assert data == "é".encode("utf-8")


def test_build_site_rejects_incomplete_config(content_dir, output_dir):
    with pytest.raises(OutputDirUnsetError):
        build_site(Config(author="Jane Doe", content_dir=content_dir))
    with pytest.raises(ContentDirUnsetError):
        create_builder(Config(author="Jane Doe", output_dir=output_dir))


def test_build_site_validates_before_cleaning(content_dir, output_dir, tmp_path):
    (output_dir / "keep.html").write_text("keep", encoding="utf-8")
    config = make_config(content_dir, output_dir, static_dir=tmp_path / "missing")
    with pytest.raises(ConfigError, match="bad static dir"):
        build_site(config, clean=True)
    assert (output_dir / "keep.html").exists()
