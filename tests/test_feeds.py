from datetime import date
from xml.etree.ElementTree import fromstring

from ssg.content import Directory, build_content_tree
from ssg.feeds import FeedBuilder, FeedItem


def test_feed_item_for_page(content_dir):
    blog = build_content_tree(content_dir, "blog")
    builder = FeedBuilder("https://example.com/", author="Jane Doe")
    item = builder.item(blog.pages()[0], "<p>The first one.</p>")
    assert item == FeedItem(
        title="First Article",
        link="https://example.com/blog/first-article.html",
        description="<p>The first one.</p>",
        author="Jane Doe",
        pub_date=date(2021, 7, 17),
    )


def test_build_feed(content_dir):
    blog = build_content_tree(content_dir, "blog")
    builder = FeedBuilder("https://example.com", author="Jane Doe")
    items = [builder.item(page, f"<p>{page.name}</p>") for page in blog.pages()]
    data = builder.build(blog, items)

    assert data.startswith(b'<?xml version="1.0" encoding="UTF-8"?>')
    rss = fromstring(data)
    assert rss.tag == "rss"
    assert rss.get("version") == "2.0"
    channel = rss.find("channel")
    assert channel.findtext("title") == "Blog"
    assert channel.findtext("link") == "https://example.com/blog/index.html"
    assert channel.findtext("description") == "List of blog"
    assert channel.findtext("managingEditor") == "Jane Doe"

    entries = channel.findall("item")
    assert [entry.findtext("title") for entry in entries] == [
        "First Article",
        "Second Article",
    ]
    first = entries[0]
    assert first.findtext("link") == "https://example.com/blog/first-article.html"
    assert first.findtext("guid") == first.findtext("link")
    assert first.findtext("description") == "<p>First Article</p>"
    assert first.findtext("pubDate").startswith("Sat, 17 Jul 2021")


def test_feed_without_dates_or_author():
    builder = FeedBuilder()
    blog = Directory(path="notes", name="notes")
    data = builder.build(blog, [FeedItem("Note", "/notes/note.html", "<p>n</p>")])
    item = fromstring(data).find("channel/item")
    assert item.find("pubDate") is None
    assert item.find("author") is None
    assert fromstring(data).find("channel/managingEditor") is None


def test_feed_is_deterministic(content_dir):
    blog = build_content_tree(content_dir, "blog")
    builder = FeedBuilder("https://example.com", author="Jane Doe")
    items = [builder.item(page, "") for page in blog.pages()]
    assert builder.build(blog, items) == builder.build(blog, items)
