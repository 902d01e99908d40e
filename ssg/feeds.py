"""Feed generation for ssg.

Every section except the site root gets an RSS 2.0 feed listing its
visible pages. Feeds carry no build timestamp, so building unchanged
content twice produces byte-identical feeds.

Classes:
    FeedItem: One entry of a feed.
    FeedBuilder: Serializes the feed of a section.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING
from xml.etree.ElementTree import Element, SubElement, indent, tostring

from .utils import INDEX_FILENAME, abs_link, humanize, page_output_path, slugify

if TYPE_CHECKING:
    from .content import Directory, Page
    from .protocols import Slugifier

RSS_VERSION = "2.0"

_PUB_DATE_FORMAT = "%a, %d %b %Y %H:%M:%S +0000"


@dataclass(frozen=True)
class FeedItem:
    """An entry of a feed.

    Attributes:
        title: Title of the page.
        link: Absolute URL of the rendered page.
        description: The page rendered through the feed template.
        author: Author of the page.
        pub_date: Creation date of the page, if known.
    """

    title: str
    link: str
    description: str
    author: str = ""
    pub_date: date | None = None


class FeedBuilder:
    """Builds RSS 2.0 feeds for sections.

    Attributes:
        base_url: Base URL used for absolute links.
        author: Fallback author for pages that name none.
    """

    def __init__(
        self,
        base_url: str = "",
        author: str = "",
        slugifier: Slugifier = slugify,
    ):
        self.base_url = base_url.rstrip("/")
        self.author = author
        self._slugify = slugifier

    def item(self, page: Page, description: str) -> FeedItem:
        """Create the feed item of a page.

        Args:
            page: Page the item points to.
            description: HTML of the page rendered for the feed.
        """
        link = abs_link(
            self.base_url, page_output_path(page.path, page.name, self._slugify)
        )
        return FeedItem(
            title=page.frontmatter.title,
            link=link,
            description=description,
            author=page.frontmatter.author or self.author,
            pub_date=page.frontmatter.created_at,
        )

    def build(self, directory: Directory, items: Iterable[FeedItem]) -> bytes:
        """Serialize the feed of a section.

        Items are written in the order given.

        Args:
            directory: The section directory.
            items: Feed items of the visible pages of the section.

        Returns:
            UTF-8 encoded RSS document.
        """
        rss = Element("rss", version=RSS_VERSION)
        channel = SubElement(rss, "channel")
        SubElement(channel, "title").text = humanize(directory.name)
        SubElement(channel, "link").text = abs_link(
            self.base_url, f"{directory.path}/{INDEX_FILENAME}"
        )
        SubElement(channel, "description").text = f"List of {directory.name}"
        if self.author:
            SubElement(channel, "managingEditor").text = self.author

        for feed_item in items:
            element = SubElement(channel, "item")
            SubElement(element, "title").text = feed_item.title
            SubElement(element, "link").text = feed_item.link
            SubElement(element, "guid").text = feed_item.link
            SubElement(element, "description").text = feed_item.description
            if feed_item.author:
                SubElement(element, "author").text = feed_item.author
            if feed_item.pub_date is not None:
                SubElement(element, "pubDate").text = feed_item.pub_date.strftime(
                    _PUB_DATE_FORMAT
                )

        indent(rss)
        xml = tostring(rss, encoding="unicode")
        return ('<?xml version="1.0" encoding="UTF-8"?>\n' + xml + "\n").encode("utf-8")
