"""Fetching and parsing RSS feeds."""

from __future__ import annotations

import html
import urllib.error
import urllib.request
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

USER_AGENT = "gator"
DEFAULT_TIMEOUT = 10.0


@dataclass
class RSSItem:
    """One entry of a feed."""

    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = ""


@dataclass
class RSSFeed:
    """The channel of a feed and its items."""

    title: str = ""
    link: str = ""
    description: str = ""
    items: list[RSSItem] = field(default_factory=list)


def _local_name(tag: object) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _chardata(element: ET.Element) -> str:
    """Character data directly inside ``element``, ignoring nested elements."""
    return (element.text or "") + "".join(child.tail or "" for child in element)


_ITEM_FIELDS = {"title": "title", "link": "link", "description": "description", "pubDate": "pub_date"}
_CHANNEL_FIELDS = {"title": "title", "link": "link", "description": "description"}


def _parse_item(element: ET.Element) -> RSSItem:
    item = RSSItem()
    for child in element:
        name = _ITEM_FIELDS.get(_local_name(child.tag))
        if name is not None:
            setattr(item, name, _chardata(child))
    return item


def parse_feed(data: bytes | str) -> RSSFeed:
    """Parse an RSS document, unescaping HTML entities in titles and descriptions."""
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise ValueError(f"invalid feed XML: {exc}") from exc

    feed = RSSFeed()
    for channel in root:
        if _local_name(channel.tag) != "channel":
            continue
        for child in channel:
            local = _local_name(child.tag)
            if local == "item":
                feed.items.append(_parse_item(child))
            elif local in _CHANNEL_FIELDS:
                setattr(feed, _CHANNEL_FIELDS[local], _chardata(child))

    feed.title = html.unescape(feed.title)
    feed.description = html.unescape(feed.description)
    for item in feed.items:
        item.title = html.unescape(item.title)
        item.description = html.unescape(item.description)
    return feed


def fetch_feed(url: str, timeout: float = DEFAULT_TIMEOUT) -> RSSFeed:
    """Download the feed at ``url`` and parse it, whatever the response status."""
    request = urllib.request.Request(url, headers={"User-Agent": USER_AGENT}, method="GET")
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            data = response.read()
    except urllib.error.HTTPError as exc:
        try:
            data = exc.read()
        finally:
            exc.close()
    return parse_feed(data)