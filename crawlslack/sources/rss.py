"""Crawler for RSS and Atom feeds."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Iterable, Sequence
from xml.etree.ElementTree import Element, ParseError

import requests
from bs4 import BeautifulSoup
from defusedxml import ElementTree

from crawlslack.entities import Event
from crawlslack.usecase import Crawler

logger = logging.getLogger(__name__)

FETCH_RSS_AD = "(Feed generated with FetchRSS)"


@dataclass
class FeedItem:
    """One entry of a feed."""

    title: str = ""
    link: str = ""
    description: str = ""
    categories: list[str] = field(default_factory=list)
    author_name: str = ""
    published: datetime | None = None


def _local(tag: object) -> str:
    return tag.rsplit("}", 1)[-1] if isinstance(tag, str) else ""


def _first(elem: Element, name: str) -> Element | None:
    return next((c for c in elem if _local(c.tag) == name), None)


def _text(elem: Element, name: str) -> str:
    child = _first(elem, name)
    return "".join(child.itertext()).strip() if child is not None else ""


def _parse_date(value: str) -> datetime | None:
    if not value:
        return None
    parsed: datetime | None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _rss_item(elem: Element) -> FeedItem:
    author = _text(elem, "author") or _text(elem, "creator")
    published = _text(elem, "pubDate") or _text(elem, "date")
    return FeedItem(
        title=_text(elem, "title"),
        link=_text(elem, "link"),
        description=_text(elem, "description"),
        categories=["".join(c.itertext()).strip() for c in elem if _local(c.tag) == "category"],
        author_name=author,
        published=_parse_date(published),
    )


def _atom_entry(elem: Element) -> FeedItem:
    links = [c for c in elem if _local(c.tag) == "link"]
    link = ""
    for candidate in links:
        if candidate.get("rel") in (None, "alternate"):
            link = candidate.get("href") or ""
            break
    else:
        if links:
            link = links[0].get("href") or ""
    author = _first(elem, "author")
    published = _text(elem, "published") or _text(elem, "updated")
    return FeedItem(
        title=_text(elem, "title"),
        link=link,
        description=_text(elem, "summary"),
        categories=[c.get("term") or "" for c in elem if _local(c.tag) == "category"],
        author_name=_text(author, "name") if author is not None else "",
        published=_parse_date(published),
    )


def parse_feed(text: str | bytes) -> list[FeedItem]:
    """Parse an RSS 2.0, RSS 1.0 or Atom document into its items."""
    try:
        root = ElementTree.fromstring(text)
    except ParseError as exc:
        raise ValueError(f"invalid feed: {exc}") from exc
    kind = _local(root.tag)
    if kind == "feed":
        return [_atom_entry(e) for e in root if _local(e.tag) == "entry"]
    if kind in ("rss", "RDF"):
        return [_rss_item(e) for e in root.iter() if _local(e.tag) == "item"]
    raise ValueError(f"unsupported feed type {kind}")


class Transformer(ABC):
    """Rewrites a feed item, or drops it by returning None."""

    @abstractmethod
    def transform(self, item: FeedItem) -> FeedItem | None:
        """Return the rewritten item, or None to drop it."""


class CategoryMustContainsTransformer(Transformer):
    """Drops items whose categories contain any of the given keywords."""

    def __init__(self, categories: Iterable[str]) -> None:
        self.categories = list(categories)

    def transform(self, item: FeedItem) -> FeedItem | None:
        joined = ",".join(item.categories)
        if any(c in joined for c in self.categories):
            return None
        return item


class UrlMustContainsTransformer(Transformer):
    """Drops items whose link contains any of the given keywords."""

    def __init__(self, keywords: Iterable[str]) -> None:
        self.keywords = list(keywords)

    def transform(self, item: FeedItem) -> FeedItem | None:
        if any(k in item.link for k in self.keywords):
            return None
        return item


class FetchRssTransformer(Transformer):
    """Turns a generated feed's HTML description into plain text plus image URL."""

    def transform(self, item: FeedItem) -> FeedItem | None:
        element = BeautifulSoup("<html>" + item.description + "</html>", "html.parser")
        description = element.get_text().replace(FETCH_RSS_AD, "")
        img = element.find("img")
        if img is not None:
            description += "\n" + (img.get("src") or "")
        # The title duplicates the description.
        return replace(item, title="", description=description)


class TechBlogPostsTransformer(Transformer):
    """Prefixes the title with the author, which names the company."""

    def transform(self, item: FeedItem) -> FeedItem | None:
        return replace(item, title=f"[{item.author_name}] {item.title}")


def apply_transformers(transformers: Iterable[Transformer], item: FeedItem) -> FeedItem | None:
    """Run the transformers in order; stop with None as soon as one drops the item."""
    current: FeedItem | None = item
    for t in transformers:
        current = t.transform(current)
        if current is None:
            return None
    return current


def _format_time(t: datetime) -> str:
    offset = t.utcoffset()
    if offset is None or offset == timedelta(0):
        return t.strftime("%Y-%m-%dT%H:%M:%SZ")
    return t.isoformat(timespec="seconds")


def build_events(
    items: Sequence[FeedItem],
    crawler_name: str,
    job_name: str,
    transformers: Sequence[Transformer],
    channel: str,
) -> list[Event]:
    """Build events for the kept items, oldest (last in the feed) first."""
    events = []
    for original in reversed(items):
        item = apply_transformers(transformers, original)
        if item is None:
            continue
        t = item.published or datetime.now(timezone.utc)
        events.append(
            Event(
                crawler=crawler_name,
                job=job_name,
                user_name=channel,
                uid=item.link,
                name=item.link,
                event_time=t,
                message=(
                    f"[{_format_time(t)}] {job_name} <{item.link}|{item.title}>\n"
                    f"{item.description}"
                ),
            )
        )
    return events


class RssCrawler(Crawler):
    """Reports the items of one feed."""

    crawler_name = "rss"

    def __init__(
        self,
        channel: str,
        name: str,
        site: str,
        transformers: Iterable[Transformer] | None = None,
    ) -> None:
        self.channel = channel
        self.name = name
        self.site = site
        self.transformers = list(transformers or [])

    @property
    def job_name(self) -> str:
        return self.name

    def crawl(self) -> list[Event]:
        logger.info("site %s", self.site)
        response = requests.get(self.site, timeout=60)
        response.raise_for_status()
        content = response.content.replace(b"\x08", b"")
        items = parse_feed(content)
        return build_events(items, self.crawler_name, self.job_name, self.transformers, self.channel)