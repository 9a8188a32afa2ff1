"""Crawler for the Goldman Sachs developer blog."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

import requests
from bs4 import BeautifulSoup

from crawlslack.entities import Event
from crawlslack.usecase import Crawler

URL = "https://developer.gs.com/blog/posts"
BASE_URL = "https://developer.gs.com"
DATE_FORMAT = "%B %d %Y"


@dataclass(frozen=True)
class BlogPost:
    """One post on the blog index."""

    id: str
    name: str
    url: str
    date: str


def parse_posts(html: str) -> list[BlogPost]:
    """Read the posts from the blog index."""
    doc = BeautifulSoup(html, "html.parser")
    container = doc.find("div", class_="gs-uitk-c-1c4ow0d")
    if container is None:
        raise ValueError("post list not found")

    posts = []
    for a in container.find_all("a"):
        spans = a.find_all("span")
        if len(spans) < 2:
            raise ValueError("post is missing its date or title")
        date = spans[0].get_text().replace(",", "").strip()
        name = spans[1].get_text().strip()
        posts.append(
            BlogPost(
                id=name,
                name=name,
                url=(BASE_URL + (a.get("href") or "")).strip(),
                date=date,
            )
        )
    return posts


def build_events(
    posts: Iterable[BlogPost], crawler_name: str, job_name: str, channel: str
) -> list[Event]:
    """Build an event per post; a malformed date raises ValueError."""
    events = []
    for post in posts:
        event_time = datetime.strptime(post.date, DATE_FORMAT).replace(tzinfo=timezone.utc)
        events.append(
            Event(
                crawler=crawler_name,
                job=job_name,
                user_name=channel,
                uid=post.name,
                name=post.name,
                event_time=event_time,
                message=f"[{post.date}] GoldmanSachs <{post.url}|{post.name}>",
            )
        )
    return events


class GoldmanSachsCrawler(Crawler):
    """Reports Goldman Sachs developer blog posts."""

    crawler_name = "goldmansachs"
    job_name = "post"

    def __init__(self, channel: str) -> None:
        self.channel = channel

    def crawl(self) -> list[Event]:
        response = requests.get(URL, timeout=60)
        response.raise_for_status()
        posts = parse_posts(response.text)
        return build_events(posts, self.crawler_name, self.job_name, self.channel)