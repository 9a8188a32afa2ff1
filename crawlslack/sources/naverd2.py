"""Crawler for Naver D2 blog posts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

import requests

from crawlslack.entities import Event
from crawlslack.usecase import Crawler

URL = "https://d2.naver.com/api/v1/contents?categoryId=2&page=0&size=2"
BASE_URL = "https://d2.naver.com"


@dataclass(frozen=True)
class Content:
    """One post returned by the contents API."""

    title: str = ""
    image: str = ""
    html: str = ""
    published_at: int = 0
    path: str = ""

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "Content":
        return cls(
            title=data.get("postTitle") or "",
            image=data.get("postImage") or "",
            html=data.get("postHtml") or "",
            published_at=int(data.get("postPublishedAt") or 0),
            path=data.get("url") or "",
        )


def parse_contents(payload: dict[str, Any]) -> list[Content]:
    """Extract the posts from a contents API response."""
    return [Content.from_json(item) for item in payload.get("content") or []]


def build_events(
    contents: Iterable[Content], crawler_name: str, job_name: str, channel: str, base_url: str
) -> list[Event]:
    """Build an event per post, timed by its publication."""
    return [
        Event(
            crawler=crawler_name,
            job=job_name,
            user_name=channel,
            uid=c.path,
            name=c.title,
            event_time=datetime.fromtimestamp(int(c.published_at / 1000), timezone.utc),
            message=f"[Naver D2] <{base_url}{c.path}|{c.title}>",
        )
        for c in contents
    ]


class NaverD2Crawler(Crawler):
    """Reports the latest Naver D2 posts."""

    crawler_name = "naver"
    job_name = "d2"

    def __init__(self, channel: str) -> None:
        self.channel = channel

    def crawl(self) -> list[Event]:
        response = requests.get(URL, timeout=60)
        response.raise_for_status()
        contents = parse_contents(response.json())
        return build_events(contents, self.crawler_name, self.job_name, self.channel, BASE_URL)