"""Crawler for Quastor blog posts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

import requests
from bs4 import BeautifulSoup

from crawlslack.entities import Event
from crawlslack.usecase import Crawler

URL = "https://blog.quastor.org/"
BASE_URL = "https://blog.quastor.org"


@dataclass(frozen=True)
class Article:
    """One free article on the blog index."""

    name: str
    url: str
    date: str


def parse_articles(html: str) -> list[Article]:
    """Read the free articles from the blog index, skipping premium ones."""
    doc = BeautifulSoup(html, "html.parser")
    main = doc.find("main", class_="w-full")
    if main is None:
        raise ValueError("main content not found")
    sections = main.find_all("div", class_="px-4")
    if len(sections) < 2:
        raise ValueError("article list not found")

    articles = []
    for a in sections[1].find_all("a"):
        if a.find("svg") is not None:  # premium content
            continue
        heading = a.find("h2")
        stamp = a.find("time")
        articles.append(
            Article(
                name=heading.get_text() if heading is not None else "",
                url=BASE_URL + (a.get("href") or ""),
                date=(stamp.get("datetime") or "") if stamp is not None else "",
            )
        )
    return articles


def build_events(
    articles: Iterable[Article], crawler_name: str, job_name: str, channel: str
) -> list[Event]:
    """Build an event per article."""
    return [
        Event(
            crawler=crawler_name,
            job=job_name,
            user_name=channel,
            uid=a.name,
            name=a.name,
            event_time=datetime.now(timezone.utc),
            message=f"[{a.date}] Quastor <{a.url}|{a.name}>",
        )
        for a in articles
    ]


class QuastorCrawler(Crawler):
    """Reports the free Quastor articles."""

    crawler_name = "quastor"
    job_name = "post"

    def __init__(self, channel: str) -> None:
        self.channel = channel

    def crawl(self) -> list[Event]:
        response = requests.get(URL, timeout=60)
        response.raise_for_status()
        articles = parse_articles(response.text)
        return build_events(articles, self.crawler_name, self.job_name, self.channel)