"""Crawler for the Hacker News front page."""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Sequence

import requests
from bs4 import BeautifulSoup

from crawlslack.entities import Event
from crawlslack.usecase import Crawler

logger = logging.getLogger(__name__)

BASE_URL = "https://news.ycombinator.com/"
NEWS_URL = "https://news.ycombinator.com/news"

_AGE = re.compile(r"(\d+) [A-z]+ ago")
_POINT = re.compile(r"(\d+) poins?t")
_COMMENTS = re.compile(r"\d+.comments?")


@dataclass(frozen=True)
class Story:
    """One story on the front page."""

    id: str
    url: str
    comment_url: str
    title: str
    sub_text: str


class SubTextFilter(ABC):
    """Judges a story by its subtext line.

    After ``apply`` returns True, ``reason`` says why the story was dropped;
    after it returns False, ``parsed`` holds the part of the subtext it kept.
    """

    def __init__(self) -> None:
        self.reason = ""
        self.parsed = ""

    @abstractmethod
    def apply(self, sub_text: str) -> bool:
        """Return True when the story must be dropped."""


class AdFilter(SubTextFilter):
    """Drops job ads, which have neither comments nor a discuss link."""

    def apply(self, sub_text: str) -> bool:
        if "comment" not in sub_text and "discuss" not in sub_text:
            self.reason = "advertisement filter"
            return True
        return False


class AgeFilter(SubTextFilter):
    """Drops stories younger than two hours."""

    def apply(self, sub_text: str) -> bool:
        match = _AGE.search(sub_text)
        if match is None:
            self.reason = "age is not matched"
            return True
        text, value = match.group(0), int(match.group(1))
        if "minute" in text or ("hour" in text and value < 2):
            self.reason = "ignore recent 1h post"
            return True
        self.parsed = text
        return False


class PointFilter(SubTextFilter):
    """Drops stories with fewer points than the threshold."""

    def __init__(self, threshold: int) -> None:
        super().__init__()
        self.threshold = threshold

    def apply(self, sub_text: str) -> bool:
        match = _POINT.search(sub_text)
        if match is None:
            self.reason = "point is not matched"
            return True
        if int(match.group(1)) < self.threshold:
            self.reason = "ignore less than 40 point"
            return True
        self.parsed = match.group(0)
        return False


class CommentFilter(SubTextFilter):
    """Never drops; records the comment count or "discuss"."""

    def apply(self, sub_text: str) -> bool:
        match = _COMMENTS.search(sub_text)
        self.parsed = match.group(0) if match else "discuss"
        return False


def default_filters(point_threshold: int) -> list[SubTextFilter]:
    """Return the ad, age, point and comment filters in that order."""
    return [AdFilter(), AgeFilter(), PointFilter(point_threshold), CommentFilter()]


def filter_subtext(filters: Iterable[SubTextFilter], sub_text: str) -> tuple[str, str, bool]:
    """Run the filters; return (reason, kept subtext, dropped)."""
    kept: list[str] = []
    for f in filters:
        if f.apply(sub_text):
            return f.reason, "", True
        kept.append(f.parsed)
    return "", " ".join(kept).strip(), False


def parse_front_page(html: str) -> list[Story]:
    """Read the stories from a front page."""
    doc = BeautifulSoup(html, "html.parser")
    main = doc.find("table", id="hnmain")
    if main is None:
        raise ValueError("hnmain table not found")
    tables = main.find_all("table")
    if len(tables) < 2:
        raise ValueError("story table not found")
    table = tables[1]
    container = table.find("tbody") or table
    rows = container.find_all("tr")

    stories = []
    for athing, metadata in zip(rows[0::3], rows[1::3]):
        if "morespace" in (athing.get("class") or []):
            break
        story_id = (athing.get("id") or "").strip()
        link = athing.find("span", class_="titleline").find_all("a")[0]
        href = (link.get("href") or "").strip()
        if href.startswith("item?id="):
            href = BASE_URL + href
        subtext = metadata.find("td", class_="subtext")
        stories.append(
            Story(
                id=story_id,
                url=href,
                comment_url=f"{BASE_URL}item?id={story_id}",
                title=link.get_text().strip(),
                sub_text=subtext.get_text().strip() if subtext is not None else "",
            )
        )
    return stories


def build_events(
    stories: Iterable[Story],
    crawler_name: str,
    job_name: str,
    channel: str,
    filters: Sequence[SubTextFilter],
) -> list[Event]:
    """Build an event per story that no filter drops."""
    events = []
    for story in stories:
        reason, sub_text, dropped = filter_subtext(filters, story.sub_text)
        if dropped:
            logger.info("%s %r", reason, story)
            continue
        events.append(
            Event(
                crawler=crawler_name,
                job=job_name,
                user_name=channel,
                uid=story.id,
                name="news",
                event_time=datetime.now(timezone.utc),
                message=f"<{story.url}|{story.title}>\n(<{story.comment_url}|{sub_text}>)",
            )
        )
    return events


class HackerNewsCrawler(Crawler):
    """Reports front-page stories that are old and popular enough."""

    crawler_name = "hacker-news"
    job_name = "news"

    def __init__(self, channel: str, point_threshold: int = 0) -> None:
        self.channel = channel
        self.filters = default_filters(point_threshold)

    def crawl(self) -> list[Event]:
        response = requests.get(NEWS_URL, timeout=60)
        response.raise_for_status()
        stories = parse_front_page(response.text)
        return build_events(stories, self.crawler_name, self.job_name, self.channel, self.filters)