"""Crawler for Naver career search results."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

import requests
from bs4 import BeautifulSoup

from crawlslack.entities import Event
from crawlslack.usecase import Crawler

logger = logging.getLogger(__name__)

URL = "https://s.search.naver.com/p/career/search.naver"


@dataclass(frozen=True)
class Posting:
    """One job posting in the search results."""

    title: str
    info: str
    url: str


def page_request(query: str) -> dict[str, Any]:
    """Return the query parameters asking for the first page of ``query``."""
    nlu_query = json.dumps(
        {"q": query, "unknownType": query},
        ensure_ascii=False,
        separators=(",", ":"),
        sort_keys=True,
    )
    nlu_query = (
        nlu_query.replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")
    )
    return {
        "where": "pc_bridge_list",
        "query": query,
        "nlu_query": nlu_query,
        "api_type": "1",
        "so": "elapsed_time.asc",
        "start": "1",
        "_callback": "",
        "_": int(time.time()),
    }


def split_results(body: str) -> list[str]:
    """Split a JSONP response into its HTML fragments."""
    text = (
        body.replace('\\"', '"')
        .replace('({ results:[ "', "")
        .replace('" ] });', "")
    )
    return text.split('", "')


def parse_posting(fragment: str) -> Posting | None:
    """Read a posting from an HTML fragment; None when it holds none."""
    doc = BeautifulSoup(fragment, "html.parser")
    if doc.find("div") is None:
        return None
    title_area = doc.find("div", class_="title_area")
    if title_area is None:
        raise ValueError("posting title not found")
    info_area = doc.find("div", class_="info_area")
    link = title_area.find("a", class_="title")
    return Posting(
        title=title_area.get_text().strip(),
        info=info_area.get_text().strip() if info_area is not None else "",
        url=(link.get("href") or "") if link is not None else "",
    )


def build_events(
    postings: Iterable[Posting], crawler_name: str, job_name: str, channel: str
) -> list[Event]:
    """Build an event per posting."""
    return [
        Event(
            crawler=crawler_name,
            job=job_name,
            user_name=channel,
            uid=p.title,
            name=p.title,
            event_time=datetime.now(timezone.utc),
            message=f"<{p.url}|{p.title}>\n> {p.info}",
        )
        for p in postings
    ]


class NaverCareerCrawler(Crawler):
    """Reports postings whose titles match the include and exclude words."""

    crawler_name = "naver"
    job_name = "career"

    def __init__(
        self,
        channel: str,
        query: str,
        includes: Iterable[str] | None = None,
        excludes: Iterable[str] | None = None,
    ) -> None:
        self.channel = channel
        self.query = query
        self.includes = list(includes or [])
        self.excludes = list(excludes or [])

    def accepts(self, title: str) -> bool:
        """Reject titles with an excluded word; accept those with an included word."""
        if any(e in title for e in self.excludes):
            return False
        return any(i in title for i in self.includes)

    def crawl(self) -> list[Event]:
        response = requests.get(URL, params=page_request(self.query), timeout=60)
        response.raise_for_status()
        fragments = split_results(response.text)
        logger.info("fragments %s", fragments)

        postings = []
        for fragment in fragments:
            posting = parse_posting(fragment)
            if posting is None or not self.accepts(posting.title.lower()):
                continue
            postings.append(posting)
        return build_events(postings, self.crawler_name, self.job_name, self.channel)