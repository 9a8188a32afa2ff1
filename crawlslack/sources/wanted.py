"""Crawler for job openings on Wanted."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable
from urllib.parse import quote_plus

import requests

from crawlslack.entities import Event
from crawlslack.usecase import Crawler


def _field(data: dict[str, Any], key: str) -> Any:
    """Look a key up case-insensitively."""
    if key in data:
        return data[key]
    lowered = key.lower()
    for name, value in data.items():
        if name.lower() == lowered:
            return value
    return None


@dataclass(frozen=True)
class Position:
    """One open position."""

    id: int
    company_name: str
    position: str


def parse_positions(payload: Any) -> list[Position]:
    """Extract positions from the jobs API response."""
    if not isinstance(payload, dict):
        return []
    positions = []
    for item in _field(payload, "data") or []:
        company = _field(item, "company") or {}
        positions.append(
            Position(
                id=int(_field(item, "id") or 0),
                company_name=_field(company, "name") or "",
                position=_field(item, "position") or "",
            )
        )
    return positions


def is_excluded(excludes: Iterable[str], company: str) -> bool:
    """Tell whether any exclusion keyword occurs in the company name."""
    return any(keyword in company for keyword in excludes)


def build_events(
    positions: Iterable[Position],
    crawler_name: str,
    job_name: str,
    channel: str,
    excludes: Iterable[str],
) -> list[Event]:
    """Build an event per position whose company is not excluded."""
    excludes = list(excludes)
    return [
        Event(
            crawler=crawler_name,
            job=job_name,
            user_name=channel,
            uid=f"{p.company_name}-{p.position}",
            name="position",
            event_time=datetime.now(timezone.utc),
            message=f"[{p.company_name}] {p.position}\n(https://www.wanted.co.kr/wd/{p.id})",
        )
        for p in positions
        if not is_excluded(excludes, p.company_name.lower())
    ]


class WantedCrawler(Crawler):
    """Searches Wanted for open positions matching a query."""

    crawler_name = "wanted"
    job_name = "open-position"

    def __init__(self, channel: str, query: str, excludes: Iterable[str] | None) -> None:
        self.channel = channel
        self.query = quote_plus(query)
        self.excludes = list(excludes or [])

    def crawl(self) -> list[Event]:
        url = (
            f"https://www.wanted.co.kr/api/v4/jobs?{int(time.time())}"
            "&country=kr&job_sort=company.response_rate_order&locations=all&years=-1"
            f"&query={self.query}&limit=100"
        )
        response = requests.get(url, timeout=60)
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        return build_events(
            parse_positions(payload), self.crawler_name, self.job_name, self.channel, self.excludes
        )