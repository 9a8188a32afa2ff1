"""Crawler for upcoming IPO subscriptions."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import requests
from bs4 import BeautifulSoup

from crawlslack.entities import Event
from crawlslack.usecase import Crawler

URL = "https://www.ustockplus.com/ipo/calander#monthList"
SUBSCRIPTION_STATE = "공모청약"


@dataclass(frozen=True)
class Company:
    """One company in the IPO calendar."""

    name: str = ""
    code: str = ""
    state: str = ""
    start_date: str = ""
    end_date: str = ""
    dart: str = ""

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "Company":
        return cls(
            name=data.get("name") or "",
            code=data.get("code") or "",
            state=data.get("ipoState") or "",
            start_date=data.get("offerSubscriptionStartDate") or "",
            end_date=data.get("offerSubscriptionEndDate") or "",
            dart=data.get("dartLink") or "",
        )


@dataclass(frozen=True)
class MonthlyList:
    """Companies of last, current and next month."""

    last_month: list[Company] = field(default_factory=list)
    current_month: list[Company] = field(default_factory=list)
    next_month: list[Company] = field(default_factory=list)


def parse_monthly_list(html: str) -> MonthlyList:
    """Read the monthly IPO list embedded in the page's __NEXT_DATA__ script."""
    doc = BeautifulSoup(html, "html.parser")
    body = doc.find("body")
    script = body.find("script", id="__NEXT_DATA__") if body is not None else None
    if script is None:
        raise ValueError("__NEXT_DATA__ script not found")
    root = json.loads(script.get_text())
    data = (((root.get("props") or {}).get("pageProps") or {}).get("ipoMonthlyList")) or {}

    def companies(key: str) -> list[Company]:
        return [Company.from_json(item) for item in data.get(key) or []]

    return MonthlyList(
        last_month=companies("lastMonthData"),
        current_month=companies("currentMonthData"),
        next_month=companies("nextMonthData"),
    )


def build_events(monthly_list: MonthlyList, crawler_name: str, job_name: str, channel: str) -> list[Event]:
    """Build events for companies currently open for subscription."""
    companies = monthly_list.last_month + monthly_list.current_month + monthly_list.next_month
    return [
        Event(
            crawler=crawler_name,
            job=job_name,
            user_name=channel,
            uid=company.name,
            name=company.name,
            event_time=datetime.now(timezone.utc),
            message=(
                f"{company.name}({company.code}) 상장예정! "
                f"공모청약기간 ({company.start_date} ~ {company.end_date}) <{company.dart}|dart>"
            ),
        )
        for company in companies
        if company.state == SUBSCRIPTION_STATE
    ]


class IpoCrawler(Crawler):
    """Reports companies in their IPO subscription period."""

    crawler_name = "ipo"
    job_name = "ipo"

    def __init__(self, channel: str) -> None:
        self.channel = channel

    def crawl(self) -> list[Event]:
        response = requests.get(URL, timeout=60)
        response.raise_for_status()
        monthly_list = parse_monthly_list(response.text)
        return build_events(monthly_list, self.crawler_name, self.job_name, self.channel)