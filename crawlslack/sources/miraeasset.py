"""Crawler for Mirae Asset research posts."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Iterable, Sequence

import requests
from bs4 import BeautifulSoup

from crawlslack.entities import Event
from crawlslack.usecase import Crawler

logger = logging.getLogger(__name__)

LIST_URL = "https://securities.miraeasset.com/bbs/board/message/list.do?categoryId=1521"
CONTENT_URL_FORMAT = (
    "https://securities.miraeasset.com/bbs/board/message/view.do"
    "?messageId={id}&messageNumber={number}&categoryId=1521"
)
PDF_URL_FORMAT = "https://securities.miraeasset.com/bbs/download/{id}.pdf?attachmentId={id}"
PUBLISHER = "미래에셋증권"

_NEWLINES = re.compile(r"\n+")


@dataclass(frozen=True)
class Report:
    """One post on the research board."""

    id: str
    date: str
    title: str
    url: str
    pdf_url: str = ""
    content: str = ""


def format_table(rows: Sequence[Sequence[str]]) -> str:
    """Render table rows as ``|``-separated lines.

    Each cell is padded to the longest cell's byte length minus its own.
    """
    max_len = max((len(cell.encode("utf-8")) for row in rows for cell in row), default=0)
    lines = []
    for row in rows:
        cells = [cell.ljust(max_len - len(cell.encode("utf-8"))) for cell in row]
        lines.append(" | ".join(cells) + "\n")
    return "".join(lines)


def parse_content(html: str) -> str:
    """Return a post's text as a quote, followed by its first table as a code block."""
    doc = BeautifulSoup(html, "html.parser")
    div = doc.find("div", id="messageContentsDiv")
    if div is None:
        raise ValueError("message contents not found")

    table_text = ""
    table = div.find("table")
    if table is not None:
        table.extract()
        rows = [
            [td.get_text().strip() for td in tr.find_all("td")] for tr in table.find_all("tr")
        ]
        table_text = "```\n" + format_table(rows) + "```"

    text = div.get_text().strip()
    logger.info("content %r", text)
    return _NEWLINES.sub("\n> ", "> " + text) + table_text


def parse_report_list(html: str) -> list[Report]:
    """Read the posts from the board list; content stays empty."""
    doc = BeautifulSoup(html, "html.parser")
    table = doc.find("table", class_="bbs_linetype2")
    if table is None:
        raise ValueError("report list not found")
    body = table.find("tbody") or table

    reports = []
    for tr in body.find_all("tr"):
        tds = tr.find_all("td")
        if len(tds) < 3:
            raise ValueError("report row has too few cells")
        subject = tds[1].find("div", class_="subject")
        link = subject.find("a") if subject is not None else None
        if link is None:
            raise ValueError("report row has no link")

        parts = (link.get("href") or "").split("'")
        if len(parts) < 4:
            raise ValueError(f"unexpected report link {link.get('href')!r}")
        report_id, number = parts[1], parts[3]
        pdf_url = PDF_URL_FORMAT.format(id=report_id) if tds[2].find("p") is not None else ""

        reports.append(
            Report(
                id=report_id,
                date=tds[0].get_text().strip(),
                title=_NEWLINES.sub("\n", link.get_text().strip()),
                url=CONTENT_URL_FORMAT.format(id=report_id, number=number),
                pdf_url=pdf_url,
            )
        )
    return reports


def build_events(
    reports: Iterable[Report], crawler_name: str, job_name: str, channel: str
) -> list[Event]:
    """Build an event per post."""
    return [
        Event(
            crawler=crawler_name,
            job=job_name,
            user_name=channel,
            uid=r.id,
            name=r.title,
            event_time=datetime.now(timezone.utc),
            message=f"*{r.title}*\n{PUBLISHER} {r.date}, <{r.url}|원문 보기>\n> {r.content}",
        )
        for r in reports
    ]


class MiraeAssetCrawler(Crawler):
    """Reports research posts with their text."""

    crawler_name = "ipo"
    job_name = "ipo"

    def __init__(self, channel: str) -> None:
        self.channel = channel

    @staticmethod
    def _get(url: str) -> str:
        response = requests.get(url, timeout=60)
        response.raise_for_status()
        return response.text

    def crawl(self) -> list[Event]:
        reports = [
            replace(report, content=parse_content(self._get(report.url)))
            for report in parse_report_list(self._get(LIST_URL))
        ]
        return build_events(reports, self.crawler_name, self.job_name, self.channel)