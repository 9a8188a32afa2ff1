"""Crawler for Korea Center for International Finance reports."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Iterable

import requests
from bs4 import BeautifulSoup

from crawlslack.entities import Event
from crawlslack.usecase import Crawler

logger = logging.getLogger(__name__)

URL = "https://www.kcif.or.kr/front/board/boardList.do?intSection1=2"
REFERRER = "https://www.kcif.or.kr/front/board/boardList.do?intSection1=2"
PDF_URL_FORMAT = "https://www.kcif.or.kr/front/board/fileDownLoad.do?board_id={id}&fileGb={file_gb}"
VIEW_URL = "https://www.kcif.or.kr/front/board/boardView.do"

_DOWNLOAD_ARGS = re.compile(r"'(?P<id>\d+)', ?'(?P<index>\d+)'")

_BASE_HEADERS = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,"
        "image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.9"
    ),
    "Accept-Language": "ko-KR,ko;q=0.9,en-US;q=0.8,en;q=0.7,ru;q=0.6",
    "Cache-Control": "max-age=0",
    "Connection": "keep-alive",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "same-origin",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/108.0.0.0 Safari/537.36"
    ),
    "sec-ch-ua": 'Not?A_Brand";v="8", "Chromium";v="108", "Google Chrome";v="108',
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": "macOS",
}

_POST_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Origin": "https://www.kcif.or.kr",
}


@dataclass(frozen=True)
class Report:
    """One public report from the board."""

    id: str
    date: str
    pdf_url: str = ""
    title: str = ""
    content: str = ""


def parse_download_args(onclick: str) -> tuple[str, str]:
    """Return (report id, file index) from a ``download('50261', '1')`` handler."""
    match = _DOWNLOAD_ARGS.search(onclick)
    if match is None:
        raise ValueError(f"no download arguments in {onclick!r}")
    return match.group("id"), match.group("index")


def view_form(report_id: str) -> str:
    """Return the form body that asks for the view page of a report."""
    return (
        f"intReportID={report_id}&currentPage=1&rowsPerPage=15&intSection1=2"
        "&intSection2=5&intBoardID=5&regular=&AnalysisBrief=&intperiod1="
        "&intperiod2=&orderValue=&s_title=true&s_word="
    )


def parse_report_list(html: str) -> list[Report]:
    """Read the public reports from the board list; title and content stay empty."""
    doc = BeautifulSoup(html, "html.parser")
    tbody = doc.find("tbody")
    if tbody is None:
        raise ValueError("report list not found")

    reports = []
    for tr in tbody.find_all("tr"):
        tds = tr.find_all("td")
        if len(tds) < 5:
            raise ValueError("report row has too few cells")
        # Reports that are not public carry no "open" marker.
        if tds[0].find("img", class_="open") is None:
            continue
        link = tds[4].find("a")
        if link is None:
            raise ValueError("report row has no download link")
        report_id, file_gb = parse_download_args(link.get("onclick") or "")
        reports.append(
            Report(
                id=report_id.strip(),
                date=tds[2].get_text().strip(),
                pdf_url=PDF_URL_FORMAT.format(id=report_id, file_gb=file_gb).strip(),
            )
        )
    return reports


def parse_report_view(html: str) -> tuple[str, str]:
    """Return (title, content) from a report's view page."""
    doc = BeautifulSoup(html, "html.parser")
    title = doc.find("td", id="title")
    contents = doc.find("td", id="contents")
    paragraph = contents.find("p") if contents is not None else None
    span = paragraph.find("span") if paragraph is not None else None
    if title is None or span is None:
        raise ValueError("report title or contents not found")
    return title.get_text().strip(), span.get_text().strip()


def build_events(
    reports: Iterable[Report], crawler_name: str, job_name: str, channel: str
) -> list[Event]:
    """Build an event per report."""
    return [
        Event(
            crawler=crawler_name,
            job=job_name,
            user_name=channel,
            uid=r.id,
            name=r.title,
            event_time=datetime.now(timezone.utc),
            message=f"[{r.date}] 국제금융센터 *{r.title}*, <{r.pdf_url}|PDF 보기>\n> {r.content}",
        )
        for r in reports
    ]


class KcifCrawler(Crawler):
    """Reports the public reports on the board."""

    crawler_name = "kcif"
    job_name = "report"

    def __init__(self, channel: str) -> None:
        self.channel = channel

    @staticmethod
    def _request(
        method: str,
        url: str,
        referrer: str,
        data: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> str:
        all_headers = {"Referer": referrer, **_BASE_HEADERS, **(headers or {})}
        response = requests.request(method, url, data=data, headers=all_headers, timeout=60)
        response.raise_for_status()
        return response.text

    def crawl(self) -> list[Event]:
        listing = self._request("GET", URL, REFERRER)
        reports = []
        for report in parse_report_list(listing):
            try:
                page = self._request(
                    "POST", VIEW_URL, VIEW_URL, data=view_form(report.id), headers=_POST_HEADERS
                )
            except requests.RequestException as exc:
                logger.error("failed to request report %s: %s", report.id, exc)
                continue
            title, content = parse_report_view(page)
            reports.append(replace(report, title=title, content=content))
        return build_events(reports, self.crawler_name, self.job_name, self.channel)