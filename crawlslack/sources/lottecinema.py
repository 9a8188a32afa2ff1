"""Crawler for Lotte Cinema screening times."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

import requests

from crawlslack.entities import Event
from crawlslack.usecase import Crawler

URL = "https://www.lottecinema.co.kr/LCWS/Ticketing/TicketingData.aspx"
BOUNDARY = "----WebKitFormBoundaryziISgzfxg73lJkgP"
_DATA_FORMAT = (
    "------WebKitFormBoundaryziISgzfxg73lJkgP\n"
    'Content-Disposition: form-data; name="paramList"\n'
    "\n"
    '{{"MethodName":"GetPlaySequence","channelType":"HO","osType":"W",'
    '"osVersion":"Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/109.0.0.0 Safari/537.36","playDate":"{date}",'
    '"cinemaID":"1|0001|1016","representationMovieCode":"18755"}}\n'
    "------WebKitFormBoundaryziISgzfxg73lJkgP--\n"
)


@dataclass(frozen=True)
class PlaySequence:
    """One screening."""

    play_dt: str = ""
    start_time: str = ""
    screen_name_kr: str = ""
    film_name_kr: str = ""
    screen_division_name_kr: str = ""
    booking_seat_count: int = 0
    total_seat_count: int = 0

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "PlaySequence":
        return cls(
            play_dt=data.get("PlayDt") or "",
            start_time=data.get("StartTime") or "",
            screen_name_kr=data.get("ScreenNameKR") or "",
            film_name_kr=data.get("FilmNameKR") or "",
            screen_division_name_kr=data.get("ScreenDivisionNameKR") or "",
            booking_seat_count=int(data.get("BookingSeatCount") or 0),
            total_seat_count=int(data.get("TotalSeatCount") or 0),
        )


def parse_play_sequences(payload: dict[str, Any]) -> list[PlaySequence]:
    """Extract the screenings from a ticketing API response."""
    items = (payload.get("PlaySeqs") or {}).get("Items") or []
    return [PlaySequence.from_json(item) for item in items]


def request_body(date: str) -> str:
    """Return the multipart body asking for the screenings of ``date``."""
    return _DATA_FORMAT.format(date=date)


def build_events(
    items: Iterable[PlaySequence], crawler_name: str, job_name: str, channel: str
) -> list[Event]:
    """Build an event per screening."""
    events = []
    for item in items:
        uid = f"{item.play_dt} {item.start_time} {item.screen_name_kr}"
        events.append(
            Event(
                crawler=crawler_name,
                job=job_name,
                user_name=channel,
                uid=uid,
                name=uid,
                event_time=datetime.now(timezone.utc),
                message=(
                    f"{item.film_name_kr} {item.screen_division_name_kr} {uid} "
                    f"// 자리 {item.booking_seat_count}/{item.total_seat_count}"
                ),
            )
        )
    return events


class LotteCinemaCrawler(Crawler):
    """Reports the screenings of one day."""

    crawler_name = "lottecinema"
    job_name = "movie"

    def __init__(self, channel: str, date: str) -> None:
        self.channel = channel
        self.date = date

    def crawl(self) -> list[Event]:
        response = requests.request(
            "GET",
            URL,
            data=request_body(self.date).encode("utf-8"),
            headers={"Content-Type": f"multipart/form-data; boundary={BOUNDARY}"},
            timeout=60,
        )
        response.raise_for_status()
        items = parse_play_sequences(response.json())
        return build_events(items, self.crawler_name, self.job_name, self.channel)