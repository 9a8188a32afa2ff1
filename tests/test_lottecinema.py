import json

import pytest
import requests
import responses

from crawlslack.sources.lottecinema import (
    URL,
    LotteCinemaCrawler,
    PlaySequence,
    build_events,
    parse_play_sequences,
    request_body,
)

PAYLOAD = {
    "PlaySeqs": {
        "Items": [
            {
                "PlayDt": "2023-01-30",
                "StartTime": "10:00",
                "ScreenNameKR": "1관",
                "FilmNameKR": "2D",
                "ScreenDivisionNameKR": "일반",
                "BookingSeatCount": 3,
                "TotalSeatCount": 100,
            }
        ],
        "ItemCount": 1,
    },
    "IsOK": "true",
}


def test_parse_play_sequences():
    items = parse_play_sequences(PAYLOAD)
    assert items == [
        PlaySequence(
            play_dt="2023-01-30",
            start_time="10:00",
            screen_name_kr="1관",
            film_name_kr="2D",
            screen_division_name_kr="일반",
            booking_seat_count=3,
            total_seat_count=100,
        )
    ]


def test_parse_empty_payload():
    assert parse_play_sequences({}) == []


def test_request_body_embeds_date():
    body = request_body("2023-01-30")
    assert body.startswith("------WebKitFormBoundaryziISgzfxg73lJkgP\n")
    assert body.endswith("------WebKitFormBoundaryziISgzfxg73lJkgP--\n")
    params = json.loads(body.split("\n")[3])
    assert params["playDate"] == "2023-01-30"
    assert params["MethodName"] == "GetPlaySequence"
    assert params["representationMovieCode"] == "18755"


def test_build_events():
    events = build_events(parse_play_sequences(PAYLOAD), "lottecinema", "movie", "chan")
    assert len(events) == 1
    event = events[0]
    assert event.uid == "2023-01-30 10:00 1관"
    assert event.name == event.uid
    assert event.message == "2D 일반 2023-01-30 10:00 1관 // 자리 3/100"
    assert event.event_time is not None


def test_crawler_posts_request():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, URL, json=PAYLOAD)
        events = LotteCinemaCrawler("chan", "2023-01-30").crawl()
        request = rsps.calls[0].request
    assert b'"playDate":"2023-01-30"' in request.body
    assert "boundary=----WebKitFormBoundaryziISgzfxg73lJkgP" in request.headers["Content-Type"]
    assert [e.crawler for e in events] == ["lottecinema"]
    assert events[0].job == "movie"


def test_crawler_http_error():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, URL, status=503)
        with pytest.raises(requests.HTTPError):
            LotteCinemaCrawler("chan", "2023-01-30").crawl()