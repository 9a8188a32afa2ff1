import re
from datetime import datetime, timezone
from urllib.parse import parse_qs

import pytest
import responses

from crawlslack.entities import Channel, Event, Notification
from crawlslack.slack.client import (
    SlackClient,
    build_post,
    message_to_body,
    message_to_labels,
    split_notification,
)
from crawlslack.slack.filters import Attachment, Message, NoLinkFilter, Reaction

API = "https://slack.com/api"


def _client(filters=None):
    client = SlackClient("token", filters)
    client.retry_attempts = 1
    client.retry_delay = 0
    client.post_interval = 0
    client.page_interval = 0
    return client


def _form(call):
    return parse_qs(call.request.body)


def test_message_to_body_converts_links():
    body = message_to_body(Message(user="U1", text="see <https://a.example.com|Site>"))
    assert body.text == "U1\nsee [Site](https://a.example.com)"
    assert body.files == []


def test_message_to_body_bare_link():
    body = message_to_body(Message(user="U1", text="<https://b.example.com>"))
    assert body.text.startswith("U1\n")
    assert "[https://b.example.com](https://b.example.com)" in body.text


def test_message_to_body_attachment_title_and_image():
    message = Message(
        user="U1",
        text="<https://a.example.com>",
        attachments=[
            Attachment(
                title="Article",
                original_url="https://a.example.com",
                image_url="https://img.example.com/1.png",
            )
        ],
    )
    text = message_to_body(message).text
    assert "[Article](https://a.example.com)" in text
    assert '<image alt="Article" src="https://img.example.com/1.png">' in text


def test_message_to_labels():
    message = Message(reactions=[Reaction("c-tech"), Reaction("smile"), Reaction("c-news")])
    assert message_to_labels(message) == ["tech", "news"]


def test_build_post_from_attachment_title():
    channel = Channel(id="C1", name="general")
    root = Message(
        user="U1",
        text="<https://a.example.com>",
        timestamp="1700000000.000100",
        reactions=[Reaction("c-tech")],
        attachments=[Attachment(title="Article", original_url="https://a.example.com")],
    )
    reply = Message(user="U2", text="nice", timestamp="1700000001.000100")
    post = build_post(channel, [root, reply])
    assert re.fullmatch(r"\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\] Article", post.title)
    assert post.labels == ["tech", "general"]
    assert len(post.bodies) == 1
    assert len(post.comments) == 1
    assert post.comments[0].bodies[0].text.startswith("U2\n")


def test_build_post_title_from_first_nonempty_line():
    root = Message(user="U1", text="\n<https://a.example.com|Alias> rest\nmore", timestamp="1700000000.1")
    post = build_post(Channel(id="C1", name="general"), [root])
    assert post.title.endswith("] Alias rest")
    assert post.comments == []


def test_build_post_bad_timestamp():
    with pytest.raises(ValueError):
        build_post(Channel(id="C1", name="general"), [Message(text="x", timestamp="abc")])


def test_split_notification_short():
    event = Event(crawler="rss", message="hello")
    assert split_notification(event) == ["hello"]


def test_split_notification_long_is_chunked_by_six_lines():
    lines = [f"line {i} " + "x" * 2000 for i in range(7)]
    message = "\n".join(lines)
    chunks = split_notification(Event(crawler="rss", message=message))
    assert len(chunks) == 2
    assert chunks[0].count("\n") == 5
    assert "\n".join(chunks) == message


def test_split_notification_hankyung():
    event = Event(
        crawler="hankyung",
        name="Title",
        message="https://h.example.com/a\nintro\nimg.hankyung.com/1.jpg\ntext after",
    )
    messages = split_notification(event)
    assert messages[0] == "<https://h.example.com/a|[김현석의 월스트리트 나우] Title>"
    assert messages[1:] == ["intro\n"]


def test_notify_threads_replies_under_first_message():
    long_message = "\n".join(f"line {i} " + "x" * 2000 for i in range(7))
    notification = Notification(
        event=Event(crawler="rss", message=long_message), user=Channel(id="C1", name="general")
    )
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{API}/chat.postMessage", json={"ok": True, "ts": "111.1"})
        rsps.add(responses.POST, f"{API}/chat.postMessage", json={"ok": True, "ts": "222.2"})
        result = _client().notify(notification)
        first, second = (_form(c) for c in rsps.calls)
        auth = rsps.calls[0].request.headers["Authorization"]
    assert result is None
    assert auth == "Bearer token"
    assert first["channel"] == ["C1"]
    assert "thread_ts" not in first
    assert second["thread_ts"] == ["111.1"]


def test_notify_raises_on_api_error():
    notification = Notification(event=Event(message="hi"), user=Channel(id="C1", name="g"))
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.POST,
            f"{API}/chat.postMessage",
            json={"ok": False, "error": "channel_not_found"},
        )
        with pytest.raises(RuntimeError, match="channel_not_found"):
            _client().notify(notification)


def test_notify_skips_blank_text():
    notification = Notification(event=Event(message="   "), user=Channel(id="C1", name="g"))
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        rsps.add(responses.POST, f"{API}/chat.postMessage", json={"ok": True, "ts": "1"})
        result = _client().notify(notification)
        call_count = len(rsps.calls)
    assert result is None
    assert call_count == 0


def test_get_labels():
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.POST,
            f"{API}/emoji.list",
            json={"ok": True, "emoji": {"c-tech": "u1", "party": "u2", "c-news": "u3"}},
        )
        labels = _client().get_labels()
    assert sorted(labels) == ["news", "tech"]


def test_get_channels_filters_users_and_pages_conversations():
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.POST,
            f"{API}/users.list",
            json={
                "ok": True,
                "members": [
                    {"id": "U1", "name": "alice"},
                    {"id": "U2", "name": "gone", "deleted": True},
                    {"id": "U3", "name": "robot", "is_bot": True},
                    {"id": "U4", "name": "guest", "is_restricted": True},
                ],
            },
        )
        rsps.add(
            responses.POST,
            f"{API}/conversations.list",
            json={"ok": True, "channels": [{"id": "C1", "name": "general"}],
                  "response_metadata": {"next_cursor": "next"}},
        )
        rsps.add(
            responses.POST,
            f"{API}/conversations.list",
            json={"ok": True, "channels": [{"id": "C2", "name": "random"}],
                  "response_metadata": {"next_cursor": ""}},
        )
        channels = _client().get_channels()
        assert _form(rsps.calls[2])["cursor"] == ["next"]
    assert channels == [
        Channel(id="U1", name="alice"),
        Channel(id="C1", name="general"),
        Channel(id="C2", name="random"),
    ]


def test_archive_posts_keeps_only_accepted_threads():
    channel = Channel(id="C1", name="general")
    user_message = {"user": "U1", "text": "<https://a.example.com|A>", "ts": "1700000000.000100"}
    bot_message = {"bot_id": "B1", "text": "bot", "ts": "1700000001.000200"}
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.POST,
            f"{API}/conversations.history",
            json={"ok": True, "messages": [user_message, bot_message], "has_more": False},
        )
        rsps.add(
            responses.POST,
            f"{API}/conversations.replies",
            json={"ok": True, "messages": [user_message], "has_more": False},
        )
        rsps.add(
            responses.POST,
            f"{API}/conversations.replies",
            json={"ok": True, "messages": [bot_message], "has_more": False},
        )
        posts = _client().archive_posts(
            channel,
            datetime(2024, 1, 1, tzinfo=timezone.utc),
            datetime(2024, 1, 8, tzinfo=timezone.utc),
        )
        history = _form(rsps.calls[0])
        assert history["channel"] == ["C1"]
        assert _form(rsps.calls[1])["ts"] == ["1700000000.000100"]
    assert len(posts) == 1
    assert posts[0].title.endswith("] A")
    assert posts[0].labels == ["general"]


def test_archive_posts_negative_filter_rejects():
    channel = Channel(id="C1", name="general")
    message = {"user": "U1", "text": "no link", "ts": "1700000000.000100"}
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.POST,
            f"{API}/conversations.history",
            json={"ok": True, "messages": [message], "has_more": False},
        )
        rsps.add(
            responses.POST,
            f"{API}/conversations.replies",
            json={"ok": True, "messages": [message], "has_more": False},
        )
        posts = _client([NoLinkFilter()]).archive_posts(
            channel,
            datetime(2024, 1, 1, tzinfo=timezone.utc),
            datetime(2024, 1, 8, tzinfo=timezone.utc),
        )
    assert posts == []


def test_client_filter_order():
    filters = _client([NoLinkFilter()]).filters
    assert [f.positive for f in filters] == [False, False, True, True, True]
    assert isinstance(filters[1], NoLinkFilter)