"""Messenger backed by the Slack Web API."""

from __future__ import annotations

import logging
import re
import time
from datetime import datetime
from typing import Any, Callable, Iterable, Sequence

import requests
from tenacity import Retrying, stop_after_attempt, wait_fixed

from crawlslack.entities import Body, Channel, Comment, Event, Notification, Post
from crawlslack.slack.filters import (
    ArchiveFilter,
    IsUserMessageFilter,
    IsUserReactedFilter,
    IsUserThreadedFilter,
    Message,
    MessageSubTypeExistsFilter,
    archive_filter,
)
from crawlslack.usecase import Messenger

logger = logging.getLogger(__name__)

API_URL = "https://slack.com/api"
CATEGORY_EMOJI_PREFIX = "c-"
MAX_ITERATION = 100
LONG_MESSAGE_BYTES = 10000
LINES_PER_CHUNK = 6

_TITLE_LINK = re.compile(r"<(.*?)\|?(.+?)>")
_LINK_WITH_ALIAS = re.compile(r"<(.+?)\|(.+?)>")
_LINK = re.compile(r"<(.+?)>")


def message_to_body(message: Message) -> Body:
    """Render a message as markdown text with attachment images below links."""
    text = message.user + "\n" + _LINK_WITH_ALIAS.sub(r"[\2](\1)", message.text)
    text = _LINK.sub(r"[\1](\1)", text)

    for a in message.attachments:
        text = text.replace(f"[{a.original_url}]", f"[{a.title}]")
        image_url = a.thumb_url or a.image_url
        text = text.replace(
            f"({a.original_url})",
            f'({a.original_url})\n<image alt="{a.title}" src="{image_url}">\n',
        )

    return Body(text=text)


def message_to_labels(message: Message) -> list[str]:
    """Return the categories marked by ``c-`` reactions."""
    return [
        r.name.replace(CATEGORY_EMOJI_PREFIX, "")
        for r in message.reactions
        if r.name.startswith(CATEGORY_EMOJI_PREFIX)
    ]


def build_post(channel: Channel, messages: Sequence[Message]) -> Post:
    """Build a post from a thread: the root becomes the body, replies the comments."""
    root = messages[0]
    if root.attachments:
        title = root.attachments[0].title
    else:
        title = ""
        for line in root.text.split("\n"):
            if line:
                title = _TITLE_LINK.sub(r"\2", line)
                break

    seconds = int(root.timestamp.split(".")[0])
    stamp = datetime.fromtimestamp(seconds).strftime("%Y-%m-%d %H:%M:%S")

    return Post(
        title=f"[{stamp}] {title}",
        labels=message_to_labels(root) + [channel.name],
        bodies=[message_to_body(root)],
        comments=[Comment(bodies=[message_to_body(m)]) for m in messages[1:]],
    )


def split_notification(event: Event) -> list[str]:
    """Split an event's message into the texts posted for it."""
    if event.crawler == "hankyung":
        lines = event.message.split("\n")
        messages = [f"<{lines[0]}|[김현석의 월스트리트 나우] {event.name}>"]
        buffer = ""
        # Articles alternate image and text, so an image closes the previous chunk.
        for line in lines[1:]:
            if "img.hankyung.com" in line:
                messages.append(buffer)
                buffer = ""
            buffer += line + "\n"
        return messages

    if len(event.message.encode("utf-8")) > LONG_MESSAGE_BYTES:
        lines = event.message.split("\n")
        return [
            "\n".join(lines[start:start + LINES_PER_CHUNK])
            for start in range(0, len(lines), LINES_PER_CHUNK)
        ]

    return [event.message]


class SlackClient(Messenger):
    """Reads threads, emoji and channels from Slack and posts notifications."""

    retry_attempts = 20
    retry_delay = 5.0
    post_interval = 1.0
    page_interval = 3.0

    def __init__(
        self,
        token: str,
        negative_filters: Iterable[ArchiveFilter] | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._token = token
        self._session = session or requests.Session()
        negatives: list[ArchiveFilter] = [MessageSubTypeExistsFilter(), *(negative_filters or [])]
        positives: list[ArchiveFilter] = [
            IsUserMessageFilter(),
            IsUserReactedFilter(),
            IsUserThreadedFilter(),
        ]
        self.filters: list[ArchiveFilter] = negatives + positives

    def _call(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        response = self._session.post(
            f"{API_URL}/{method}",
            data=params,
            headers={"Authorization": f"Bearer {self._token}"},
            timeout=60,
        )
        response.raise_for_status()
        payload = response.json()
        if not payload.get("ok"):
            raise RuntimeError(f"slack {method}: {payload.get('error', 'unknown error')}")
        return payload

    def _retry(self, fn: Callable[..., Any], *args: Any) -> Any:
        retrying = Retrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_fixed(self.retry_delay),
            reraise=True,
        )
        return retrying(fn, *args)

    def _paged_messages(self, method: str, params: dict[str, Any]) -> list[Message]:
        messages: list[Message] = []
        cursor = ""
        for _ in range(MAX_ITERATION):
            page = dict(params)
            if cursor:
                page["cursor"] = cursor
            result = self._retry(self._call, method, page)
            logger.debug("%s: %d messages", method, len(result.get("messages") or []))
            messages.extend(Message.from_api(m) for m in result.get("messages") or [])
            cursor = (result.get("response_metadata") or {}).get("next_cursor") or ""
            if not result.get("has_more"):
                break
        return messages

    def _conversations(self, channel_id: str, from_date: datetime, to_date: datetime) -> list[Message]:
        return self._paged_messages(
            "conversations.history",
            {
                "channel": channel_id,
                "oldest": str(int(from_date.timestamp())),
                "latest": str(int(to_date.timestamp())),
                "limit": 100,
            },
        )

    def _thread(self, channel_id: str, message: Message) -> list[Message]:
        return self._paged_messages(
            "conversations.replies", {"channel": channel_id, "ts": message.timestamp}
        )

    def archive_posts(self, channel: Channel, from_date: datetime, to_date: datetime) -> list[Post]:
        posts = []
        for message in self._conversations(channel.id, from_date, to_date):
            replies = self._thread(channel.id, message)
            if not replies or not archive_filter(self.filters, replies):
                continue
            posts.append(build_post(channel, replies))
        logger.info("archive_posts: %d posts", len(posts))
        return posts

    def _post_message(self, params: dict[str, Any]) -> str:
        time.sleep(self.post_interval)
        return self._call("chat.postMessage", params).get("ts") or ""

    def notify(self, notification: Notification) -> None:
        thread_ts = ""
        for text in split_notification(notification.event):
            if not text.strip():
                continue
            params: dict[str, Any] = {"channel": notification.user.id, "text": text}
            if thread_ts:
                params["thread_ts"] = thread_ts
            new_ts = self._retry(self._post_message, params)
            logger.info("notify %r", notification.event.uid)
            if not thread_ts:
                thread_ts = new_ts

    def get_labels(self) -> list[str]:
        emoji = self._call("emoji.list", {}).get("emoji") or {}
        labels = [
            name.replace(CATEGORY_EMOJI_PREFIX, "")
            for name in emoji
            if name.startswith(CATEGORY_EMOJI_PREFIX)
        ]
        logger.info("labels: %s", labels)
        return labels

    def _users(self) -> list[dict[str, Any]]:
        members: list[dict[str, Any]] = []
        cursor = ""
        while True:
            params: dict[str, Any] = {"limit": 200}
            if cursor:
                params["cursor"] = cursor
            result = self._call("users.list", params)
            members.extend(result.get("members") or [])
            cursor = (result.get("response_metadata") or {}).get("next_cursor") or ""
            if not cursor:
                return members

    def get_channels(self) -> list[Channel]:
        channels = [
            Channel(id=u.get("id") or "", name=u.get("name") or "")
            for u in self._users()
            if not (u.get("deleted") or u.get("is_bot") or u.get("is_restricted"))
        ]

        cursor = ""
        while True:
            params: dict[str, Any] = {"exclude_archived": "true"}
            if cursor:
                params["cursor"] = cursor
            result = self._call("conversations.list", params)
            page = [
                Channel(id=c.get("id") or "", name=c.get("name") or "")
                for c in result.get("channels") or []
            ]
            channels.extend(page)
            cursor = (result.get("response_metadata") or {}).get("next_cursor") or ""
            logger.info("conversations.list: %d channels, next cursor %r", len(page), cursor)
            if not cursor:
                break
            time.sleep(self.page_interval)

        return channels