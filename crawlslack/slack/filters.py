"""Message model and the filters that decide which threads are archived."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

_LINK_PATTERN = re.compile(r"<.+>")


@dataclass(frozen=True)
class Reaction:
    """An emoji reaction on a message."""

    name: str


@dataclass(frozen=True)
class Attachment:
    """A link unfurl attached to a message."""

    title: str = ""
    original_url: str = ""
    thumb_url: str = ""
    image_url: str = ""


@dataclass
class Message:
    """The parts of a chat message the archiver looks at."""

    user: str = ""
    text: str = ""
    timestamp: str = ""
    bot_id: str = ""
    sub_type: str = ""
    reactions: list[Reaction] = field(default_factory=list)
    attachments: list[Attachment] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Message":
        """Build a message from a Web API message object."""
        return cls(
            user=data.get("user") or "",
            text=data.get("text") or "",
            timestamp=data.get("ts") or "",
            bot_id=data.get("bot_id") or "",
            sub_type=data.get("subtype") or "",
            reactions=[Reaction(name=r.get("name") or "") for r in data.get("reactions") or []],
            attachments=[
                Attachment(
                    title=a.get("title") or "",
                    original_url=a.get("original_url") or "",
                    thumb_url=a.get("thumb_url") or "",
                    image_url=a.get("image_url") or "",
                )
                for a in data.get("attachments") or []
            ],
        )


class ArchiveFilter(ABC):
    """Decides on a thread.

    A positive filter accepts the thread when it passes and defers otherwise;
    a negative filter rejects the thread when it fails and defers otherwise.
    """

    positive: bool = False

    @abstractmethod
    def passed(self, messages: Sequence[Message]) -> bool:
        """Tell whether the thread (root message first) passes this filter."""


class IsUserMessageFilter(ArchiveFilter):
    """Passes when the root message was written by a person."""

    positive = True

    def passed(self, messages: Sequence[Message]) -> bool:
        return messages[0].bot_id == ""


class IsUserReactedFilter(ArchiveFilter):
    """Passes when the root message has any reaction."""

    positive = True

    def passed(self, messages: Sequence[Message]) -> bool:
        return len(messages[0].reactions) > 0


class IsUserThreadedFilter(ArchiveFilter):
    """Passes when a person replied in the thread."""

    positive = True

    def passed(self, messages: Sequence[Message]) -> bool:
        return any(m.bot_id == "" for m in messages[1:])


class MessageSubTypeExistsFilter(ArchiveFilter):
    """Fails for special messages such as joins or broadcasts."""

    positive = False

    def passed(self, messages: Sequence[Message]) -> bool:
        return messages[0].sub_type == ""


class NoLinkFilter(ArchiveFilter):
    """Fails when the root message carries no link."""

    positive = False

    def passed(self, messages: Sequence[Message]) -> bool:
        root = messages[0]
        return bool(root.attachments) or _LINK_PATTERN.search(root.text) is not None


class ExcludeEmojiFilter(ArchiveFilter):
    """Fails when the root message has the given reaction."""

    positive = False

    def __init__(self, emoji_name: str) -> None:
        self.emoji_name = emoji_name

    def passed(self, messages: Sequence[Message]) -> bool:
        return all(r.name.lower() != self.emoji_name for r in messages[0].reactions)


def parse_filters(specs: Iterable[str]) -> list[ArchiveFilter]:
    """Turn specs such as ``no-link`` or ``exclude-emoji:name`` into filters."""
    filters: list[ArchiveFilter] = []
    for spec in specs:
        parts = spec.split(":")
        kind = parts[0]
        if kind == "no-link":
            filters.append(NoLinkFilter())
        elif kind == "exclude-emoji":
            if len(parts) != 2:
                raise ValueError("exclude-emoji filter requires only one argument")
            filters.append(ExcludeEmojiFilter(parts[1]))
        else:
            raise ValueError(f"no adequate filter for {kind}")
    return filters


def archive_filter(filters: Iterable[ArchiveFilter], messages: Sequence[Message]) -> bool:
    """Run the filters in order and tell whether the thread is archived."""
    for f in filters:
        passed = f.passed(messages)
        if not f.positive and not passed:
            return False
        if f.positive and passed:
            return True
    return False