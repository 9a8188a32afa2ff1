"""Domain objects shared by crawlers, messengers and archives."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Event:
    """Something a crawler found that may be worth a notification."""

    crawler: str = ""
    job: str = ""
    user_name: str = ""
    uid: str = ""
    name: str = ""
    message: str = ""
    event_time: datetime | None = None


@dataclass(frozen=True)
class Channel:
    """A messenger destination: a user or a channel."""

    id: str = ""
    name: str = ""


@dataclass(frozen=True)
class Notification:
    """An event addressed to a resolved channel."""

    event: Event
    user: Channel


@dataclass
class File:
    """A local file attached to a post body."""

    path: str
    is_image: bool = False

    def name(self) -> str:
        """Return the last component of the path."""
        return self.path.split("/")[-1]


@dataclass
class Body:
    """Text with optional file attachments."""

    text: str = ""
    files: list[File] = field(default_factory=list)


@dataclass
class Comment:
    """A reply under a post."""

    bodies: list[Body] = field(default_factory=list)


@dataclass
class Post:
    """An archived thread: title, labels, bodies and comments."""

    title: str = ""
    labels: list[str] = field(default_factory=list)
    bodies: list[Body] = field(default_factory=list)
    comments: list[Comment] = field(default_factory=list)


class AlreadyExistsError(Exception):
    """Raised when an event has already been stored."""

    def __init__(self, message: str = "already exists") -> None:
        super().__init__(message)