"""Orchestration of crawling, deduplication, notification and archiving."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable

from crawlslack.entities import (
    AlreadyExistsError,
    Channel,
    Event,
    Notification,
    Post,
)

logger = logging.getLogger(__name__)


class Crawler(ABC):
    """A source of events."""

    @abstractmethod
    def crawl(self) -> list[Event]:
        """Fetch the current events from the source."""


class Archive(ABC):
    """A long-term store for posts."""

    @abstractmethod
    def create_post(self, post: Post) -> None:
        """Store one post."""

    @abstractmethod
    def create_posts(self, posts: list[Post]) -> None:
        """Store several posts in order."""

    @abstractmethod
    def create_label(self, name: str) -> None:
        """Create a label."""

    @abstractmethod
    def list_labels(self) -> set[str]:
        """Return the names of the existing labels."""

    @abstractmethod
    def sync_labels(self, labels: list[str]) -> None:
        """Create every label in ``labels`` that does not exist yet."""


class Messenger(ABC):
    """A chat service that receives notifications and holds threads."""

    @abstractmethod
    def get_channels(self) -> list[Channel]:
        """Return every user and channel that can be addressed."""

    @abstractmethod
    def notify(self, notification: Notification) -> None:
        """Deliver a notification."""

    @abstractmethod
    def archive_posts(self, channel: Channel, from_date: datetime, to_date: datetime) -> list[Post]:
        """Turn the threads of a channel within a period into posts."""

    @abstractmethod
    def get_labels(self) -> list[str]:
        """Return the labels the messenger defines."""


class Repository(ABC):
    """Persistence for seen events and known channels."""

    @abstractmethod
    def save_event(self, event: Event) -> None:
        """Store an event; raise AlreadyExistsError if it was seen before."""

    @abstractmethod
    def get_channel(self, user_name: str) -> Channel | None:
        """Return the channel with this name, or None."""

    @abstractmethod
    def sync_channels(self, channels: list[Channel]) -> None:
        """Replace all known channels."""


class ChannelService(ABC):
    """A provider of channels."""

    @abstractmethod
    def get_channels(self) -> list[Channel]:
        """Return every available channel."""


class UseCase:
    """Ties a crawler, a repository, a messenger and an archive together."""

    def __init__(
        self,
        repository: Repository,
        crawler: Crawler | None,
        messenger: Messenger,
        archive: Archive | None,
    ) -> None:
        self._repository = repository
        self._crawler = crawler
        self._messenger = messenger
        self._archive = archive

    def work(self, after: datetime) -> list[Event]:
        """Crawl, keep new events later than ``after``, notify them and return them."""
        if self._crawler is None:
            raise RuntimeError("no crawler configured")
        crawled = self._crawler.crawl()
        logger.info("work: %d events crawled", len(crawled))
        events = self._filter_events(crawled, after)
        self._notify(events)
        return events

    def _filter_events(self, crawled: Iterable[Event], after: datetime) -> list[Event]:
        events = []
        for event in crawled:
            if event.event_time is None:
                raise ValueError("empty EventTime")
            if not event.event_time > after:
                continue
            try:
                self._repository.save_event(event)
            except AlreadyExistsError:
                continue
            events.append(event)
        return events

    def _notify(self, events: list[Event]) -> None:
        for index, event in enumerate(events):
            user = self.get_channel(event.user_name)
            notification = Notification(event=event, user=user)
            try:
                self._messenger.notify(notification)
            except Exception:
                logger.error("notify error at index %d: %r", index, notification)
                raise

    def get_channel(self, name: str) -> Channel:
        """Resolve a channel by name, syncing channels from the messenger if unknown."""
        channel = self._repository.get_channel(name)
        if channel is not None and channel.id:
            return channel

        channels = self._messenger.get_channels()
        logger.info("syncing %d channels", len(channels))
        self._repository.sync_channels(channels)

        channel = self._repository.get_channel(name)
        if channel is None or not channel.id:
            raise LookupError("empty channel")
        return channel

    def _upsert_labels(self, posts: Iterable[Post]) -> None:
        existing = set(self._archive.list_labels())
        for post in posts:
            for label in post.labels:
                if label not in existing:
                    self._archive.create_label(label)
                    existing.add(label)

    def archive(self, channel: str, date_from: datetime, date_to: datetime) -> None:
        """Archive the threads of ``channel`` between the two dates."""
        if self._archive is None:
            raise RuntimeError("no archive configured")
        resolved = self.get_channel(channel)
        posts = self._messenger.archive_posts(resolved, date_from, date_to)
        self._upsert_labels(posts)
        self._archive.create_posts(posts)

    def sync_label(self) -> None:
        """Copy the messenger's labels to the archive."""
        if self._archive is None:
            raise RuntimeError("no archive configured")
        labels = self._messenger.get_labels()
        self._archive.sync_labels(labels)