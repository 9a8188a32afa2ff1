from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, call

import pytest

from crawlslack.entities import (
    AlreadyExistsError,
    Body,
    Channel,
    Comment,
    Event,
    Notification,
    Post,
)
from crawlslack.usecase import Archive, Crawler, Messenger, Repository, UseCase


@pytest.fixture
def parts():
    repo = Mock(spec=Repository)
    crawler = Mock(spec=Crawler)
    messenger = Mock(spec=Messenger)
    archive = Mock(spec=Archive)
    return repo, crawler, messenger, archive, UseCase(repo, crawler, messenger, archive)


def now():
    return datetime.now(timezone.utc)


def test_work_success(parts):
    repo, crawler, messenger, _, usecase = parts
    event = Event(crawler="crawler", user_name="test", event_time=now())
    user = Channel(id="test", name="test")
    crawler.crawl.return_value = [event]
    repo.save_event.return_value = None
    repo.get_channel.return_value = user

    notified = usecase.work(now() - timedelta(hours=1))

    assert notified == [event]
    assert repo.save_event.call_args_list == [call(event)]
    assert messenger.notify.call_args_list == [call(Notification(event=event, user=user))]


def test_work_skips_events_not_after(parts):
    repo, crawler, messenger, _, usecase = parts
    old = Event(crawler="crawler", user_name="test", event_time=now() - timedelta(days=2))
    crawler.crawl.return_value = [old]

    assert usecase.work(now() - timedelta(hours=1)) == []
    assert repo.save_event.call_count == 0
    assert messenger.notify.call_count == 0


def test_work_skips_already_existing(parts):
    repo, crawler, messenger, _, usecase = parts
    event = Event(crawler="crawler", user_name="test", event_time=now())
    crawler.crawl.return_value = [event]
    repo.save_event.side_effect = AlreadyExistsError()

    assert usecase.work(now() - timedelta(hours=1)) == []
    assert messenger.notify.call_count == 0


def test_work_rejects_empty_event_time(parts):
    _, crawler, _, _, usecase = parts
    crawler.crawl.return_value = [Event(crawler="crawler", user_name="test")]
    with pytest.raises(ValueError, match="empty EventTime"):
        usecase.work(now())


def test_work_propagates_save_error(parts):
    repo, crawler, _, _, usecase = parts
    crawler.crawl.return_value = [Event(user_name="test", event_time=now())]
    repo.save_event.side_effect = RuntimeError("db down")
    with pytest.raises(RuntimeError, match="db down"):
        usecase.work(now() - timedelta(hours=1))


def test_work_propagates_notify_error(parts):
    repo, crawler, messenger, _, usecase = parts
    crawler.crawl.return_value = [Event(user_name="test", event_time=now())]
    repo.get_channel.return_value = Channel("id", "test")
    messenger.notify.side_effect = RuntimeError("slack down")
    with pytest.raises(RuntimeError, match="slack down"):
        usecase.work(now() - timedelta(hours=1))


def test_get_channel_syncs_when_unknown(parts):
    repo, _, messenger, _, usecase = parts
    channels = [Channel("C1", "general")]
    repo.get_channel.side_effect = [None, Channel("C1", "general")]
    messenger.get_channels.return_value = channels

    assert usecase.get_channel("general") == Channel("C1", "general")
    assert repo.sync_channels.call_args_list == [call(channels)]


def test_get_channel_missing_after_sync(parts):
    repo, _, messenger, _, usecase = parts
    repo.get_channel.return_value = None
    messenger.get_channels.return_value = []
    with pytest.raises(LookupError, match="empty channel"):
        usecase.get_channel("nowhere")


def test_archive_success(parts):
    repo, _, messenger, archive, usecase = parts
    channel = Channel(id="id", name="name")
    date_from = now() - timedelta(hours=1)
    date_to = now()
    posts = [
        Post(title="a", labels=["old", "new"], bodies=[], comments=[]),
        Post(title="b", labels=["old", "new"], bodies=[], comments=[]),
    ]
    repo.get_channel.return_value = channel
    messenger.archive_posts.return_value = posts
    archive.list_labels.return_value = {"old"}

    usecase.archive(channel.name, date_from, date_to)

    assert messenger.archive_posts.call_args_list == [call(channel, date_from, date_to)]
    assert archive.create_label.call_args_list == [call("new")]
    assert archive.create_posts.call_args_list == [call(posts)]


def test_archive_keeps_post_content(parts):
    repo, _, messenger, archive, usecase = parts
    post = Post(title="t", labels=[], bodies=[Body(text="x")], comments=[Comment()])
    repo.get_channel.return_value = Channel("id", "name")
    messenger.archive_posts.return_value = [post]
    archive.list_labels.return_value = set()

    usecase.archive("name", now(), now())

    assert archive.create_label.call_count == 0
    assert archive.create_posts.call_args == call([post])


def test_sync_label_success(parts):
    _, _, messenger, archive, usecase = parts
    labels = ["a", "b"]
    messenger.get_labels.return_value = labels

    usecase.sync_label()

    assert archive.sync_labels.call_args_list == [call(labels)]


def test_sync_label_error(parts):
    _, _, messenger, archive, usecase = parts
    messenger.get_labels.side_effect = RuntimeError("")
    with pytest.raises(RuntimeError):
        usecase.sync_label()
    assert archive.sync_labels.call_count == 0