# crawlslack

A library of crawlers for news sites, research boards, job searches and
RSS/Atom feeds. Each crawler turns what it finds into events; the package
remembers which events it has already seen and posts the new ones to Slack.
It can also copy the threads of a Slack channel to GitHub issues, with
Slack emoji reactions named `c-<label>` becoming issue labels.

## Modules

- `crawlslack.entities` holds the data passed around: `Event`, `Channel`,
  `Notification`, `Post`, `Comment`, `Body`, `File` (with `File.name()`,
  the last path component), and `AlreadyExistsError`, raised when an event
  has been stored before.
- `crawlslack.usecase` defines the abstract `Crawler`, `Repository`,
  `Messenger`, `Archive` and `ChannelService` interfaces, and `UseCase`,
  which ties one of each together:
  - `work(after)` crawls, skips events whose `event_time` is not later than
    `after` or that the repository already holds, notifies the rest and
    returns them; an event with no `event_time` raises `ValueError`;
  - `get_channel(name)` looks a channel up in the repository and, if it is
    unknown, reloads all channels from the messenger first; a name that is
    still unknown raises `LookupError`;
  - `archive(channel, date_from, date_to)` turns the channel's threads into
    posts, creates any missing labels, and stores the posts;
  - `sync_label()` creates an archive label for every messenger label.
- `crawlslack.repository` stores events and the channel directory in any
  SQLAlchemy database. `create_schema(engine)` creates the `event` and
  `channel` tables; `EventRepository(engine)` implements `Repository` and
  adds `remove_old_events(before)`, which deletes events stored before a
  given time and returns how many went. Events are keyed by their uid and
  name.
- `crawlslack.slack.client.SlackClient(token, negative_filters, session)`
  implements `Messenger` over the Slack Web API. Long messages (over 10,000
  bytes) are posted as a thread in chunks of six lines. Helper functions
  `message_to_body`, `message_to_labels`, `build_post` and
  `split_notification` are usable on their own.
- `crawlslack.slack.filters` decides which threads are archived. Every
  client always applies `MessageSubTypeExistsFilter` first and the positive
  filters `IsUserMessageFilter`, `IsUserReactedFilter` and
  `IsUserThreadedFilter` last; `parse_filters` turns the specs `"no-link"`
  and `"exclude-emoji:<name>"` into `NoLinkFilter` and `ExcludeEmojiFilter`
  to put in between, and raises `ValueError` for anything else.
- `crawlslack.githubclient.GithubClient(token, owner, repo, session)`
  implements `Archive`: posts become issues and comments, file attachments
  are uploaded to a release named after the time of posting, and labels get
  a random colour.
- `crawlslack.sources` holds one crawler per site, each implementing
  `Crawler`:
  - `hackernews.HackerNewsCrawler(channel, point_threshold)` — front-page
    stories at least two hours old with enough points;
  - `rss.RssCrawler(channel, name, site, transformers)` — any RSS 2.0,
    RSS 1.0 or Atom feed, with optional `CategoryMustContainsTransformer`,
    `UrlMustContainsTransformer` (both drop items that match),
    `FetchRssTransformer` and `TechBlogPostsTransformer`;
  - `naverd2.NaverD2Crawler(channel)`, `quastor.QuastorCrawler(channel)`,
    `goldmansachs.GoldmanSachsCrawler(channel)` — engineering blog posts;
  - `kcif.KcifCrawler(channel)`, `miraeasset.MiraeAssetCrawler(channel)` —
    financial research reports with their summaries;
  - `ipo.IpoCrawler(channel)` — companies in their IPO subscription period;
  - `wanted.WantedCrawler(channel, query, excludes)`,
    `navercareer.NaverCareerCrawler(channel, query, includes, excludes)` —
    job postings;
  - `lottecinema.LotteCinemaCrawler(channel, date)` — screenings of a day.

  Each source module also exposes its parsing and `build_events` functions,
  so pages and API responses can be processed without network access.

Slack and GitHub calls are retried up to 20 times, five seconds apart.

## Example: send new Hacker News stories to a channel

```python
import os
from datetime import datetime, timedelta, timezone

import requests
from sqlalchemy import create_engine

from crawlslack.githubclient import GithubClient
from crawlslack.repository import EventRepository, create_schema
from crawlslack.slack.client import SlackClient
from crawlslack.sources.hackernews import HackerNewsCrawler
from crawlslack.usecase import UseCase

engine = create_engine("sqlite:///events.db")
create_schema(engine)

session = requests.Session()
use_case = UseCase(
    repository=EventRepository(engine),
    crawler=HackerNewsCrawler("hacker-news", 100),
    messenger=SlackClient(os.environ["SLACK_BOT_TOKEN"], [], session),
    archive=None,
)
new_events = use_case.work(datetime.now(timezone.utc) - timedelta(days=1))
```

Running the same crawl again only notifies what is new.

## Example: archive last week's threads to GitHub

```python
from crawlslack.slack.filters import parse_filters

filters = parse_filters(["no-link", "exclude-emoji:x"])
use_case = UseCase(
    repository=EventRepository(engine),
    crawler=None,
    messenger=SlackClient(os.environ["SLACK_BOT_TOKEN"], filters, session),
    archive=GithubClient(os.environ["GITHUB_TOKEN"], "my-org", "my-archive", session),
)
now = datetime.now(timezone.utc)
use_case.archive("channel-name", now - timedelta(days=7), now)
```

## What it does not do

crawlslack is a library only. It installs no command-line program, reads no
configuration or environment variables of its own, and has no scheduler:
the caller builds the `UseCase`, chooses the database, and decides when to
call `work`, `archive` or `sync_label`. It has no crawlers that drive a
browser, and none for sites beyond those listed above.

## Tests

```
pip install -e ".[test]"
pytest
```