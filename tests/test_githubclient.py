import json
import re

import pytest
import requests
import responses

from crawlslack.entities import Body, Comment, File, Post
from crawlslack.githubclient import GithubClient

REPO_URL = "https://api.github.com/repos/owner/repo"


@pytest.fixture
def mocked():
    with responses.RequestsMock() as rsps:
        yield rsps


@pytest.fixture
def client():
    c = GithubClient("token", "owner", "repo")
    c.retry_attempts = 1
    c.retry_delay = 0
    c.post_interval = 0
    return c


def test_list_labels_returns_names(mocked, client):
    mocked.add(responses.GET, f"{REPO_URL}/labels", json=[{"name": "old"}, {"name": "news"}])
    assert client.list_labels() == {"old", "news"}


def test_list_labels_sends_token(mocked, client):
    mocked.add(responses.GET, f"{REPO_URL}/labels", json=[])
    assert client.list_labels() == set()
    assert mocked.calls[0].request.headers["Authorization"] == "token token"


def test_sync_labels_creates_only_missing(mocked, client):
    mocked.add(responses.GET, f"{REPO_URL}/labels", json=[{"name": "old"}])
    mocked.add(responses.POST, f"{REPO_URL}/labels", json={"name": "new"})
    assert client.sync_labels(["old", "new"]) is None
    created = [json.loads(c.request.body) for c in mocked.calls if c.request.method == "POST"]
    assert [c["name"] for c in created] == ["new"]
    assert len(created[0]["color"]) == 6
    assert int(created[0]["color"], 16) <= 0xFFFFFF


def test_create_post_without_files(mocked, client):
    mocked.add(responses.POST, f"{REPO_URL}/issues", json={"number": 3})
    mocked.add(responses.POST, f"{REPO_URL}/issues/3/comments", json={"id": 1})
    post = Post(
        title="title",
        labels=["a"],
        bodies=[Body(text="hello")],
        comments=[Comment(bodies=[Body(text="reply")])],
    )
    assert client.create_post(post) is None

    issue = json.loads(mocked.calls[0].request.body)
    assert issue == {"title": "title", "body": "hello\n", "labels": ["a"]}
    comment = json.loads(mocked.calls[1].request.body)
    assert comment == {"body": "reply\n"}


def test_create_post_uploads_image(mocked, client, tmp_path):
    image = tmp_path / "a.png"
    image.write_bytes(b"png")
    mocked.add(responses.GET, re.compile(rf"{REPO_URL}/releases/tags/.*"), status=404)
    mocked.add(responses.POST, f"{REPO_URL}/releases", json={"id": 7})
    mocked.add(
        responses.POST,
        re.compile(r"https://uploads\.github\.com/repos/owner/repo/releases/7/assets.*"),
        json={"browser_download_url": "https://example.com/a.png"},
    )
    mocked.add(responses.POST, f"{REPO_URL}/issues", json={"number": 1})

    result = client.create_post(
        Post(title="t", bodies=[Body(text="text", files=[File(path=str(image), is_image=True)])])
    )
    assert result is None

    upload = next(c for c in mocked.calls if "uploads.github.com" in c.request.url)
    assert "name=a.png" in upload.request.url
    issue = json.loads(mocked.calls[-1].request.body)
    assert issue["body"] == 'text\n<img alt="a.png" src="https://example.com/a.png">\n'


def test_create_post_reuses_existing_release_for_plain_file(mocked, client, tmp_path):
    doc = tmp_path / "doc.txt"
    doc.write_text("x")
    mocked.add(responses.GET, re.compile(rf"{REPO_URL}/releases/tags/.*"), json={"id": 9})
    mocked.add(
        responses.POST,
        re.compile(r"https://uploads\.github\.com/repos/owner/repo/releases/9/assets.*"),
        json={"browser_download_url": "https://example.com/doc.txt"},
    )
    mocked.add(responses.POST, f"{REPO_URL}/issues", json={"number": 2})

    result = client.create_post(Post(title="t", bodies=[Body(text="x", files=[File(path=str(doc))])]))
    assert result is None

    assert not any(c.request.url == f"{REPO_URL}/releases" for c in mocked.calls)
    issue = json.loads(mocked.calls[-1].request.body)
    assert issue["body"] == 'x\n<a href="https://example.com/doc.txt">doc.txt</a>'


def test_create_posts_in_order(mocked, client):
    mocked.add(responses.POST, f"{REPO_URL}/issues", json={"number": 1})
    assert client.create_posts([Post(title="a"), Post(title="b")]) is None
    titles = [json.loads(c.request.body)["title"] for c in mocked.calls]
    assert titles == ["a", "b"]


def test_issue_failure_raises(mocked, client):
    mocked.add(responses.POST, f"{REPO_URL}/issues", status=500)
    with pytest.raises(requests.HTTPError):
        client.create_post(Post(title="a"))