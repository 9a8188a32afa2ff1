"""Archive backed by GitHub issues, labels and release assets."""

from __future__ import annotations

import logging
import mimetypes
import random
import time
from datetime import datetime
from typing import Any, Callable, Iterable

import requests
from tenacity import Retrying, stop_after_attempt, wait_fixed

from crawlslack.entities import Body, File, Post
from crawlslack.usecase import Archive

logger = logging.getLogger(__name__)

API_URL = "https://api.github.com"
UPLOAD_URL = "https://uploads.github.com"
RELEASE_TAG_FORMAT = "%Y-%m-%d-%H-%M-%S"


class GithubClient(Archive):
    """Stores posts as issues of one repository; attachments go to a release."""

    retry_attempts = 20
    retry_delay = 5.0
    post_interval = 1.0

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        session: requests.Session | None = None,
    ) -> None:
        self._token = token
        self.owner = owner
        self.repo = repo
        self._session = session or requests.Session()

    @property
    def _repo_url(self) -> str:
        return f"{API_URL}/repos/{self.owner}/{self.repo}"

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        headers = {
            "Authorization": f"token {self._token}",
            "Accept": "application/vnd.github+json",
            **kwargs.pop("headers", {}),
        }
        response = self._session.request(method, url, headers=headers, timeout=60, **kwargs)
        logger.info(
            "API rate remaining %s/%s",
            response.headers.get("X-Ratelimit-Remaining", ""),
            response.headers.get("X-Ratelimit-Limit", ""),
        )
        response.raise_for_status()
        return response.json() if response.content else None

    def _retry(self, fn: Callable[..., Any], *args: Any) -> Any:
        retrying = Retrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_fixed(self.retry_delay),
            reraise=True,
        )
        return retrying(fn, *args)

    def _create_issue(self, title: str, body: str, labels: list[str] | None) -> int:
        payload = {"title": title, "body": body, "labels": list(labels or [])}
        issue = self._retry(self._request, "POST", f"{self._repo_url}/issues", json=payload)
        return issue["number"]

    def _create_release(self, tag: str, title: str) -> int:
        """Return the release for ``tag``, creating it when it does not exist."""

        def attempt() -> int:
            try:
                return self._request("GET", f"{self._repo_url}/releases/tags/{tag}")["id"]
            except requests.HTTPError:
                release = self._request(
                    "POST", f"{self._repo_url}/releases", json={"tag_name": tag, "name": title}
                )
                logger.debug("created release %s", tag)
                return release["id"]

        return self._retry(attempt)

    def _upload_asset(self, release_id: int, file: File) -> str:
        def attempt() -> str:
            # Reopen on every attempt: a failed upload consumes the stream.
            content_type = mimetypes.guess_type(file.name())[0] or "application/octet-stream"
            with open(file.path, "rb") as stream:
                asset = self._request(
                    "POST",
                    f"{UPLOAD_URL}/repos/{self.owner}/{self.repo}/releases/{release_id}/assets",
                    params={"name": file.name()},
                    data=stream,
                    headers={"Content-Type": content_type},
                )
            return asset["browser_download_url"]

        return self._retry(attempt)

    def _create_body(self, tag: str, title: str, bodies: Iterable[Body]) -> str:
        release_id: int | None = None
        parts: list[str] = []
        for body in bodies:
            parts.append(f"{body.text}\n")
            for file in body.files:
                if release_id is None:
                    release_id = self._create_release(tag, title)
                url = self._upload_asset(release_id, file)
                if file.is_image:
                    parts.append(f'<img alt="{file.name()}" src="{url}">\n')
                else:
                    parts.append(f'<a href="{url}">{file.name()}</a>')
        return "".join(parts)

    def _create_issue_comment(self, issue_number: int, body: str) -> None:
        self._retry(
            self._request,
            "POST",
            f"{self._repo_url}/issues/{issue_number}/comments",
            json={"body": body},
        )

    def create_post(self, post: Post) -> None:
        # The tag names the release holding this post's attachments.
        tag = datetime.now().strftime(RELEASE_TAG_FORMAT)
        # Keep the next post from sharing the same tag.
        time.sleep(self.post_interval)

        body = self._create_body(tag, post.title, post.bodies)
        issue_number = self._create_issue(post.title, body, post.labels)

        for comment in post.comments:
            self._create_issue_comment(
                issue_number, self._create_body(tag, post.title, comment.bodies)
            )

    def create_posts(self, posts: list[Post]) -> None:
        for post in posts:
            self.create_post(post)

    def create_label(self, name: str) -> None:
        color = f"{random.randrange(0xFFFFFF):06x}"
        self._retry(
            self._request, "POST", f"{self._repo_url}/labels", json={"name": name, "color": color}
        )
        logger.info("created label %s", name)

    def list_labels(self) -> set[str]:
        labels = self._retry(
            self._request, "GET", f"{self._repo_url}/labels", params={"per_page": 100}
        )
        return {label["name"] for label in labels or []}

    def sync_labels(self, labels: list[str]) -> None:
        current = self.list_labels()
        for label in labels:
            if label not in current:
                logger.info("new label %s", label)
                self.create_label(label)