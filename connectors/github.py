"""Detect newly added posts in a GitHub repository.

Recent commits whose message starts with the content indicator (``[blog]``
by default) are inspected; every file they *added* under the content path
becomes a work item.
"""

from __future__ import annotations

import base64
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import httpx

from connectors.base import BaseConnector, WorkItem
from errors import ConnectorError
from publisher.secrets import SecretCache

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"
USER_AGENT = "blog-crosspost/1.0"


class GitHubConnector(BaseConnector):
    """Poll a repository for commits that add blog posts.

    Parameters
    ----------
    owner, repo:
        Repository identity.
    content_path:
        Directory holding posts, e.g. ``content/blog``.
    secrets:
        Secret cache holding the ``github`` token.
    indicator:
        Commit-message prefix (case-insensitive) that marks new content.
    tolerance_minutes:
        How far back to look for commits on each poll.
    send_status_email:
        Copied onto every emitted work item.
    """

    source_name = "github"

    def __init__(
        self,
        owner: str,
        repo: str,
        content_path: str,
        secrets: SecretCache,
        indicator: str = "[blog]",
        tolerance_minutes: int = 10,
        send_status_email: bool = False,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.owner = owner
        self.repo = repo
        self.content_path = content_path.strip("/")
        self.secrets = secrets
        self.indicator = indicator.lower()
        self.tolerance_minutes = tolerance_minutes
        self.send_status_email = send_status_email
        self._client = client
        self._owns_client = client is None
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def setup(self) -> None:
        if self._client is None:
            token = await self.secrets.get("github")
            headers = {
                "User-Agent": USER_AGENT,
                "Accept": "application/vnd.github+json",
            }
            if token:
                headers["Authorization"] = f"Bearer {token}"
            self._client = httpx.AsyncClient(
                base_url=GITHUB_API_BASE,
                headers=headers,
                timeout=30.0,
            )

    async def teardown(self) -> None:
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # GitHub calls
    # ------------------------------------------------------------------

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        if self._client is None:
            await self.setup()
        try:
            resp = await self._client.get(path, params=params)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise ConnectorError(f"GitHub request {path} failed: {exc}") from exc
        return resp.json()

    async def recent_commits(self) -> list[str]:
        """SHAs of recent commits flagged as new content."""
        since = self._clock() - timedelta(minutes=self.tolerance_minutes)
        commits = await self._get(
            f"/repos/{self.owner}/{self.repo}/commits",
            params={"path": self.content_path, "since": since.isoformat()},
        )
        return [
            c["sha"]
            for c in commits
            if c["commit"]["message"].lower().startswith(self.indicator)
        ]

    async def added_files(self, sha: str) -> list[str]:
        detail = await self._get(f"/repos/{self.owner}/{self.repo}/commits/{sha}")
        prefix = f"{self.content_path}/"
        return [
            f["filename"]
            for f in detail.get("files") or []
            if f.get("status") == "added" and f["filename"].startswith(prefix)
        ]

    async def file_content(self, file_name: str) -> str:
        data = await self._get(f"/repos/{self.owner}/{self.repo}/contents/{file_name}")
        return base64.b64decode(data["content"]).decode("utf-8")

    async def poll(self) -> list[WorkItem]:
        shas = await self.recent_commits()
        if not shas:
            logger.info("No new content commits in the last %d minutes", self.tolerance_minutes)
            return []

        items: list[WorkItem] = []
        for sha in shas:
            for file_name in await self.added_files(sha):
                content = await self.file_content(file_name)
                items.append(
                    WorkItem(
                        commit=sha,
                        file_name=file_name,
                        content=content,
                        send_status_email=self.send_status_email,
                    )
                )
        logger.info("Found %d new post(s) in %s/%s", len(items), self.owner, self.repo)
        return items
