"""Medium posts API.

Medium has no cover-image field, so the title, description and hero
image are rendered into the top of the Markdown content.
"""

from __future__ import annotations

from typing import Any

from platforms.base import PlatformCapability, PlatformFormatter, Post
from publisher.client import AuthDescriptor, PublishRequest

MEDIUM_API_BASE = "https://api.medium.com/v1"


def medium_posts_url(author_id: str = "", publication_id: str = "") -> str:
    """Publication posts endpoint when a publication is set, else the author's."""
    if publication_id:
        return f"{MEDIUM_API_BASE}/publications/{publication_id}/posts"
    return f"{MEDIUM_API_BASE}/users/{author_id}/posts"


class MediumFormatter(PlatformFormatter):
    platform_id = "medium"

    def embed_tweet(self, url: str) -> str:
        return url

    @staticmethod
    def _header(post: Post) -> str:
        return (
            f"\n# {post.title}\n"
            f"#### {post.description}\n"
            f"![{post.image_attribution}]({post.image})\n"
        )

    def compose(self, post: Post) -> str:
        # links in the header are rewritten along with the body
        return self._header(post) + post.body

    def build_payload(
        self, post: Post, body: str, canonical_url: str | None
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "title": post.title,
            "contentFormat": "markdown",
            "tags": post.categories + post.tags,
        }
        if canonical_url:
            payload["canonicalUrl"] = canonical_url
        payload.update(
            {
                "publishStatus": "draft",
                "notifyFollowers": True,
                "content": body,
            }
        )
        return payload

    def extract_url(self, response: dict[str, Any]) -> str:
        data = response.get("data")
        if isinstance(data, dict) and data.get("url"):
            return data["url"]
        return response["url"]


def capability(
    author_id: str = "",
    publication_id: str = "",
    secret_key: str = "medium",
) -> PlatformCapability:
    return PlatformCapability(
        platform_id=MediumFormatter.platform_id,
        formatter=MediumFormatter(),
        request=PublishRequest(
            method="POST",
            base_url=medium_posts_url(author_id, publication_id),
        ),
        auth=AuthDescriptor(location="query", key="accessToken"),
        secret_key=secret_key,
    )
