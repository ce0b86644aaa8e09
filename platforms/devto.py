"""dev.to (Forem) articles API."""

from __future__ import annotations

from typing import Any

from platforms.base import PlatformCapability, PlatformFormatter, Post
from publisher.client import AuthDescriptor, PublishRequest

DEV_API_URL = "https://dev.to/api/articles"


class DevFormatter(PlatformFormatter):
    platform_id = "dev"

    def __init__(self, organization_id: str = "") -> None:
        self.organization_id = organization_id

    def embed_tweet(self, url: str) -> str:
        return f"{{% twitter {url} %}}"

    @staticmethod
    def _tags(post: Post) -> list[str]:
        # dev.to rejects tags containing spaces
        return [t.replace(" ", "") for t in post.categories + post.tags]

    def build_payload(
        self, post: Post, body: str, canonical_url: str | None
    ) -> dict[str, Any]:
        article: dict[str, Any] = {
            "title": post.title,
            "published": True,
            "main_image": post.image,
        }
        if canonical_url:
            article["canonical_url"] = canonical_url
        article["description"] = post.description
        article["tags"] = self._tags(post)
        if self.organization_id:
            article["organization_id"] = self.organization_id
        article["body_markdown"] = body
        return {"article": article}

    def extract_url(self, response: dict[str, Any]) -> str:
        return response["url"]


def capability(organization_id: str = "", secret_key: str = "dev") -> PlatformCapability:
    return PlatformCapability(
        platform_id=DevFormatter.platform_id,
        formatter=DevFormatter(organization_id),
        request=PublishRequest(
            method="POST",
            base_url=DEV_API_URL,
            headers={"accept": "application/vnd.forem.api-v1+json"},
        ),
        auth=AuthDescriptor(location="header", key="api-key"),
        secret_key=secret_key,
    )
