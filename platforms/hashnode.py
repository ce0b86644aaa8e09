"""Hashnode GraphQL API."""

from __future__ import annotations

from typing import Any

from platforms.base import PlatformCapability, PlatformFormatter, Post
from publisher.client import AuthDescriptor, PublishRequest

HASHNODE_API_URL = "https://api.hashnode.com"

CREATE_STORY_MUTATION = (
    "mutation createPublicationStory($input: CreateStoryInput!, $publicationId: String!)"
    "{ createPublicationStory( input: $input, publicationId: $publicationId )"
    "{ code success message post { slug }} }"
)


class HashnodeFormatter(PlatformFormatter):
    platform_id = "hashnode"

    def __init__(self, publication_id: str = "", blog_url: str = "") -> None:
        self.publication_id = publication_id
        self.blog_url = blog_url.rstrip("/")

    def embed_tweet(self, url: str) -> str:
        return f"%[{url}]"

    def build_payload(
        self, post: Post, body: str, canonical_url: str | None
    ) -> dict[str, Any]:
        story: dict[str, Any] = {
            "title": post.title,
            "contentMarkdown": body,
            "coverImageURL": post.image,
        }
        if canonical_url:
            story["isRepublished"] = {"originalArticleURL": canonical_url}
        story["tags"] = []
        story["subtitle"] = post.description
        return {
            "query": CREATE_STORY_MUTATION,
            "variables": {
                "publicationId": self.publication_id,
                "input": story,
            },
        }

    def extract_url(self, response: dict[str, Any]) -> str:
        slug = response["data"]["createPublicationStory"]["post"]["slug"]
        return f"{self.blog_url}/{slug}"


def capability(
    publication_id: str = "",
    blog_url: str = "",
    secret_key: str = "hashnode",
) -> PlatformCapability:
    return PlatformCapability(
        platform_id=HashnodeFormatter.platform_id,
        formatter=HashnodeFormatter(publication_id, blog_url),
        request=PublishRequest(
            method="POST",
            base_url=HASHNODE_API_URL,
            headers={"content-type": "application/json"},
        ),
        auth=AuthDescriptor(location="header", key="Authorization"),
        secret_key=secret_key,
    )
