"""Shared post parsing and the formatter contract every platform implements."""

from __future__ import annotations

import abc
import re
from dataclasses import dataclass, field
from typing import Any

import yaml

from errors import PublishError, TransformError
from publisher.client import AuthDescriptor, PublishRequest
from resolver.links import LinkResolver

_FRONTMATTER = re.compile(r"^---\s*\n(.*?)\n---\s*\n?(.*)$", re.DOTALL)


@dataclass
class Post:
    """A blog post split into frontmatter fields and Markdown body."""

    title: str
    slug: str
    body: str
    description: str = ""
    image: str = ""
    image_attribution: str = ""
    categories: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def relative_url(self) -> str:
        return relative_url(self.slug)


def relative_url(slug: str) -> str:
    """``"/" + slug`` with leading/trailing slashes stripped from the slug."""
    return "/" + slug.strip("/")


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]


def parse_post(text: str) -> Post:
    """Split YAML frontmatter from the Markdown body.

    Expected format:
        ---
        title: ...
        slug: ...
        ---
        Body text here.

    Raises TransformError when the frontmatter is missing, unparsable or
    lacks a title or slug.
    """
    match = _FRONTMATTER.match(text)
    if not match:
        raise TransformError("Post has no frontmatter block")
    try:
        meta = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as exc:
        raise TransformError(f"Invalid frontmatter: {exc}") from exc
    if not isinstance(meta, dict):
        raise TransformError("Frontmatter must be a mapping")

    title = meta.get("title")
    slug = meta.get("slug")
    if not title or not slug:
        raise TransformError("Frontmatter must define both 'title' and 'slug'")

    return Post(
        title=str(title),
        slug=str(slug),
        body=match.group(2),
        description=str(meta.get("description") or ""),
        image=str(meta.get("image") or ""),
        image_attribution=str(meta.get("image_attribution") or ""),
        categories=_as_list(meta.get("categories")),
        tags=_as_list(meta.get("tags")),
        meta=meta,
    )


@dataclass(frozen=True)
class FormattedPost:
    payload: dict[str, Any]
    relative_url: str


class PlatformFormatter(abc.ABC):
    """One target platform: payload shape, embed syntax and response parsing."""

    platform_id: str = ""

    @abc.abstractmethod
    def embed_tweet(self, url: str) -> str:
        """Return this platform's embed expression for a tweet URL."""

    @abc.abstractmethod
    def build_payload(
        self, post: Post, body: str, canonical_url: str | None
    ) -> dict[str, Any]:
        """Build the request body from a post and its resolved body."""

    @abc.abstractmethod
    def extract_url(self, response: dict[str, Any]) -> str:
        """Pull the published article URL out of the platform's response."""

    def compose(self, post: Post) -> str:
        """Markdown that goes through the resolver; the post body by default."""
        return post.body

    def format(
        self,
        post: Post,
        resolver: LinkResolver,
        canonical_url: str | None,
    ) -> FormattedPost:
        body = resolver.resolve(self.compose(post), self.platform_id, self.embed_tweet)
        return FormattedPost(
            payload=self.build_payload(post, body, canonical_url),
            relative_url=post.relative_url,
        )

    def published_url(self, response: dict[str, Any]) -> str:
        try:
            url = self.extract_url(response)
        except (KeyError, TypeError) as exc:
            raise PublishError(
                f"{self.platform_id} response has no article URL: {exc!r}"
            ) from exc
        if not url:
            raise PublishError(f"{self.platform_id} response has an empty article URL")
        return url


@dataclass(frozen=True)
class PlatformCapability:
    """An enabled platform: how to format for it and how to call it."""

    platform_id: str
    formatter: PlatformFormatter
    request: PublishRequest
    auth: AuthDescriptor
    secret_key: str

    def publish_request(self, payload: dict[str, Any]) -> PublishRequest:
        """The request template with *payload* as its body."""
        return self.request.with_body(payload)
