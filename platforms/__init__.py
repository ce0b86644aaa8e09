"""Target platforms and the registry that enables them from config."""

from __future__ import annotations

from config import Config
from platforms import devto, hashnode, medium
from platforms.base import (
    FormattedPost,
    PlatformCapability,
    PlatformFormatter,
    Post,
    parse_post,
    relative_url,
)


def build_capabilities(cfg: Config) -> list[PlatformCapability]:
    """Return the enabled platforms, in the order they are configured."""
    cfg.validate()
    factories = {
        "dev": lambda: devto.capability(
            organization_id=cfg.dev_org_id,
            secret_key=cfg.secret_keys.get("dev", "dev"),
        ),
        "medium": lambda: medium.capability(
            author_id=cfg.medium_author_id,
            publication_id=cfg.medium_publication_id,
            secret_key=cfg.secret_keys.get("medium", "medium"),
        ),
        "hashnode": lambda: hashnode.capability(
            publication_id=cfg.hashnode_publication_id,
            blog_url=cfg.hashnode_blog_url,
            secret_key=cfg.secret_keys.get("hashnode", "hashnode"),
        ),
    }
    return [factories[platform_id]() for platform_id in cfg.platforms]


__all__ = [
    "FormattedPost",
    "PlatformCapability",
    "PlatformFormatter",
    "Post",
    "build_capabilities",
    "parse_post",
    "relative_url",
]
