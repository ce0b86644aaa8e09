"""Rewrite intra-site links and tweet shortcodes for a destination platform."""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterable

from ledger.models import CatalogEntry

logger = logging.getLogger(__name__)

# Any parenthesised text; catalog lookups decide whether it is a link target.
LINK_PATTERN = re.compile(r"\(([^\)]*)\)")
TWEET_PATTERN = re.compile(r'\{\{<tweet user="([a-zA-Z0-9]*)" id="(\d*)">\}\}')

BLOG_PLATFORM = "blog"


def tweet_url(user: str, tweet_id: str) -> str:
    return f"https://twitter.com/{user}/status/{tweet_id}"


def find_links(body: str) -> list[str]:
    """Return every parenthesised target in *body*, in order."""
    return [m.group(1) for m in LINK_PATTERN.finditer(body)]


def find_tweets(body: str) -> list[tuple[str, str]]:
    """Return ``(user, id)`` for every tweet shortcode in *body*."""
    return [(m.group(1), m.group(2)) for m in TWEET_PATTERN.finditer(body)]


class LinkResolver:
    """Substitutes catalog links and tweet embeds in post bodies.

    Parameters
    ----------
    catalog:
        Entries for articles that are already published everywhere.
    canonical_platform:
        Platform whose URLs are authoritative.  ``"blog"`` means the
        source blog itself.  Link targets never use it: an entry without
        a URL for the destination always falls back to the blog.
    fallback_base_url:
        Absolute base URL of the source blog, prepended to a catalog
        entry's relative URL when no platform URL applies.
    """

    def __init__(
        self,
        catalog: Iterable[CatalogEntry],
        canonical_platform: str = BLOG_PLATFORM,
        fallback_base_url: str = "",
    ) -> None:
        self.catalog = {entry.url: entry for entry in catalog}
        self.canonical_platform = canonical_platform
        self.fallback_base_url = fallback_base_url.rstrip("/")

    def _target_for(self, entry: CatalogEntry, platform_id: str) -> str:
        url = entry.link_for(platform_id)
        if url:
            return url
        return f"{self.fallback_base_url}{entry.url}"

    def rewrite_links(self, body: str, platform_id: str) -> str:
        def replace(match: re.Match) -> str:
            entry = self.catalog.get(match.group(1))
            if entry is None:
                return match.group(0)
            return f"({self._target_for(entry, platform_id)})"

        return LINK_PATTERN.sub(replace, body)

    @staticmethod
    def rewrite_tweets(body: str, embed: Callable[[str], str]) -> str:
        return TWEET_PATTERN.sub(
            lambda m: embed(tweet_url(m.group(1), m.group(2))), body
        )

    def resolve(
        self,
        body: str,
        platform_id: str,
        embed: Callable[[str], str],
    ) -> str:
        """Return *body* rewritten for *platform_id*.

        Each token class is rewritten in a single pass, so a substituted
        URL is never rewritten again and repeated targets are all replaced.
        """
        resolved = self.rewrite_links(body, platform_id)
        resolved = self.rewrite_tweets(resolved, embed)
        logger.debug("Resolved body for %s", platform_id)
        return resolved
