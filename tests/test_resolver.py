"""Tests for link and tweet-embed rewriting."""

from __future__ import annotations

import pytest

from ledger import CatalogEntry
from resolver import LinkResolver, find_links, find_tweets, tweet_url


BASE = "https://blog.example"
CATALOG = [
    CatalogEntry(url="/a", title="A", links={"devLike": "https://dev.example/a"}),
    CatalogEntry(url="/b", title="B", links={"medium": "https://medium.com/@me/b"}),
]


def plain(url: str) -> str:
    return url


@pytest.fixture()
def resolver() -> LinkResolver:
    return LinkResolver(CATALOG, canonical_platform="blog", fallback_base_url=BASE)


class TestFinders:
    def test_find_links(self):
        assert find_links("see [x](/a) and (aside) and [y](/b)") == ["/a", "aside", "/b"]

    def test_find_tweets(self):
        body = 'Hi {{<tweet user="foo" id="123">}} and {{<tweet user="Bar9" id="456">}}'
        assert find_tweets(body) == [("foo", "123"), ("Bar9", "456")]

    def test_tweet_url(self):
        assert tweet_url("foo", "123") == "https://twitter.com/foo/status/123"


class TestLinkRewrite:
    def test_platform_url_substituted(self, resolver: LinkResolver):
        assert resolver.rewrite_links("(/a)", "devLike") == "(https://dev.example/a)"

    def test_fallback_base_for_missing_platform(self, resolver: LinkResolver):
        assert resolver.rewrite_links("(/a)", "hashnode") == f"({BASE}/a)"

    def test_unknown_target_unchanged(self, resolver: LinkResolver):
        body = "[ext](https://python.org) (just an aside)"
        assert resolver.rewrite_links(body, "devLike") == body

    def test_identical_targets_all_replaced(self, resolver: LinkResolver):
        body = "[one](/a) then [two](/a)"
        assert resolver.rewrite_links(body, "devLike") == (
            "[one](https://dev.example/a) then [two](https://dev.example/a)"
        )

    def test_prefix_of_other_target_not_rewritten(self, resolver: LinkResolver):
        # "/a" must not be substituted inside "/a/b"
        assert resolver.rewrite_links("(/a/b)", "devLike") == "(/a/b)"

    def test_blog_fallback_when_canonical_is_a_platform(self):
        catalog = [CatalogEntry("/a", "A", {"dev": "https://dev.example/a"})]
        resolver = LinkResolver(catalog, canonical_platform="dev", fallback_base_url=BASE)
        assert resolver.rewrite_links("(/a)", "medium") == f"({BASE}/a)"
        assert resolver.rewrite_links("(/a)", "dev") == "(https://dev.example/a)"


class TestTweetRewrite:
    BODY = 'Look: {{<tweet user="foo" id="123">}}'

    def test_dev_style_embed(self, resolver: LinkResolver):
        out = resolver.resolve(self.BODY, "dev", lambda u: f"{{% twitter {u} %}}")
        assert out == "Look: {% twitter https://twitter.com/foo/status/123 %}"

    def test_hashnode_style_embed(self, resolver: LinkResolver):
        out = resolver.resolve(self.BODY, "hashnode", lambda u: f"%[{u}]")
        assert out == "Look: %[https://twitter.com/foo/status/123]"

    def test_bare_embed(self, resolver: LinkResolver):
        out = resolver.resolve(self.BODY, "medium", plain)
        assert out == "Look: https://twitter.com/foo/status/123"

    def test_links_and_tweets_together(self, resolver: LinkResolver):
        body = '[A](/a)\n{{<tweet user="foo" id="1">}}\n[A again](/a)'
        out = resolver.resolve(body, "devLike", plain)
        assert out == (
            "[A](https://dev.example/a)\n"
            "https://twitter.com/foo/status/1\n"
            "[A again](https://dev.example/a)"
        )
