"""Tests for post parsing and the dev.to, Medium and Hashnode formatters."""

from __future__ import annotations

import textwrap

import pytest

from config import Config
from errors import PublishError, TransformError
from ledger import CatalogEntry
from platforms import build_capabilities, parse_post, relative_url
from platforms.devto import DEV_API_URL, DevFormatter
from platforms.hashnode import CREATE_STORY_MUTATION, HASHNODE_API_URL, HashnodeFormatter
from platforms.medium import MediumFormatter, medium_posts_url
from resolver import LinkResolver


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SAMPLE_MD = textwrap.dedent("""\
    ---
    title: Building an Async Crawler
    slug: /async-crawler/
    description: Notes from a weekend project
    image: https://img.example/crawler.png
    image_attribution: Photo by Someone
    categories:
      - python
    tags:
      - web dev
      - asyncio
    ---
    See [the intro](/intro) and {{<tweet user="guido" id="42">}}
""")

CANONICAL = "https://blog.example/async-crawler"


@pytest.fixture()
def resolver() -> LinkResolver:
    catalog = [CatalogEntry("/intro", "Intro", {"dev": "https://dev.to/me/intro"})]
    return LinkResolver(catalog, fallback_base_url="https://blog.example")


# ---------------------------------------------------------------------------
# parse_post
# ---------------------------------------------------------------------------

class TestParsePost:
    def test_fields(self):
        post = parse_post(SAMPLE_MD)
        assert post.title == "Building an Async Crawler"
        assert post.slug == "/async-crawler/"
        assert post.relative_url == "/async-crawler"
        assert post.categories == ["python"]
        assert post.tags == ["web dev", "asyncio"]
        assert post.body.startswith("See [the intro]")

    def test_scalar_tags_become_list(self):
        post = parse_post("---\ntitle: T\nslug: t\ntags: solo\n---\nbody\n")
        assert post.tags == ["solo"]

    def test_no_frontmatter(self):
        with pytest.raises(TransformError):
            parse_post("Just plain markdown.\n")

    def test_missing_slug(self):
        with pytest.raises(TransformError, match="slug"):
            parse_post("---\ntitle: Only a title\n---\nbody\n")

    def test_frontmatter_not_a_mapping(self):
        with pytest.raises(TransformError):
            parse_post("---\n- a\n- b\n---\nbody\n")

    def test_invalid_yaml(self):
        with pytest.raises(TransformError):
            parse_post("---\ntitle: [unclosed\n---\nbody\n")

    def test_relative_url(self):
        assert relative_url("hello") == "/hello"
        assert relative_url("/nested/hello/") == "/nested/hello"


# ---------------------------------------------------------------------------
# dev.to
# ---------------------------------------------------------------------------

class TestDevFormatter:
    def test_payload(self, resolver: LinkResolver):
        formatted = DevFormatter("org-7").format(parse_post(SAMPLE_MD), resolver, CANONICAL)
        article = formatted.payload["article"]

        assert formatted.relative_url == "/async-crawler"
        assert article["title"] == "Building an Async Crawler"
        assert article["published"] is True
        assert article["main_image"] == "https://img.example/crawler.png"
        assert article["canonical_url"] == CANONICAL
        assert article["description"] == "Notes from a weekend project"
        assert article["tags"] == ["python", "webdev", "asyncio"]
        assert article["organization_id"] == "org-7"
        assert "(https://dev.to/me/intro)" in article["body_markdown"]
        assert "{% twitter https://twitter.com/guido/status/42 %}" in article["body_markdown"]

    def test_no_canonical_or_org(self, resolver: LinkResolver):
        article = DevFormatter().format(parse_post(SAMPLE_MD), resolver, None).payload["article"]
        assert "canonical_url" not in article
        assert "organization_id" not in article

    def test_published_url(self):
        assert DevFormatter().published_url({"url": "https://dev.to/me/x"}) == "https://dev.to/me/x"

    def test_published_url_missing(self):
        with pytest.raises(PublishError, match="dev"):
            DevFormatter().published_url({"id": 1})


# ---------------------------------------------------------------------------
# Medium
# ---------------------------------------------------------------------------

class TestMediumFormatter:
    def test_payload(self, resolver: LinkResolver):
        payload = MediumFormatter().format(parse_post(SAMPLE_MD), resolver, CANONICAL).payload

        assert payload["title"] == "Building an Async Crawler"
        assert payload["contentFormat"] == "markdown"
        assert payload["tags"] == ["python", "web dev", "asyncio"]
        assert payload["canonicalUrl"] == CANONICAL
        assert payload["publishStatus"] == "draft"
        assert payload["notifyFollowers"] is True
        assert payload["content"].startswith(
            "\n# Building an Async Crawler\n"
            "#### Notes from a weekend project\n"
            "![Photo by Someone](https://img.example/crawler.png)\n"
        )
        # no Medium URL in the catalog: falls back to the blog
        assert "(https://blog.example/intro)" in payload["content"]
        assert "https://twitter.com/guido/status/42" in payload["content"]

    def test_header_links_are_rewritten(self, resolver: LinkResolver):
        post = parse_post(SAMPLE_MD.replace(
            "description: Notes from a weekend project",
            "description: A sequel to (/intro)",
        ))
        content = MediumFormatter().format(post, resolver, None).payload["content"]
        assert "#### A sequel to (https://blog.example/intro)\n" in content
        assert "(/intro)" not in content

    def test_published_url_prefers_data(self):
        response = {"data": {"url": "https://medium.com/@me/x"}}
        assert MediumFormatter().published_url(response) == "https://medium.com/@me/x"

    def test_published_url_top_level(self):
        assert MediumFormatter().published_url({"url": "https://m/x"}) == "https://m/x"

    def test_posts_url(self):
        assert medium_posts_url(author_id="u1") == "https://api.medium.com/v1/users/u1/posts"
        assert medium_posts_url("u1", "p9") == "https://api.medium.com/v1/publications/p9/posts"


# ---------------------------------------------------------------------------
# Hashnode
# ---------------------------------------------------------------------------

class TestHashnodeFormatter:
    def test_payload(self, resolver: LinkResolver):
        formatter = HashnodeFormatter("pub-1", "https://me.hashnode.dev/")
        payload = formatter.format(parse_post(SAMPLE_MD), resolver, CANONICAL).payload

        assert payload["query"] == CREATE_STORY_MUTATION
        assert payload["variables"]["publicationId"] == "pub-1"
        story = payload["variables"]["input"]
        assert story["title"] == "Building an Async Crawler"
        assert story["coverImageURL"] == "https://img.example/crawler.png"
        assert story["isRepublished"] == {"originalArticleURL": CANONICAL}
        assert story["tags"] == []
        assert story["subtitle"] == "Notes from a weekend project"
        assert "%[https://twitter.com/guido/status/42]" in story["contentMarkdown"]

    def test_published_url_from_slug(self):
        formatter = HashnodeFormatter("pub-1", "https://me.hashnode.dev/")
        response = {"data": {"createPublicationStory": {"post": {"slug": "async-crawler"}}}}
        assert formatter.published_url(response) == "https://me.hashnode.dev/async-crawler"

    def test_published_url_on_graphql_error(self):
        formatter = HashnodeFormatter("pub-1", "https://me.hashnode.dev")
        with pytest.raises(PublishError):
            formatter.published_url({"data": None, "errors": [{"message": "bad"}]})


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class TestBuildCapabilities:
    def test_configured_order_and_auth(self):
        cfg = Config(
            platforms=("hashnode", "dev", "medium"),
            medium_author_id="u1",
            hashnode_blog_url="https://me.hashnode.dev",
        )
        caps = build_capabilities(cfg)

        assert [c.platform_id for c in caps] == ["hashnode", "dev", "medium"]
        hashnode_cap, dev_cap, medium_cap = caps
        assert hashnode_cap.request.base_url == HASHNODE_API_URL
        assert hashnode_cap.auth.key == "Authorization"
        assert dev_cap.request.base_url == DEV_API_URL
        assert (dev_cap.auth.location, dev_cap.auth.key) == ("header", "api-key")
        assert (medium_cap.auth.location, medium_cap.auth.key) == ("query", "accessToken")

    def test_subset(self):
        caps = build_capabilities(Config(platforms=("dev",)))
        assert [c.platform_id for c in caps] == ["dev"]

    def test_custom_secret_key(self):
        cfg = Config(platforms=("dev",), secret_keys={"dev": "devto-prod"})
        assert build_capabilities(cfg)[0].secret_key == "devto-prod"

    def test_publish_request_keeps_template(self):
        cap = build_capabilities(Config(platforms=("dev",)))[0]
        request = cap.publish_request({"article": {}})
        assert request.body == {"article": {}}
        assert cap.request.body is None
