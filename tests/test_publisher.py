"""Tests for the publisher package: request preparation, HTTP executor, secrets."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from unittest.mock import AsyncMock

import httpx
import pytest

from errors import PublishError, SecretMissingError, TransientPublishError
from publisher import (
    DRY_RUN_RESPONSE,
    AuthDescriptor,
    EnvSecretSource,
    FileSecretSource,
    Publisher,
    PublishRequest,
    SecretCache,
    prepare_request,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

REQUEST = PublishRequest(
    method="post",
    base_url="https://api.example.com/posts",
    headers={"accept": "application/json"},
    body={"title": "Hello"},
)
HEADER_AUTH = AuthDescriptor(location="header", key="api-key")


def make_secrets(**values: str) -> SecretCache:
    environ = {f"CROSSPOST_SECRET_{k.upper()}": v for k, v in values.items()}
    return SecretCache(EnvSecretSource(environ))


def make_publisher(handler, **secrets: str) -> Publisher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return Publisher(make_secrets(**secrets), client=client)


# ---------------------------------------------------------------------------
# prepare_request
# ---------------------------------------------------------------------------

class TestPrepareRequest:
    def test_header_auth(self):
        prepared = prepare_request(REQUEST, HEADER_AUTH, "s3cret")
        assert prepared.method == "POST"
        assert prepared.url == "https://api.example.com/posts"
        assert prepared.headers == {"accept": "application/json", "api-key": "s3cret"}
        assert prepared.body == {"title": "Hello"}

    def test_header_auth_with_prefix(self):
        auth = AuthDescriptor(location="header", key="Authorization", prefix="Bearer")
        prepared = prepare_request(REQUEST, auth, "tok")
        assert prepared.headers["Authorization"] == "Bearer tok"

    def test_query_auth(self):
        auth = AuthDescriptor(location="query", key="accessToken")
        prepared = prepare_request(REQUEST, auth, "tok")
        assert prepared.url == "https://api.example.com/posts?accessToken=tok"
        assert "accessToken" not in prepared.headers

    def test_query_auth_appends_to_existing_query(self):
        request = PublishRequest(method="POST", base_url="https://x.test/p?a=1")
        auth = AuthDescriptor(location="query", key="accessToken")
        prepared = prepare_request(request, auth, "tok")
        assert prepared.url == "https://x.test/p?a=1&accessToken=tok"

    def test_template_is_not_mutated(self):
        prepare_request(REQUEST, HEADER_AUTH, "s3cret")
        assert "api-key" not in REQUEST.headers

    def test_unknown_location(self):
        with pytest.raises(ValueError):
            AuthDescriptor(location="cookie", key="x")


# ---------------------------------------------------------------------------
# Publisher.send
# ---------------------------------------------------------------------------

class TestPublisherSend:
    def test_success_returns_json(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"url": "https://dev.to/me/hello"})

        publisher = make_publisher(handler, dev="k-123")
        response = asyncio.run(publisher.send(REQUEST, HEADER_AUTH, "dev"))

        assert response == {"url": "https://dev.to/me/hello"}
        assert seen[0].method == "POST"
        assert seen[0].headers["api-key"] == "k-123"
        assert json.loads(seen[0].content) == {"title": "Hello"}

    def test_empty_body_is_empty_dict(self):
        publisher = make_publisher(lambda r: httpx.Response(204), dev="k")
        assert asyncio.run(publisher.send(REQUEST, HEADER_AUTH, "dev")) == {}

    def test_non_json_success_raises(self):
        publisher = make_publisher(lambda r: httpx.Response(200, text="<html>"), dev="k")
        with pytest.raises(PublishError):
            asyncio.run(publisher.send(REQUEST, HEADER_AUTH, "dev"))

    def test_client_error_carries_status_and_body(self):
        publisher = make_publisher(
            lambda r: httpx.Response(422, text='{"error":"title taken"}'), dev="k"
        )
        with pytest.raises(PublishError) as excinfo:
            asyncio.run(publisher.send(REQUEST, HEADER_AUTH, "dev"))
        assert not isinstance(excinfo.value, TransientPublishError)
        assert excinfo.value.status == 422
        assert "title taken" in excinfo.value.body

    @pytest.mark.parametrize("status", [429, 500, 503])
    def test_transient_statuses(self, status: int):
        publisher = make_publisher(lambda r: httpx.Response(status, text="busy"), dev="k")
        with pytest.raises(TransientPublishError, match=str(status)):
            asyncio.run(publisher.send(REQUEST, HEADER_AUTH, "dev"))

    def test_network_error_is_transient(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        publisher = make_publisher(handler, dev="k")
        with pytest.raises(TransientPublishError):
            asyncio.run(publisher.send(REQUEST, HEADER_AUTH, "dev"))

    def test_missing_secret(self):
        handler = AsyncMock()
        publisher = make_publisher(handler)
        with pytest.raises(SecretMissingError, match="dev"):
            asyncio.run(publisher.send(REQUEST, HEADER_AUTH, "dev"))
        handler.assert_not_called()


class TestDryRun:
    def test_returns_stub_without_network_or_secrets(self):
        source = AsyncMock()
        handler = AsyncMock()
        publisher = Publisher(
            SecretCache(source),
            dry_run=True,
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        response = asyncio.run(publisher.send(REQUEST, HEADER_AUTH, "dev"))

        assert response == DRY_RUN_RESPONSE
        source.load.assert_not_called()
        handler.assert_not_called()

    def test_stub_is_a_copy(self):
        publisher = Publisher(make_secrets(), dry_run=True)
        response = asyncio.run(publisher.send(REQUEST, HEADER_AUTH, "dev"))
        response["url"] = "changed"
        assert DRY_RUN_RESPONSE["url"] != "changed"


# ---------------------------------------------------------------------------
# Secrets
# ---------------------------------------------------------------------------

class TestSecrets:
    def test_env_source(self):
        source = EnvSecretSource({"CROSSPOST_SECRET_DEV": "a", "OTHER": "b", "CROSSPOST_SECRET_X": ""})
        assert asyncio.run(source.load()) == {"dev": "a"}

    def test_file_source(self, tmp_path: Path):
        path = tmp_path / "secrets.yml"
        path.write_text("dev: abc\nmedium: def\n")
        assert asyncio.run(FileSecretSource(path).load()) == {"dev": "abc", "medium": "def"}

    def test_file_source_missing(self, tmp_path: Path):
        with pytest.raises(SecretMissingError):
            asyncio.run(FileSecretSource(tmp_path / "nope.yml").load())

    def test_file_source_not_a_mapping(self, tmp_path: Path):
        path = tmp_path / "secrets.yml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(SecretMissingError):
            asyncio.run(FileSecretSource(path).load())

    def test_cache_loads_once_for_known_keys(self):
        source = AsyncMock()
        source.load.return_value = {"dev": "a", "medium": "b"}
        cache = SecretCache(source)

        assert asyncio.run(cache.get("dev")) == "a"
        assert asyncio.run(cache.get("medium")) == "b"
        source.load.assert_awaited_once()

    def test_require_missing(self):
        with pytest.raises(SecretMissingError):
            asyncio.run(make_secrets().require("sendgrid"))
