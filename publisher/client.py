"""Generic HTTP request executor for platform publish calls.

Requests are described declaratively (method, URL, headers, body) and the
platform credential is injected at the header or query location named
by an :class:`AuthDescriptor`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any
from urllib.parse import urlencode

import httpx

from errors import PublishError, SecretMissingError, TransientPublishError
from publisher.secrets import SecretCache

logger = logging.getLogger(__name__)

# Returned verbatim in dry-run mode.  Carries every field the platform
# URL extractors read, so a dry run walks the whole workflow.
DRY_RUN_RESPONSE: dict[str, Any] = {
    "url": "https://dry-run.invalid/post",
    "data": {
        "createPublicationStory": {
            "post": {"slug": "dry-run"},
        },
    },
}

_TRANSIENT_STATUSES = {408, 425, 429}


@dataclass(frozen=True)
class AuthDescriptor:
    """Where a credential goes: ``location`` is ``"header"`` or ``"query"``."""

    location: str
    key: str
    prefix: str | None = None

    def __post_init__(self) -> None:
        if self.location not in ("header", "query"):
            raise ValueError(f"Unknown auth location: {self.location}")

    def value(self, secret: str) -> str:
        return f"{self.prefix} {secret}" if self.prefix else secret


@dataclass(frozen=True)
class PublishRequest:
    method: str
    base_url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    query: dict[str, str] | None = None

    def with_body(self, body: Any) -> PublishRequest:
        return replace(self, body=body)


@dataclass(frozen=True)
class PreparedRequest:
    """A request with credentials applied, ready to send."""

    method: str
    url: str
    headers: dict[str, str]
    body: Any = None


def _append_query(url: str, params: dict[str, str]) -> str:
    if not params:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(params)}"


def prepare_request(
    request: PublishRequest, auth: AuthDescriptor, secret: str
) -> PreparedRequest:
    """Inject the credential and merge query parameters onto the URL."""
    headers = dict(request.headers)
    url = request.base_url
    if auth.location == "query":
        url = _append_query(url, {auth.key: auth.value(secret)})
    else:
        headers[auth.key] = auth.value(secret)
    if request.query:
        url = _append_query(url, request.query)
    return PreparedRequest(
        method=request.method.upper(),
        url=url,
        headers=headers,
        body=request.body,
    )


class Publisher:
    """Send publish requests, or return a fixed stub when ``dry_run`` is set.

    Parameters
    ----------
    secrets:
        Scoped secret cache shared with the rest of the process.
    dry_run:
        Skip secret lookup and the network call entirely.
    client:
        Optional pre-built ``httpx.AsyncClient`` (tests inject one backed
        by ``httpx.MockTransport``).
    timeout:
        Per-request timeout in seconds.
    """

    def __init__(
        self,
        secrets: SecretCache,
        dry_run: bool = False,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.secrets = secrets
        self.dry_run = dry_run
        self.timeout = timeout
        self._client = client

    # -- HTTP helpers --------------------------------------------------------

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    # -- public API ----------------------------------------------------------

    async def send(
        self,
        request: PublishRequest,
        auth: AuthDescriptor,
        secret_key: str,
    ) -> dict[str, Any]:
        """Execute *request* and return the parsed response body.

        Raises SecretMissingError when the credential cannot be resolved,
        TransientPublishError for rate limits, server errors and network
        failures, and PublishError for any other status >= 400.
        """
        if self.dry_run:
            logger.info("Dry run: skipping %s %s", request.method, request.base_url)
            return json.loads(json.dumps(DRY_RUN_RESPONSE))

        secret = await self.secrets.get(secret_key)
        if not secret:
            raise SecretMissingError(f"Unable to get secret '{secret_key}'")

        prepared = prepare_request(request, auth, secret)
        client = await self._get_client()
        logger.info("%s %s", prepared.method, request.base_url)
        try:
            resp = await client.request(
                prepared.method,
                prepared.url,
                headers=prepared.headers,
                json=prepared.body,
            )
        except httpx.HTTPError as exc:
            raise TransientPublishError(
                f"{prepared.method} {request.base_url} failed: {exc}"
            ) from exc

        if resp.status_code < 400:
            if not resp.content:
                return {}
            try:
                return resp.json()
            except ValueError as exc:
                raise PublishError(
                    f"{request.base_url} returned a non-JSON body",
                    status=resp.status_code,
                    body=resp.text[:500],
                ) from exc

        error_cls = (
            TransientPublishError
            if resp.status_code in _TRANSIENT_STATUSES or resp.status_code >= 500
            else PublishError
        )
        logger.error(
            "Publish API error %d from %s: %s",
            resp.status_code, request.base_url, resp.text[:500],
        )
        raise error_cls(
            f"{request.base_url} returned {resp.status_code}",
            status=resp.status_code,
            body=resp.text,
        )
