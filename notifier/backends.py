"""Notification delivery backends.

SendGridNotifier: sends email through the SendGrid v3 HTTP API
OutboxNotifier: appends events to a local JSONL outbox
"""

from __future__ import annotations

import abc
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiofiles
import httpx

from errors import NotificationError, SecretMissingError
from notifier.events import NotificationEvent
from publisher.secrets import SecretCache

logger = logging.getLogger(__name__)

SENDGRID_API_URL = "https://api.sendgrid.com/v3/mail/send"


class Notifier(abc.ABC):
    """Delivers outcome events to an operator."""

    @abc.abstractmethod
    async def emit(self, event: NotificationEvent) -> None:
        """Deliver *event*; raise NotificationError on failure."""

    async def close(self) -> None:
        pass


class OutboxNotifier(Notifier):
    """Writes each event as one JSON line under ``outbox_dir``."""

    def __init__(self, outbox_dir: Path) -> None:
        self.outbox_dir = outbox_dir
        self.path = outbox_dir / "notifications.jsonl"

    async def emit(self, event: NotificationEvent) -> None:
        record = {
            "sent_at": datetime.now(timezone.utc).isoformat(),
            **event.to_dict(),
        }
        try:
            self.outbox_dir.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(self.path, "a") as f:
                await f.write(json.dumps(record) + "\n")
        except OSError as exc:
            raise NotificationError(f"Could not write outbox {self.path}: {exc}") from exc
        logger.info("Queued notification '%s' for %s", event.subject, event.to)

    async def read_all(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        async with aiofiles.open(self.path, "r") as f:
            return [json.loads(line) for line in (await f.read()).splitlines() if line]


class SendGridNotifier(Notifier):
    """Send events as email via SendGrid, using the ``sendgrid`` secret."""

    def __init__(
        self,
        secrets: SecretCache,
        from_email: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.secrets = secrets
        self.from_email = from_email
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=30.0)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    def _build_message(self, event: NotificationEvent) -> dict[str, Any]:
        content = []
        if event.text:
            content.append({"type": "text/plain", "value": event.text})
        if event.html:
            content.append({"type": "text/html", "value": event.html})
        return {
            "personalizations": [{"to": [{"email": event.to}]}],
            "from": {"email": self.from_email},
            "subject": event.subject,
            "content": content,
        }

    async def emit(self, event: NotificationEvent) -> None:
        try:
            api_key = await self.secrets.require("sendgrid")
        except SecretMissingError as exc:
            raise NotificationError(str(exc)) from exc

        client = await self._get_client()
        try:
            resp = await client.post(
                SENDGRID_API_URL,
                json=self._build_message(event),
                headers={"Authorization": f"Bearer {api_key}"},
            )
        except httpx.HTTPError as exc:
            raise NotificationError(f"SendGrid request failed: {exc}") from exc
        if resp.status_code >= 400:
            raise NotificationError(
                f"SendGrid returned {resp.status_code}: {resp.text[:500]}"
            )
        logger.info("Sent notification '%s' to %s", event.subject, event.to)
