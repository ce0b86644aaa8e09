"""Durable article ledger backed by a single JSON document.

Every write goes to a temporary file which is then renamed over the
ledger, so a call only returns once the new state is on disk.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import aiofiles
import aiofiles.os

from errors import CatalogLoadError, LedgerWriteError
from ledger.models import (
    CATALOG_PARTITION,
    SORT_KEY,
    ArticleRecord,
    CatalogEntry,
    PlatformOutcome,
    Status,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DedupDecision:
    """Outcome of :meth:`Ledger.try_begin`."""

    duplicate: bool
    record: ArticleRecord


def _item_id(pk: str, sk: str = SORT_KEY) -> str:
    return f"{pk}|{sk}"


class Ledger:
    """Per-article status records plus the catalog of published articles.

    Parameters
    ----------
    path:
        Location of the JSON document.  Created on first write.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock: asyncio.Lock | None = None
        self._lock_loop: asyncio.AbstractEventLoop | None = None

    def _get_lock(self) -> asyncio.Lock:
        """The write lock for the running event loop.

        An asyncio lock is bound to the loop that first waits on it, so a
        ledger reused across ``asyncio.run`` calls gets a fresh lock per loop.
        """
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    # -- raw document I/O ----------------------------------------------------

    async def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {"items": {}}
        async with aiofiles.open(self.path, "r") as f:
            return json.loads(await f.read())

    async def _save(self, data: dict[str, Any]) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(tmp_path, "w") as f:
                await f.write(json.dumps(data, indent=2, sort_keys=True))
                await f.flush()
            await aiofiles.os.replace(tmp_path, self.path)
        except OSError as exc:
            raise LedgerWriteError(f"Could not write ledger {self.path}: {exc}") from exc

    async def _read_item(self, pk: str) -> dict[str, Any] | None:
        data = await self._load()
        return data["items"].get(_item_id(pk))

    async def _update_record(self, key: str, mutate) -> ArticleRecord:
        """Load, mutate and persist one record under the ledger lock."""
        async with self._get_lock():
            try:
                data = await self._load()
            except (OSError, json.JSONDecodeError) as exc:
                raise LedgerWriteError(f"Could not read ledger {self.path}: {exc}") from exc
            item = data["items"].get(_item_id(key))
            record = ArticleRecord.from_item(item) if item else ArticleRecord(key=key)
            mutate(record)
            data["items"][_item_id(key)] = record.to_item()
            await self._save(data)
            return record

    # -- article records -----------------------------------------------------

    async def get_record(self, key: str) -> ArticleRecord | None:
        item = await self._read_item(key)
        return ArticleRecord.from_item(item) if item else None

    async def try_begin(self, key: str) -> DedupDecision:
        """Move *key* to ``in progress`` unless it is running or done.

        A missing, never-started or failed record begins a new attempt,
        keeping any per-platform outcomes from earlier runs.  A record that
        is ``in progress`` or ``succeeded`` is returned untouched.
        """
        async with self._get_lock():
            try:
                data = await self._load()
            except (OSError, json.JSONDecodeError) as exc:
                raise LedgerWriteError(f"Could not read ledger {self.path}: {exc}") from exc
            item = data["items"].get(_item_id(key))
            record = ArticleRecord.from_item(item) if item else ArticleRecord(key=key)

            if record.status in (Status.IN_PROGRESS, Status.SUCCEEDED):
                logger.info("Duplicate request for %s (status: %s)", key, record.status.value)
                return DedupDecision(duplicate=True, record=record)

            record.status = Status.IN_PROGRESS
            data["items"][_item_id(key)] = record.to_item()
            await self._save(data)
            return DedupDecision(duplicate=False, record=record)

    async def record_platform_outcome(
        self,
        key: str,
        platform_id: str,
        status: Status,
        url: str | None = None,
        relative_url: str | None = None,
    ) -> ArticleRecord:
        def mutate(record: ArticleRecord) -> None:
            record.platforms[platform_id] = PlatformOutcome(status=status, url=url)
            if relative_url:
                record.url = relative_url

        return await self._update_record(key, mutate)

    async def finalize(self, key: str, status: Status) -> ArticleRecord:
        def mutate(record: ArticleRecord) -> None:
            record.status = status

        return await self._update_record(key, mutate)

    # -- catalog -------------------------------------------------------------

    async def list_catalog(self) -> list[CatalogEntry]:
        """Return every catalog entry (order is not significant)."""
        try:
            data = await self._load()
        except (OSError, json.JSONDecodeError) as exc:
            raise CatalogLoadError(f"Could not read catalog from {self.path}: {exc}") from exc
        return [
            CatalogEntry.from_item(item)
            for item in data["items"].values()
            if item.get("GSI1PK") == CATALOG_PARTITION
        ]

    async def upsert_catalog_entry(self, entry: CatalogEntry) -> None:
        await self.seed_catalog([entry])

    async def seed_catalog(self, entries: Iterable[CatalogEntry]) -> int:
        """Upsert many catalog entries in one write; returns the count."""
        async with self._get_lock():
            try:
                data = await self._load()
            except (OSError, json.JSONDecodeError) as exc:
                raise LedgerWriteError(f"Could not read ledger {self.path}: {exc}") from exc
            count = 0
            for entry in entries:
                data["items"][_item_id(entry.url)] = entry.to_item()
                count += 1
            await self._save(data)
        logger.info("Wrote %d catalog entr%s", count, "y" if count == 1 else "ies")
        return count
