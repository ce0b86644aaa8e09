"""Article records and catalog entries, plus their persisted item shapes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

SORT_KEY = "article"
CATALOG_PARTITION = "article"


class Status(str, Enum):
    NOT_STARTED = "not started"
    IN_PROGRESS = "in progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def record_key(commit: str, file_name: str) -> str:
    return f"{commit}#{file_name}"


@dataclass
class PlatformOutcome:
    status: Status
    url: str | None = None


@dataclass
class ArticleRecord:
    """Per-article workflow status, keyed by ``{commit}#{fileName}``."""

    key: str
    status: Status = Status.NOT_STARTED
    platforms: dict[str, PlatformOutcome] = field(default_factory=dict)
    url: str | None = None  # canonical relative URL

    def succeeded_on(self, platform_id: str) -> bool:
        outcome = self.platforms.get(platform_id)
        return outcome is not None and outcome.status is Status.SUCCEEDED

    def to_item(self) -> dict[str, Any]:
        item: dict[str, Any] = {
            "pk": self.key,
            "sk": SORT_KEY,
            "status": self.status.value,
        }
        if self.url:
            item["url"] = self.url
        for platform_id, outcome in self.platforms.items():
            sub: dict[str, Any] = {"status": outcome.status.value}
            if outcome.url:
                sub[f"{platform_id}Url"] = outcome.url
            item[platform_id] = sub
        return item

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> ArticleRecord:
        platforms: dict[str, PlatformOutcome] = {}
        for name, value in item.items():
            if isinstance(value, dict) and "status" in value:
                platforms[name] = PlatformOutcome(
                    status=Status(value["status"]),
                    url=value.get(f"{name}Url"),
                )
        return cls(
            key=item["pk"],
            status=Status(item.get("status", Status.NOT_STARTED.value)),
            platforms=platforms,
            url=item.get("url"),
        )


@dataclass
class CatalogEntry:
    """A fully published article, used to rewrite intra-site links."""

    url: str  # canonical relative URL, e.g. "/hello"
    title: str = ""
    links: dict[str, str] = field(default_factory=dict)

    def link_for(self, platform_id: str) -> str | None:
        return self.links.get(platform_id) or None

    def to_item(self) -> dict[str, Any]:
        links = {"url": self.url}
        links.update({f"{p}Url": u for p, u in self.links.items() if u})
        return {
            "pk": self.url,
            "sk": SORT_KEY,
            "GSI1PK": CATALOG_PARTITION,
            "GSI1SK": self.title or self.url,
            "title": self.title,
            "links": links,
        }

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> CatalogEntry:
        raw_links = item.get("links", {})
        links = {
            name[: -len("Url")]: value
            for name, value in raw_links.items()
            if name.endswith("Url") and value
        }
        return cls(
            url=raw_links.get("url") or item["pk"],
            title=item.get("title", ""),
            links=links,
        )
