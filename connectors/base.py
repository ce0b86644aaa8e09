"""Content connector interface and the work item it emits."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from ledger.models import record_key


@dataclass(frozen=True)
class WorkItem:
    """One newly detected post, consumed by exactly one workflow run."""

    commit: str
    file_name: str
    content: str
    send_status_email: bool = False

    @property
    def key(self) -> str:
        return record_key(self.commit, self.file_name)

    @classmethod
    def from_event(cls, detail: dict[str, Any]) -> WorkItem:
        """Build from the ``{fileName, commit, content, sendStatusEmail}`` shape."""
        return cls(
            commit=str(detail["commit"]),
            file_name=str(detail["fileName"]),
            content=str(detail.get("content", "")),
            send_status_email=bool(detail.get("sendStatusEmail", False)),
        )

    def to_event(self) -> dict[str, Any]:
        return {
            "fileName": self.file_name,
            "commit": self.commit,
            "content": self.content,
            "sendStatusEmail": self.send_status_email,
        }


class BaseConnector(ABC):
    """Abstract base class for content sources."""

    source_name: str = ""

    async def __aenter__(self):
        await self.setup()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.teardown()

    async def setup(self) -> None:
        """Acquire any resources needed for polling."""

    async def teardown(self) -> None:
        """Release resources acquired in :meth:`setup`."""

    @abstractmethod
    async def poll(self) -> list[WorkItem]:
        """Return one work item per newly added post.

        Raises ConnectorError when the source cannot be listed.
        """
        ...
