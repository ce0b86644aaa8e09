"""Content connectors for the cross-post pipeline."""

from __future__ import annotations

from connectors.base import BaseConnector, WorkItem
from connectors.github import GitHubConnector

__all__ = ["BaseConnector", "GitHubConnector", "WorkItem"]
