"""Article ledger: workflow status records and the published catalog."""

from ledger.models import ArticleRecord, CatalogEntry, PlatformOutcome, Status, record_key
from ledger.store import DedupDecision, Ledger

__all__ = [
    "ArticleRecord",
    "CatalogEntry",
    "DedupDecision",
    "Ledger",
    "PlatformOutcome",
    "Status",
    "record_key",
]
