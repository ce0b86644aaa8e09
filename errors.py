"""Error taxonomy for the cross-post workflow."""

from __future__ import annotations


class CrossPostError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(CrossPostError):
    """Configuration is missing or inconsistent."""


class ConnectorError(CrossPostError):
    """Listing new content from the source repository failed."""


class CatalogLoadError(CrossPostError):
    """The catalog of published articles could not be read."""


class TransformError(CrossPostError):
    """A post could not be turned into a platform payload."""


class PublishError(CrossPostError):
    """The upstream platform rejected a publish request.

    ``status`` and ``body`` carry the upstream response for diagnostics.
    """

    def __init__(self, message: str, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class TransientPublishError(PublishError):
    """A publish failure worth retrying (rate limit, 5xx, network)."""


class SecretMissingError(CrossPostError):
    """A credential could not be resolved."""


class LedgerWriteError(CrossPostError):
    """A ledger write did not reach disk."""


class NotificationError(CrossPostError):
    """An outcome notification could not be delivered."""
