"""Centralized configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from errors import ConfigError

KNOWN_PLATFORMS = ("dev", "medium", "hashnode")
CANONICAL_CHOICES = ("blog",) + KNOWN_PLATFORMS


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Config:
    """Application configuration with sensible defaults.

    All values are read from environment variables at construction time
    and never re-read per request.
    """

    # --- Content source ---
    github_owner: str = ""
    github_repo: str = ""
    content_path: str = "content/blog"
    new_content_indicator: str = "[blog]"
    commit_time_tolerance_minutes: int = 10

    # --- Publishing ---
    blog_base_url: str = ""
    canonical: str = "blog"
    platforms: tuple[str, ...] = KNOWN_PLATFORMS
    secret_keys: dict[str, str] = field(
        default_factory=lambda: {p: p for p in KNOWN_PLATFORMS}
    )
    dev_org_id: str = ""
    medium_author_id: str = ""
    medium_publication_id: str = ""
    hashnode_publication_id: str = ""
    hashnode_blog_url: str = ""

    # --- Notifications ---
    notification_email: str = ""
    from_email: str = ""
    notifier: str = "outbox"  # "sendgrid" or "outbox"
    send_status_email: bool = False
    execution_url: str = ""

    # --- Workflow ---
    dry_run: bool = False
    workflow_timeout: float = 300.0  # 5 minutes
    retry_attempts: int = 3
    retry_base_delay: float = 2.0

    # --- Paths ---
    secrets_file: Path | None = None
    data_dir: Path = field(default_factory=lambda: Path("data"))
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Config:
        """Build config from environment variables."""
        platforms = tuple(
            p.strip().lower()
            for p in os.getenv("CROSSPOST_PLATFORMS", ",".join(KNOWN_PLATFORMS)).split(",")
            if p.strip()
        )
        secrets_file = os.getenv("SECRETS_FILE")
        return cls(
            github_owner=os.getenv("GITHUB_OWNER", ""),
            github_repo=os.getenv("GITHUB_REPO", ""),
            content_path=os.getenv("CONTENT_PATH", "content/blog").strip("/"),
            new_content_indicator=os.getenv("NEW_CONTENT_INDICATOR", "[blog]"),
            commit_time_tolerance_minutes=int(
                os.getenv("COMMIT_TIME_TOLERANCE_MINUTES", "10")
            ),
            blog_base_url=os.getenv("BLOG_BASE_URL", "").rstrip("/"),
            canonical=os.getenv("CANONICAL", "blog").strip().lower(),
            platforms=platforms,
            secret_keys={
                p: os.getenv(f"{p.upper()}_SECRET_KEY", p) for p in KNOWN_PLATFORMS
            },
            dev_org_id=os.getenv("DEV_ORG_ID", ""),
            medium_author_id=os.getenv("MEDIUM_AUTHOR_ID", ""),
            medium_publication_id=os.getenv("MEDIUM_PUBLICATION_ID", ""),
            hashnode_publication_id=os.getenv("HASHNODE_PUBLICATION_ID", ""),
            hashnode_blog_url=os.getenv("HASHNODE_BLOG_URL", "").rstrip("/"),
            notification_email=os.getenv("NOTIFICATION_EMAIL", ""),
            from_email=os.getenv("FROM_EMAIL", ""),
            notifier=os.getenv("NOTIFIER", "outbox").strip().lower(),
            send_status_email=_flag(os.getenv("SEND_STATUS_EMAIL")),
            execution_url=os.getenv("EXECUTION_URL", "").rstrip("/"),
            dry_run=_flag(os.getenv("DRY_RUN")),
            workflow_timeout=float(os.getenv("WORKFLOW_TIMEOUT", "300")),
            retry_attempts=int(os.getenv("RETRY_ATTEMPTS", "3")),
            retry_base_delay=float(os.getenv("RETRY_BASE_DELAY", "2.0")),
            secrets_file=Path(secrets_file) if secrets_file else None,
            data_dir=Path(os.getenv("DATA_DIR", "data")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """Raise :class:`ConfigError` if the platform setup is unusable."""
        if not self.platforms:
            raise ConfigError("At least one platform must be enabled")
        unknown = [p for p in self.platforms if p not in KNOWN_PLATFORMS]
        if unknown:
            raise ConfigError(f"Unknown platform(s): {', '.join(unknown)}")
        if self.canonical not in CANONICAL_CHOICES:
            raise ConfigError(f"Unknown canonical platform: {self.canonical}")
        if self.canonical != "blog" and self.canonical not in self.platforms:
            raise ConfigError(
                f"Canonical platform '{self.canonical}' is not enabled"
            )
        if "medium" in self.platforms and not (
            self.medium_author_id or self.medium_publication_id
        ):
            raise ConfigError("MEDIUM_AUTHOR_ID or MEDIUM_PUBLICATION_ID must be set")
        if "hashnode" in self.platforms and not self.hashnode_blog_url:
            raise ConfigError("HASHNODE_BLOG_URL must be set to publish to Hashnode")
        if self.notifier not in ("sendgrid", "outbox"):
            raise ConfigError(f"Unknown notifier backend: {self.notifier}")

    @property
    def ledger_path(self) -> Path:
        return self.data_dir / "ledger.json"

    @property
    def outbox_dir(self) -> Path:
        return self.data_dir / "outbox"

    @property
    def log_dir(self) -> Path:
        return self.data_dir / "logs"
