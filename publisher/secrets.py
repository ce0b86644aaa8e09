"""Secret lookup with an explicitly scoped cache.

The cache is built once at startup and handed to every component that
needs credentials.  On the first miss it loads the whole secrets mapping
from its source, mirroring how a secrets manager returns one JSON blob.
"""

from __future__ import annotations

import abc
import logging
import os
from pathlib import Path

import aiofiles
import yaml

from errors import SecretMissingError

logger = logging.getLogger(__name__)

ENV_PREFIX = "CROSSPOST_SECRET_"


class SecretSource(abc.ABC):
    @abc.abstractmethod
    async def load(self) -> dict[str, str]:
        """Return every secret this source knows about."""


class FileSecretSource(SecretSource):
    """A YAML (or JSON) mapping of secret name to value."""

    def __init__(self, path: Path) -> None:
        self.path = path

    async def load(self) -> dict[str, str]:
        try:
            async with aiofiles.open(self.path, "r") as f:
                data = yaml.safe_load(await f.read()) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise SecretMissingError(f"Could not read secrets file {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise SecretMissingError(f"Secrets file {self.path} must hold a mapping")
        return {str(k): str(v) for k, v in data.items() if v is not None}


class EnvSecretSource(SecretSource):
    """``CROSSPOST_SECRET_DEV=...`` becomes the secret ``dev``."""

    def __init__(self, environ: dict[str, str] | None = None) -> None:
        self.environ = environ if environ is not None else os.environ

    async def load(self) -> dict[str, str]:
        return {
            name[len(ENV_PREFIX):].lower(): value
            for name, value in self.environ.items()
            if name.startswith(ENV_PREFIX) and value
        }


class SecretCache:
    """Caches secrets from one source for the lifetime of the process."""

    def __init__(self, source: SecretSource) -> None:
        self.source = source
        self._values: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        if key not in self._values:
            self._values = await self.source.load()
            logger.debug("Loaded %d secret(s)", len(self._values))
        return self._values.get(key)

    async def require(self, key: str) -> str:
        value = await self.get(key)
        if not value:
            raise SecretMissingError(f"Unable to get secret '{key}'")
        return value
