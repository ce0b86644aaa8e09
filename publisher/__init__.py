"""Publishing: declarative HTTP requests with credential injection."""

from publisher.client import (
    DRY_RUN_RESPONSE,
    AuthDescriptor,
    PreparedRequest,
    PublishRequest,
    Publisher,
    prepare_request,
)
from publisher.secrets import EnvSecretSource, FileSecretSource, SecretCache, SecretSource

__all__ = [
    "DRY_RUN_RESPONSE",
    "AuthDescriptor",
    "EnvSecretSource",
    "FileSecretSource",
    "PreparedRequest",
    "PublishRequest",
    "Publisher",
    "SecretCache",
    "SecretSource",
    "prepare_request",
]
