"""Tagged step results: every workflow step returns ``Ok`` or ``Err``."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: Exception

    @property
    def ok(self) -> bool:
        return False

    @property
    def kind(self) -> str:
        """Error class name, e.g. ``"TransformError"``."""
        return type(self.error).__name__


Result = Union[Ok[Any], Err]
