"""
Two-case result type for calls that have an alternate path on failure.

The search engine returns `Ok(value)` or `Err(error)` instead of raising, and
the caller picks the fallback path by checking which one it got.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    error: Exception

    @property
    def reason(self) -> str:
        return f"{type(self.error).__name__}: {self.error}"


Result = Union[Ok[T], Err]
