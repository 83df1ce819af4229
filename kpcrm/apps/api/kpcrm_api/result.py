"""Explicit success/error results for module boundaries.

The validator and the authenticator return ``Ok`` or ``Err`` instead of
raising, so callers decide how a failure is surfaced (HTTP error, silent
fallback in optional-auth mode, ...). Exceptions stay reserved for
unexpected conditions.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E", bound=Exception)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E


Result = Union[Ok[T], Err[E]]
