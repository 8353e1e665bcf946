"""Stage outcome types: every stage returns exactly one of these."""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T


@dataclass(frozen=True)
class Degrade:
    """Stage failed but the job can still complete without its output."""
    reason: str


@dataclass(frozen=True)
class Fail:
    """Stage failed for the whole job."""
    error: str


Outcome = Union[Success[Any], Degrade, Fail]
