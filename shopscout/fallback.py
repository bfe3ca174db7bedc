"""First-success-wins runner shared by the transport layer and the extraction pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, List, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T


@dataclass(frozen=True)
class Failure:
    reason: str


Outcome = Union[Success[Any], Failure]


def first_success(attempts: Iterable[Callable[[], Outcome]]) -> tuple[Outcome, List[Failure]]:
    """Call each attempt in order until one returns :class:`Success`.

    Attempts are consumed lazily, so later ones never run once an earlier one
    succeeds. Returns ``(winning outcome, failures seen before it)``; when
    nothing succeeds the outcome is the last failure (or a generic one for an
    empty sequence).
    """
    failures: List[Failure] = []
    for attempt in attempts:
        outcome = attempt()
        if isinstance(outcome, Success):
            return outcome, failures
        failures.append(outcome)
    if failures:
        return failures[-1], failures
    return Failure("no attempts available"), failures
