"""Per-unit outcomes for fan-out work.

Every place where the pipeline calls a collaborator once per unit (one
fallback creator, one scoring batch, one finalist's content) wraps the call
with :func:`attempt`.  Exceptions and timeouts become :class:`Failed` values
and the merge step decides what a failure means for that stage, instead of
scattering ``try``/``except`` blocks through nested loops.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Ok(Generic[T]):
    unit: Any
    value: T


@dataclass(frozen=True)
class Failed:
    unit: Any
    reason: str


Outcome = Union[Ok[T], Failed]


async def attempt(unit: Any, awaitable: Awaitable[T], timeout: Optional[float] = None) -> Outcome[T]:
    """Await ``awaitable`` and report the result as :class:`Ok` or :class:`Failed`.

    ``timeout`` (seconds) bounds the call; a timeout is a failure like any
    other.
    """
    try:
        if timeout is None:
            value = await awaitable
        else:
            value = await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError:
        return Failed(unit, f"timed out after {timeout}s")
    except Exception as exc:
        return Failed(unit, f"{type(exc).__name__}: {exc}")
    return Ok(unit, value)


async def gather_in_batches(
    units: Sequence[U],
    fn: Callable[[U], Awaitable[T]],
    batch_size: int,
    timeout: Optional[float] = None,
) -> List[Outcome[T]]:
    """Run ``fn`` over ``units``, ``batch_size`` at a time.

    Each batch runs concurrently and is awaited as a whole before the next
    one starts.  Outcomes are returned in input order.
    """
    outcomes: List[Outcome[T]] = []
    for start in range(0, len(units), batch_size):
        batch = units[start:start + batch_size]
        outcomes.extend(await asyncio.gather(*(attempt(unit, fn(unit), timeout) for unit in batch)))
    return outcomes


def log_failures(outcomes: Sequence[Outcome[Any]], what: str) -> int:
    """Log every :class:`Failed` outcome at WARNING and return how many there were."""
    failures = [outcome for outcome in outcomes if isinstance(outcome, Failed)]
    for failure in failures:
        unit = getattr(failure.unit, "handle", failure.unit)
        logger.warning("%s failed for %s: %s", what, unit, failure.reason)
    return len(failures)
