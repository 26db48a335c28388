"""Run a handler over many items, continuing past per-item failures."""
from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass
class SweepResult(Generic[T]):
    attempted: int = 0
    succeeded: list[T] = field(default_factory=list)
    failures: list[tuple[T, Exception]] = field(default_factory=list)


async def sweep(
    items: Iterable[T],
    handler: Callable[[T], Awaitable[None]],
    *,
    label: str,
) -> SweepResult[T]:
    """Await ``handler`` for each item in order, logging and collecting failures.

    Items are processed one at a time; an exception raised for one item is
    recorded and never stops the items after it.
    """

    result: SweepResult[T] = SweepResult()
    for item in items:
        result.attempted += 1
        try:
            await handler(item)
        except Exception as exc:  # noqa: BLE001 - per-item isolation
            logger.warning(
                "%s failed for one item", label, extra={"item": repr(item)}, exc_info=exc
            )
            result.failures.append((item, exc))
        else:
            result.succeeded.append(item)
    return result
