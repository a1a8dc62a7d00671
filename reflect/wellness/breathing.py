"""
4-7-8 breathing exercise.

Inhale for 4, hold for 7, exhale for 8. Each phase counts down one
tick per second and hands over to the next phase as it reaches zero.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Awaitable, Callable, Iterator, Optional


class Phase(str, Enum):
    INHALE = "Inhale"
    HOLD = "Hold"
    EXHALE = "Exhale"


PATTERN: tuple[tuple[Phase, int], ...] = (
    (Phase.INHALE, 4),
    (Phase.HOLD, 7),
    (Phase.EXHALE, 8),
)

GUIDANCE = (
    "Focus on the expanding light. Breathe in deeply, hold, and release slowly."
)


def ticks(cycles: Optional[int] = 1) -> Iterator[tuple[Phase, int]]:
    """
    Yield (phase, count) once per second-long tick.

    A phase of length n yields n, n-1, ..., 1; zero is never shown.
    `cycles=None` runs forever.
    """
    done = 0
    while cycles is None or done < cycles:
        for phase, length in PATTERN:
            for count in range(length, 0, -1):
                yield phase, count
        done += 1


def cycle_seconds() -> int:
    """Wall-clock length of one full cycle."""
    return sum(length for _, length in PATTERN)


async def run(
    on_tick: Callable[[Phase, int], None],
    *,
    cycles: Optional[int] = 1,
    interval: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> int:
    """Drive `on_tick` through the exercise; returns the number of ticks."""
    count = 0
    for phase, remaining in ticks(cycles):
        on_tick(phase, remaining)
        count += 1
        await sleep(interval)
    return count
