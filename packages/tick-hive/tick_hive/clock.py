"""Tick counter and the per-tick context handed to systems."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True, slots=True)
class TickContext:
    tick_number: int
    request_stop: Callable[[], None]

    def every(self, interval: int, offset: int = 0) -> bool:
        """True once every *interval* ticks, on ticks equal to *offset* modulo it."""
        return (self.tick_number - offset) % interval == 0


class Clock:
    """Discrete tick counter. The colony has no notion of wall time."""

    def __init__(self, start: int = 0) -> None:
        if start < 0:
            raise ValueError("start tick must be >= 0")
        self._tick_number = start

    @property
    def tick_number(self) -> int:
        return self._tick_number

    def advance(self) -> int:
        self._tick_number += 1
        return self._tick_number

    def context(self, stop_fn: Callable[[], None]) -> TickContext:
        return TickContext(tick_number=self._tick_number, request_stop=stop_fn)

    def reset(self, tick_number: int = 0) -> None:
        self._tick_number = tick_number
