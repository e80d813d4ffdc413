# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Island and epicycle value types.

An island rides a stack of epicycles: level 0 circles the origin, level k
circles the point produced by levels 0..k-1. A period's sign gives the
rotation direction (positive is counterclockwise).

No external dependencies; only stdlib dataclasses.
"""
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Epicycle:
    """A single circular motion with period in days."""
    period: float

    def __post_init__(self) -> None:
        if self.period == 0:
            raise ValueError("Epicycle period must be non-zero")


@dataclass(frozen=True)
class Island:
    """A floating island and its epicycle stack."""
    id: int
    name: str
    cycles: tuple[Epicycle, ...] = ()
    color: str = "#888888"
    radius: float = 10.0
    visible: bool = True

    def __post_init__(self) -> None:
        # Accept lists for convenience, store an immutable tuple.
        if not isinstance(self.cycles, tuple):
            object.__setattr__(self, 'cycles', tuple(self.cycles))

    @property
    def periods(self) -> tuple[float, ...]:
        return tuple(c.period for c in self.cycles)


@dataclass(frozen=True)
class Position:
    """Cartesian position in miles, optionally stamped with a time."""
    x: float
    y: float
    time: float | None = field(default=None, compare=False)


def find_island(islands: list[Island], island_id: int) -> Island | None:
    """Return the island with the given id, or None."""
    for island in islands:
        if island.id == island_id:
            return island
    return None


def validate_unique_ids(islands: list[Island]) -> None:
    """
    Raise ValueError if two islands share an id.

    Raises:
        ValueError: On the first duplicated id.
    """
    seen: set[int] = set()
    for island in islands:
        if island.id in seen:
            raise ValueError(f"Duplicate island id {island.id} ({island.name!r})")
        seen.add(island.id)
