"""
Dense occupancy grid with windowed occupant search.
Cells hold the id of the occupying agent, 0 marks an empty cell.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterable, Iterator, List, NamedTuple, Optional, Set

import numpy as np
from numpy.typing import NDArray


EMPTY = 0


class Position(NamedTuple):
    x: int
    y: int


@dataclass(frozen=True)
class PositionChange:
    agent_id: int
    before: Position
    after: Position


def window_bounds(
    center: Position, width: int, height: int, grid_side: int
) -> tuple[int, int, int, int]:
    """
    Clipped [xlo, xhi) x [ylo, yhi) of a width x height window around center.
    The nominal center offset is round((w - 1) / 2) with halves rounded up,
    which is w // 2.
    """
    x = center[0] - width // 2
    y = center[1] - height // 2
    xlo = max(x, 0)
    ylo = max(y, 0)
    xhi = min(x + width, grid_side)
    yhi = min(y + height, grid_side)
    return xlo, xhi, ylo, yhi


class WindowSearch:
    """
    Lazy, restartable cursor over the occupants of a grid window.

    Iteration walks the clipped window row by row (ascending x, then ascending y)
    and yields every occupant id that is not excluded and not ignored. Every call
    to iter() starts a fresh scan, so `next(iter(search), None)` is a cheap
    existence check that stops at the first match.
    """

    def __init__(
        self,
        cells: NDArray[np.uint32],
        exclude: FrozenSet[int] = frozenset(),
        ignore: Optional[Callable[[int], bool]] = None,
    ):
        self.cells = cells
        self.exclude = exclude
        self.ignore = ignore

    def __iter__(self) -> Iterator[int]:
        # one mask over the whole window; boolean indexing keeps row-major order
        for occupant in self.cells[self.cells != EMPTY].tolist():
            if occupant in self.exclude:
                continue
            if self.ignore is not None and self.ignore(occupant):
                continue
            yield occupant


class Grid:
    """Square occupancy map indexed as cells[x, y]."""

    def __init__(self, side: int, cells: Optional[NDArray[np.uint32]] = None):
        self.side = int(side)
        if cells is None:
            cells = np.zeros((self.side, self.side), dtype=np.uint32)
        self.cells = cells

    def set(self, position: Position, agent_id: int) -> None:
        self.cells[position[0], position[1]] = agent_id

    def get(self, position: Position) -> int:
        return int(self.cells[position[0], position[1]])

    def apply_deltas(self, changes: Iterable[PositionChange]) -> None:
        # Later writes to the same cell win.
        for change in changes:
            self.set(change.before, EMPTY)
            self.set(change.after, change.agent_id)

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.side and 0 <= y < self.side

    def search(
        self,
        center: Position,
        width: int,
        height: int,
        exclude: Iterable[int] = (),
        ignore: Optional[Callable[[int], bool]] = None,
    ) -> WindowSearch:
        xlo, xhi, ylo, yhi = window_bounds(center, width, height, self.side)
        return WindowSearch(self.cells[xlo:xhi, ylo:yhi], frozenset(exclude), ignore)

    def is_window_free(
        self,
        center: Position,
        width: int,
        height: int,
        exclude: Iterable[int] = (),
        ignore: Optional[Callable[[int], bool]] = None,
    ) -> bool:
        return next(iter(self.search(center, width, height, exclude, ignore)), None) is None

    def is_window_occupied(
        self,
        center: Position,
        width: int,
        height: int,
        exclude: Iterable[int] = (),
        ignore: Optional[Callable[[int], bool]] = None,
    ) -> bool:
        return next(iter(self.search(center, width, height, exclude, ignore)), None) is not None

    def collect_window_occupants(
        self,
        center: Position,
        width: int,
        height: int,
        exclude: Iterable[int] = (),
        ignore: Optional[Callable[[int], bool]] = None,
    ) -> List[int]:
        return list(self.search(center, width, height, exclude, ignore))

    def read_only(self) -> Grid:
        """Grid sharing this buffer with writes disabled (numpy raises ValueError on set)."""
        view = self.cells.view()
        view.flags.writeable = False
        return Grid(self.side, view)

    def occupied_positions(self) -> Set[Position]:
        xs, ys = np.nonzero(self.cells)
        return {Position(int(x), int(y)) for x, y in zip(xs, ys)}

    def occupant_count(self) -> int:
        return int(np.count_nonzero(self.cells))
