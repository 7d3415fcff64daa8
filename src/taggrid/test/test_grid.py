import numpy as np
import pytest

from taggrid.grid import Grid, Position, PositionChange, WindowSearch, window_bounds


def _make_grid(side=10, occupants=None):
    grid = Grid(side)
    for pos, agent_id in (occupants or {}).items():
        grid.set(Position(*pos), agent_id)
    return grid


def test_free_window_scenario():
    grid = _make_grid(occupants={(5, 5): 11})
    assert grid.is_window_free(Position(5, 5), 3, 3, exclude=(11,))
    assert not grid.is_window_free(Position(5, 5), 3, 3)

    grid.set(Position(5, 4), 22)
    assert not grid.is_window_free(Position(5, 5), 3, 3, exclude=(11,))
    assert grid.is_window_occupied(Position(5, 5), 3, 3, exclude=(11,))


def test_window_bounds_center_offset():
    assert window_bounds(Position(5, 5), 3, 3, 10) == (4, 7, 4, 7)
    # even sides round the center offset up: (4 - 1) / 2 -> 2
    assert window_bounds(Position(5, 5), 4, 4, 10) == (3, 7, 3, 7)
    assert window_bounds(Position(5, 5), 2, 6, 10) == (4, 6, 2, 8)
    assert window_bounds(Position(5, 5), 1, 1, 10) == (5, 6, 5, 6)


@pytest.mark.parametrize("center", [(0, 0), (9, 9), (0, 9), (9, 0), (1, 8)])
def test_window_clipped_at_edges(center):
    xlo, xhi, ylo, yhi = window_bounds(Position(*center), 5, 5, 10)
    assert 0 <= xlo < xhi <= 10
    assert 0 <= ylo < yhi <= 10


def test_window_larger_than_grid_covers_everything():
    grid = _make_grid(occupants={(0, 0): 1, (9, 9): 2, (0, 9): 3})
    assert sorted(grid.collect_window_occupants(Position(5, 5), 21, 21)) == [1, 2, 3]
    assert grid.collect_window_occupants(Position(0, 0), 3, 3) == [1]
    assert grid.collect_window_occupants(Position(9, 9), 3, 3) == [2]


def test_collect_follows_scan_order():
    grid = _make_grid(occupants={(3, 1): 7, (1, 2): 5, (1, 1): 9, (2, 3): 4})
    assert grid.collect_window_occupants(Position(2, 2), 5, 5) == [9, 5, 4, 7]


def test_exclude_and_ignore_predicate():
    grid = _make_grid(occupants={(1, 1): 1, (1, 2): 2, (2, 2): 3})
    ignored = {2}
    occupants = grid.collect_window_occupants(
        Position(1, 1), 3, 3, exclude=(1,), ignore=lambda agent_id: agent_id in ignored
    )
    assert occupants == [3]

    ignored.add(3)
    assert grid.is_window_free(Position(1, 1), 3, 3, exclude=(1,), ignore=lambda a: a in ignored)
    assert not grid.is_window_occupied(Position(1, 1), 3, 3, exclude=(1,), ignore=lambda a: a in ignored)


def test_search_short_circuits_and_restarts():
    grid = _make_grid(occupants={(0, 0): 1, (0, 1): 2, (0, 2): 3})
    calls = []

    def ignore(agent_id):
        calls.append(agent_id)
        return False

    assert grid.is_window_occupied(Position(1, 1), 3, 3, ignore=ignore)
    assert calls == [1]

    search = grid.search(Position(1, 1), 3, 3)
    assert isinstance(search, WindowSearch)
    assert list(search) == [1, 2, 3]
    assert list(search) == [1, 2, 3]


def test_apply_deltas_moves_occupant():
    grid = _make_grid(occupants={(2, 2): 8})
    grid.apply_deltas([PositionChange(8, Position(2, 2), Position(3, 2))])
    assert grid.get(Position(2, 2)) == 0
    assert grid.get(Position(3, 2)) == 8
    assert grid.occupied_positions() == {Position(3, 2)}


def test_apply_deltas_last_write_wins():
    grid = _make_grid(occupants={(1, 1): 1, (3, 1): 2})
    grid.apply_deltas(
        [
            PositionChange(1, Position(1, 1), Position(2, 1)),
            PositionChange(2, Position(3, 1), Position(2, 1)),
        ]
    )
    assert grid.get(Position(2, 1)) == 2
    assert grid.occupant_count() == 1


def test_chained_moves_in_one_batch():
    # B steps into the cell A vacates in the same tick
    grid = _make_grid(occupants={(4, 4): 1, (5, 4): 2})
    grid.apply_deltas(
        [
            PositionChange(1, Position(4, 4), Position(3, 4)),
            PositionChange(2, Position(5, 4), Position(4, 4)),
        ]
    )
    assert grid.occupied_positions() == {Position(3, 4), Position(4, 4)}
    assert grid.get(Position(4, 4)) == 2


def test_read_only_view_rejects_writes_and_tracks_base():
    grid = _make_grid()
    view = grid.read_only()
    with pytest.raises(ValueError):
        view.set(Position(0, 0), 1)

    grid.set(Position(4, 4), 99)
    assert view.get(Position(4, 4)) == 99
    assert view.is_window_occupied(Position(4, 4), 1, 1)


def test_large_ids_round_trip():
    big_id = 2**32 - 2
    grid = _make_grid(occupants={(0, 0): big_id})
    assert grid.cells.dtype == np.uint32
    assert grid.collect_window_occupants(Position(0, 0), 1, 1) == [big_id]


def test_search_masks_whole_window_in_row_major_order():
    occupants = {(4, 6): 8, (4, 4): 3, (5, 5): 6, (6, 4): 2, (6, 6): 1, (5, 4): 12}
    grid = _make_grid(occupants=occupants)
    calls = []

    def ignore(agent_id):
        calls.append(agent_id)
        return agent_id == 3

    search = grid.search(Position(5, 5), 3, 3, exclude=(12,), ignore=ignore)
    assert all(type(agent_id) is int for agent_id in search)
    calls.clear()
    # x = 4 row: 3 (ignored), 8; then x = 5 row: 12 (excluded), 6; then x = 6 row: 2, 1
    assert next(iter(search)) == 8
    assert calls == [3, 8]
    assert list(search) == [8, 6, 2, 1]

    # every iter() takes a fresh mask of the current cells
    grid.set(Position(4, 6), 0)
    grid.set(Position(4, 5), 30)
    assert list(search) == [30, 6, 2, 1]
