"""
Agent records, role bookkeeping and preference dynamics.

Agents live in an arena (a plain list) with a separate id -> slot map, so
lookups are O(1) and iteration follows insertion order. Slot indices never
leave this module.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

from taggrid.grid import Position, PositionChange

if TYPE_CHECKING:
    from taggrid.grid import Grid


logger = logging.getLogger(__name__)

ID_LOW = 1
ID_HIGH = 2**32 - 1  # exclusive

RenderObject = Tuple[Position, bool]


@dataclass
class Agent:
    agent_id: int
    position: Position
    is_it: bool
    tagged_by: Optional[int]
    preference: NDArray[np.float64]
    # private stream for decision-phase draws; never shared between agents
    rng: np.random.Generator = field(repr=False)


class AgentManager:
    def __init__(
        self,
        action_count: int,
        grid_side: int,
        step_window: int,
        max_agents: Optional[int] = None,
        max_spawn_attempts: int = 500,
        preference_drift_factor: float = 1.5,
        mean_reversion_rate: float = 0.02,
        seed: Optional[int] = None,
    ):
        self.action_count = int(action_count)
        self.grid_side = int(grid_side)
        self.step_window = int(step_window)
        self.max_agents = grid_side * grid_side if max_agents is None else int(max_agents)
        self.max_spawn_attempts = int(max_spawn_attempts)
        self.preference_drift_factor = float(preference_drift_factor)
        self.mean_reversion_rate = float(mean_reversion_rate)

        self._seed_sequence = np.random.SeedSequence(seed)
        self.rng = np.random.default_rng(self._seed_sequence.spawn(1)[0])

        self._agents: List[Agent] = []
        self._id_map: Dict[int, int] = {}
        self._position_log: List[PositionChange] = []
        self._tagged_count = 0

    # ---------- Population ----------
    def add_agent(
        self,
        is_it: bool,
        *,
        grid: Grid,
        tagged_by: Optional[int] = None,
        position: Optional[Position] = None,
    ) -> Optional[int]:
        """
        Add an agent and write it into the grid.

        Without an explicit position, up to max_spawn_attempts random cells are
        tried for one whose step window is empty. Returns the new id, or None if
        the ceiling is reached or no free cell was found.
        """
        if len(self._agents) >= self.max_agents:
            return None
        if position is None:
            position = self._random_free_position(grid)
            if position is None:
                logger.debug("No free spawn position after %d attempts", self.max_spawn_attempts)
                return None
        else:
            position = Position(int(position[0]), int(position[1]))
            if not grid.in_bounds(*position):
                raise ValueError(f"spawn position {position} is outside the grid")

        agent_id = self._new_id()
        agent_rng = np.random.default_rng(self._seed_sequence.spawn(1)[0])
        # (0, 1] keeps every weight strictly positive under multiplicative drift
        preference = 1.0 - agent_rng.random(self.action_count)
        self._id_map[agent_id] = len(self._agents)
        self._agents.append(
            Agent(
                agent_id=agent_id,
                position=position,
                is_it=bool(is_it),
                tagged_by=tagged_by if is_it else None,
                preference=preference,
                rng=agent_rng,
            )
        )
        grid.set(position, agent_id)
        return agent_id

    def get_num_agents(self) -> int:
        return len(self._agents)

    def get_ids(self) -> List[int]:
        return [agent.agent_id for agent in self._agents]

    # ---------- Preferences ----------
    def update_preference(self, agent_id: int, mean_preferences: Sequence[float]) -> None:
        """
        Multiplicative random walk on one weight, then a chance to snap a second
        weight back to the population mean. Over time this behaves like a
        mean-reverting walk on a log scale.
        """
        agent = self._get(agent_id)
        rng = agent.rng
        factor = self.preference_drift_factor

        ix = int(rng.integers(self.action_count))
        agent.preference[ix] *= rng.uniform(1.0 / factor, factor)

        ix = int(rng.integers(self.action_count))
        if rng.random() < self.mean_reversion_rate * mean_preferences[ix]:
            agent.preference[ix] = mean_preferences[ix]

    def get_action_ordering(self, agent_id: int) -> List[int]:
        """Action indices sorted by ascending pref * U(0, 1); the lowest score is tried first."""
        agent = self._get(agent_id)
        scores = agent.preference * agent.rng.random(self.action_count)
        return [int(ix) for ix in np.argsort(scores, kind="stable")]

    def get_preference(self, agent_id: int) -> NDArray[np.float64]:
        return self._get(agent_id).preference.copy()

    # ---------- Position / role accessors ----------
    def get_position(self, agent_id: int) -> Position:
        return self._get(agent_id).position

    def set_position(self, agent_id: int, position: Position) -> None:
        agent = self._get(agent_id)
        position = Position(int(position[0]), int(position[1]))
        self._position_log.append(PositionChange(agent_id, agent.position, position))
        agent.position = position

    def get_is_it(self, agent_id: int) -> bool:
        return self._get(agent_id).is_it

    def set_is_it(self, agent_id: int, is_it: bool) -> None:
        self._get(agent_id).is_it = is_it

    def get_tagged_by(self, agent_id: int) -> Optional[int]:
        return self._get(agent_id).tagged_by

    def set_tagged_by(self, agent_id: int, tagged_by: Optional[int]) -> None:
        self._get(agent_id).tagged_by = tagged_by

    def get_is_it_count(self) -> int:
        return sum(1 for agent in self._agents if agent.is_it)

    # ---------- Counters and logs ----------
    def increment_tagged(self) -> None:
        self._tagged_count += 1

    def get_tagged_count(self) -> int:
        return self._tagged_count

    def flush_delta_log(self) -> List[PositionChange]:
        changes = self._position_log
        self._position_log = []
        return changes

    def get_render_info(self) -> List[RenderObject]:
        return [(agent.position, agent.is_it) for agent in self._agents]

    def view(self) -> AgentView:
        return AgentView(self)

    # ---------- Internals ----------
    def _random_position(self) -> Position:
        x, y = self.rng.integers(0, self.grid_side, size=2)
        return Position(int(x), int(y))

    def _random_free_position(self, grid: Grid) -> Optional[Position]:
        for _ in range(self.max_spawn_attempts):
            position = self._random_position()
            if grid.is_window_free(position, self.step_window, self.step_window):
                return position
        return None

    def _new_id(self) -> int:
        agent_id = int(self.rng.integers(ID_LOW, ID_HIGH))
        while agent_id in self._id_map:
            agent_id = int(self.rng.integers(ID_LOW, ID_HIGH))
        return agent_id

    def _get(self, agent_id: int) -> Agent:
        return self._agents[self._id_map[agent_id]]


class AgentView:
    """Read-only facade handed to preconditions during the decision phase."""

    __slots__ = ("_manager",)

    def __init__(self, manager: AgentManager):
        self._manager = manager

    def get_position(self, agent_id: int) -> Position:
        return self._manager.get_position(agent_id)

    def get_is_it(self, agent_id: int) -> bool:
        return self._manager.get_is_it(agent_id)

    def get_tagged_by(self, agent_id: int) -> Optional[int]:
        return self._manager.get_tagged_by(agent_id)

    def get_ids(self) -> List[int]:
        return self._manager.get_ids()

    def get_num_agents(self) -> int:
        return self._manager.get_num_agents()
