"""
Action catalog: the fixed set of actions every agent can take.

Each action pairs a precondition (pure, evaluated against a read-only world
during the decision phase) with an effect (executed sequentially during the
commit phase). The catalog is built once and shared by all decision tasks.
"""
from __future__ import annotations

from enum import IntEnum
from typing import TYPE_CHECKING, Dict, Optional, Protocol, Sequence, Tuple

import numpy as np

from taggrid.grid import Position

if TYPE_CHECKING:
    from taggrid.agent_manager import AgentManager, AgentView
    from taggrid.grid import Grid


class ActionKind(IntEnum):
    STEP_LEFT = 0
    STEP_RIGHT = 1
    STEP_UP = 2
    STEP_DOWN = 3
    DO_NOTHING = 4
    TAG = 5


# Population-level targets for preference drift, one per ActionKind.
MEAN_PREFERENCES: Tuple[float, ...] = (0.5, 0.5, 0.5, 0.5, 0.1, 0.9)

STEP_DELTAS: Dict[ActionKind, Tuple[int, int]] = {
    ActionKind.STEP_LEFT: (-1, 0),
    ActionKind.STEP_RIGHT: (1, 0),
    ActionKind.STEP_UP: (0, -1),
    ActionKind.STEP_DOWN: (0, 1),
}


class Action(Protocol):
    kind: ActionKind

    def is_legal(self, agent_id: int, agents: AgentView | AgentManager, grid: Grid) -> bool: ...

    def apply(self, agent_id: int, agents: AgentManager, grid: Grid) -> None: ...


class StepAction:
    def __init__(self, kind: ActionKind, step_window: int, collision_detection: bool):
        self.kind = kind
        self.dx, self.dy = STEP_DELTAS[kind]
        self.step_window = step_window
        self.collision_detection = collision_detection

    def is_legal(self, agent_id, agents, grid) -> bool:
        x, y = agents.get_position(agent_id)
        nx, ny = x + self.dx, y + self.dy
        if not grid.in_bounds(nx, ny):
            return False
        if not self.collision_detection:
            return True
        return grid.is_window_free(
            Position(nx, ny), self.step_window, self.step_window, exclude=(agent_id,)
        )

    def apply(self, agent_id, agents, grid) -> None:
        x, y = agents.get_position(agent_id)
        agents.set_position(agent_id, Position(x + self.dx, y + self.dy))

    def __repr__(self) -> str:
        return f"StepAction({self.kind.name})"


class DoNothingAction:
    kind = ActionKind.DO_NOTHING

    def is_legal(self, agent_id, agents, grid) -> bool:
        return True

    def apply(self, agent_id, agents, grid) -> None:
        pass

    def __repr__(self) -> str:
        return "DoNothingAction()"


class TagAction:
    """
    Pass the 'it' role to a random agent inside the tag window.

    The scan skips the tagger, whoever tagged it last (no immediate tag-back)
    and any agent that is already 'it'.
    """

    kind = ActionKind.TAG

    def __init__(self, tag_window: int):
        self.tag_window = tag_window

    def _candidates(self, agent_id, agents, grid):
        excluded = [agent_id]
        tagged_by = agents.get_tagged_by(agent_id)
        if tagged_by is not None:
            excluded.append(tagged_by)
        return grid.search(
            agents.get_position(agent_id),
            self.tag_window,
            self.tag_window,
            exclude=excluded,
            ignore=agents.get_is_it,
        )

    def is_legal(self, agent_id, agents, grid) -> bool:
        if not agents.get_is_it(agent_id):
            return False
        return next(iter(self._candidates(agent_id, agents, grid)), None) is not None

    def apply(self, agent_id, agents, grid) -> None:
        # Re-scan against the live store: targets tagged earlier this tick are now 'it'.
        if not agents.get_is_it(agent_id):
            return
        candidates = list(self._candidates(agent_id, agents, grid))
        if not candidates:
            return
        target_id = candidates[int(agents.rng.integers(len(candidates)))]
        agents.set_is_it(agent_id, False)
        agents.set_tagged_by(agent_id, None)
        agents.set_is_it(target_id, True)
        agents.set_tagged_by(target_id, agent_id)
        agents.increment_tagged()

    def __repr__(self) -> str:
        return f"TagAction(tag_window={self.tag_window})"


class ActionCatalog:
    """Immutable registry of the six actions and their mean preferences."""

    def __init__(self, step_window: int, tag_window: int, collision_detection: bool = True):
        self.step_window = step_window
        self.tag_window = tag_window
        self.collision_detection = collision_detection

        actions = [
            StepAction(kind, step_window, collision_detection) for kind in STEP_DELTAS
        ]
        actions.append(DoNothingAction())
        actions.append(TagAction(tag_window))
        self._actions: Tuple[Action, ...] = tuple(actions)

        mean_preferences = np.array(MEAN_PREFERENCES, dtype=np.float64)
        mean_preferences.flags.writeable = False
        self.mean_preferences = mean_preferences

    def __len__(self) -> int:
        return len(self._actions)

    def __getitem__(self, kind: int) -> Action:
        return self._actions[kind]

    def resolve_action(
        self,
        ordering: Sequence[int],
        agent_id: int,
        agents: AgentView | AgentManager,
        grid: Grid,
    ) -> Optional[Action]:
        """Return the first action in `ordering` whose precondition holds, or None."""
        for ix in ordering:
            action = self._actions[ix]
            if action.is_legal(agent_id, agents, grid):
                return action
        return None
