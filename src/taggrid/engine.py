"""
Tick engine: one simulation step is a parallel decision phase followed by a
sequential commit phase.

Decision tasks only read the world (a write-protected grid view and an
AgentView); the only state they touch is their own agent's preferences and
random stream. Every shared mutation happens afterwards on the calling thread,
in agent insertion order, and the grid is refreshed from the delta log once per
tick.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import logging
from typing import TYPE_CHECKING, Dict, List, Optional

from taggrid.actions import ActionCatalog
from taggrid.agent_manager import AgentManager, RenderObject
from taggrid.grid import Grid

if TYPE_CHECKING:
    from taggrid.actions import Action
    from taggrid.config.config_tag import TagConfig


logger = logging.getLogger(__name__)


def split_chunks(items: List[int], n_chunks: int) -> List[List[int]]:
    """Split items into at most n_chunks contiguous, near-equal slices, keeping order."""
    n_chunks = max(1, min(n_chunks, len(items)))
    size, extra = divmod(len(items), n_chunks)
    chunks = []
    start = 0
    for i in range(n_chunks):
        stop = start + size + (1 if i < extra else 0)
        chunks.append(items[start:stop])
        start = stop
    return chunks


class TagEngine:
    def __init__(self, grid: Grid, catalog: ActionCatalog, agents: AgentManager, workers: int = 1):
        self.grid = grid
        self.catalog = catalog
        self.agents = agents
        self.workers = int(workers)
        self.step_counter = 0

        self._grid_view = grid.read_only()
        self._agent_view = agents.view()
        self._executor: Optional[ThreadPoolExecutor] = None
        if self.workers > 1:
            self._executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="decide")

    @classmethod
    def from_config(cls, config: TagConfig) -> TagEngine:
        """Build grid, catalog and agents from a config and seed the population."""
        grid = Grid(config.grid_side)
        catalog = ActionCatalog(
            step_window=config.step_window,
            tag_window=config.tag_window,
            collision_detection=config.collision_detection,
        )
        agents = AgentManager(
            action_count=len(catalog),
            grid_side=config.grid_side,
            step_window=config.step_window,
            max_agents=config.agent_ceiling,
            max_spawn_attempts=config.max_spawn_attempts,
            preference_drift_factor=config.preference_drift_factor,
            mean_reversion_rate=config.mean_reversion_rate,
            seed=config.seed,
        )
        for i in range(config.n_agents):
            agents.add_agent(is_it=i < config.n_initial_it, grid=grid)

        placed = agents.get_num_agents()
        logger.info("Number of agents: %d (it: %d)", placed, agents.get_is_it_count())
        if placed < config.n_agents:
            logger.warning(
                "Placed %d of %d requested agents; the grid has no more free spawn windows",
                placed,
                config.n_agents,
            )
        return cls(grid, catalog, agents, workers=config.workers)

    # ---------- Stepping ----------
    def step(self) -> None:
        agent_ids = self.agents.get_ids()
        decisions = self._decide_all(agent_ids)

        for agent_id, action in zip(agent_ids, decisions):
            if action is not None:
                action.apply(agent_id, self.agents, self.grid)

        self.grid.apply_deltas(self.agents.flush_delta_log())
        self.step_counter += 1

    def _decide_all(self, agent_ids: List[int]) -> List[Optional[Action]]:
        if self._executor is None:
            return self._decide_chunk(agent_ids)
        decisions: List[Optional[Action]] = []
        # map() yields results in submission order, so commit order stays insertion order
        for chunk_decisions in self._executor.map(self._decide_chunk, split_chunks(agent_ids, self.workers)):
            decisions.extend(chunk_decisions)
        return decisions

    def _decide_chunk(self, agent_ids: List[int]) -> List[Optional[Action]]:
        return [self._decide(agent_id) for agent_id in agent_ids]

    def _decide(self, agent_id: int) -> Optional[Action]:
        self.agents.update_preference(agent_id, self.catalog.mean_preferences)
        ordering = self.agents.get_action_ordering(agent_id)
        return self.catalog.resolve_action(ordering, agent_id, self._agent_view, self._grid_view)

    # ---------- Collaborator views ----------
    def snapshot(self) -> List[RenderObject]:
        return self.agents.get_render_info()

    def stats(self) -> Dict[str, int]:
        return {
            "steps": self.step_counter,
            "tagged": self.agents.get_tagged_count(),
            "agents": self.agents.get_num_agents(),
            "it_agents": self.agents.get_is_it_count(),
        }

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> TagEngine:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
