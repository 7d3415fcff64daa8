"""
Run configuration for the tag simulation.
Constants are fixed at startup; nothing here is reconfigured while running.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Dict, Optional
import json


@dataclass
class TagConfig:
    # Grid and windows
    grid_side: int = 800
    step_window: int = 21
    tag_window: int = 31
    collision_detection: bool = True
    # Population
    n_agents: int = 1000
    n_initial_it: int = 1
    max_agents: Optional[int] = None  # None -> grid_side ** 2
    max_spawn_attempts: int = 500
    # Decision phase
    workers: int = 1
    preference_drift_factor: float = 1.5
    mean_reversion_rate: float = 0.02
    seed: Optional[int] = None
    # Run / visualization
    steps: int = 10000
    render: bool = False
    window_side: int = 720
    render_fps: int = 120
    log_every: int = 0

    @property
    def agent_ceiling(self) -> int:
        return self.grid_side * self.grid_side if self.max_agents is None else self.max_agents

    def validate(self) -> "TagConfig":
        for name in ("grid_side", "step_window", "tag_window", "window_side", "render_fps"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        for name in ("n_agents", "n_initial_it", "steps", "log_every", "max_spawn_attempts"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")
        if self.n_initial_it > self.n_agents:
            raise ValueError(
                f"n_initial_it ({self.n_initial_it}) cannot exceed n_agents ({self.n_agents})"
            )
        if self.max_agents is not None and self.max_agents < 0:
            raise ValueError(f"max_agents must be non-negative, got {self.max_agents}")
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")
        if self.preference_drift_factor <= 1.0:
            raise ValueError(
                f"preference_drift_factor must be > 1, got {self.preference_drift_factor}"
            )
        if not 0.0 <= self.mean_reversion_rate <= 1.0:
            raise ValueError(
                f"mean_reversion_rate must lie in [0, 1], got {self.mean_reversion_rate}"
            )
        return self

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


# Drift constants of the single-threaded variant; the defaults above belong to the parallel one.
SEQUENTIAL_DRIFT: Dict[str, object] = {
    "preference_drift_factor": 1.3,
    "mean_reversion_rate": 0.01,
}


def load_config(path: str | Path) -> TagConfig:
    """Seed a TagConfig from a JSON file; keys that are not config fields are ignored."""
    with open(Path(path), "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a JSON object")
    cfg = TagConfig()
    for field_info in fields(TagConfig):
        name = field_info.name
        if name in data:
            setattr(cfg, name, data[name])
    return cfg


def build_config(
    overrides: Optional[Dict[str, object]] = None, path: str | Path | None = None
) -> TagConfig:
    cfg = load_config(path) if path is not None else TagConfig()
    if overrides:
        names = {field_info.name for field_info in fields(TagConfig)}
        for key, value in overrides.items():
            if key not in names:
                raise ValueError(f"Unknown TagConfig field: {key}")
            setattr(cfg, key, value)
    return cfg.validate()
