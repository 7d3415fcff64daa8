#!/usr/bin/env python3
"""
Run the tag simulation from the command line.

  python -m taggrid.run_tag --steps 2000 --render
  python -m taggrid.run_tag --config my_run.json --workers 8
"""
from __future__ import annotations

import argparse
import logging
import time
from typing import Dict, List, Optional

from taggrid.config.config_tag import SEQUENTIAL_DRIFT, TagConfig, build_config
from taggrid.engine import TagEngine


logger = logging.getLogger("taggrid")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Multi-agent tag on a bounded grid.")
    parser.add_argument("--config", type=str, default=None, help="JSON file seeding the TagConfig")
    parser.add_argument("--steps", type=int, default=None)
    parser.add_argument("--grid-side", type=int, default=None)
    parser.add_argument("--agents", type=int, default=None, help="number of agents to seed")
    parser.add_argument("--it", type=int, default=None, help="number of initial 'it' agents")
    parser.add_argument("--workers", type=int, default=None, help="decision threads (1 = sequential)")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--no-collision", action="store_true", help="disable step-window collision checks")
    parser.add_argument("--render", action="store_true", help="open the pygame viewer")
    parser.add_argument("--log-every", type=int, default=None, help="progress log interval in ticks")
    parser.add_argument(
        "--sequential-drift", action="store_true", help="use the single-threaded drift constants (1.3 / 0.01)"
    )
    parser.add_argument("--log-level", type=str, default="INFO")
    return parser.parse_args(argv)


def overrides_from_args(args: argparse.Namespace) -> Dict[str, object]:
    overrides: Dict[str, object] = {}
    mapping = {
        "steps": args.steps,
        "grid_side": args.grid_side,
        "n_agents": args.agents,
        "n_initial_it": args.it,
        "workers": args.workers,
        "seed": args.seed,
        "log_every": args.log_every,
    }
    for key, value in mapping.items():
        if value is not None:
            overrides[key] = value
    if args.no_collision:
        overrides["collision_detection"] = False
    if args.render:
        overrides["render"] = True
    if args.sequential_drift:
        overrides.update(SEQUENTIAL_DRIFT)
    return overrides


def run_simulation(config: TagConfig) -> Dict[str, int]:
    logger.debug("Run config: %s", config.to_dict())
    renderer_cls = None
    if config.render:
        try:
            from taggrid.utils.pygame_renderer import PyGameRenderer as renderer_cls
        except ImportError as exc:
            raise RuntimeError("pygame is required for rendering") from exc

    renderer = None
    try:
        with TagEngine.from_config(config) as engine:
            if renderer_cls is not None:
                renderer = renderer_cls(config.grid_side, window_side=config.window_side, fps=config.render_fps)
            started = time.perf_counter()
            for step_idx in range(config.steps):
                engine.step()
                if config.log_every > 0 and (step_idx % config.log_every == 0 or step_idx == config.steps - 1):
                    elapsed = max(time.perf_counter() - started, 1e-9)
                    logger.info(
                        "t=%05d tagged=%d it=%d ticks/s=%.1f",
                        engine.step_counter,
                        engine.agents.get_tagged_count(),
                        engine.agents.get_is_it_count(),
                        engine.step_counter / elapsed,
                    )
                if renderer is not None:
                    if not renderer.update(engine.snapshot(), engine.step_counter, engine.agents.get_tagged_count()):
                        logger.info("Viewer closed at step %d", engine.step_counter)
                        break
            return engine.stats()
    finally:
        if renderer is not None:
            renderer.close()


def print_stats(stats: Dict[str, int]) -> None:
    print(f"Steps done: {stats['steps']} \nNumber of times tagged: {stats['tagged']}")


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        config = build_config(overrides_from_args(args), path=args.config)
        stats = run_simulation(config)
    except Exception:
        logger.exception("Simulation aborted")
        raise
    print_stats(stats)


if __name__ == "__main__":
    main()
