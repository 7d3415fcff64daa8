import json
import sys
import types

import pytest

from taggrid.config.config_tag import build_config
from taggrid.engine import TagEngine
from taggrid.run_tag import main, overrides_from_args, parse_args, run_simulation


def test_parse_args_to_overrides():
    args = parse_args(["--steps", "5", "--agents", "12", "--it", "2", "--no-collision", "--sequential-drift"])
    overrides = overrides_from_args(args)
    assert overrides["steps"] == 5
    assert overrides["n_agents"] == 12
    assert overrides["n_initial_it"] == 2
    assert overrides["collision_detection"] is False
    assert overrides["preference_drift_factor"] == 1.3
    assert "render" not in overrides
    assert "seed" not in overrides


def test_run_simulation_headless():
    cfg = build_config(
        {"grid_side": 30, "step_window": 3, "tag_window": 5, "n_agents": 25, "steps": 10, "workers": 2, "seed": 1}
    )
    stats = run_simulation(cfg)
    assert stats["steps"] == 10
    assert stats["it_agents"] == 1
    assert stats["agents"] == 25


def test_main_prints_stats(tmp_path, capsys):
    path = tmp_path / "run.json"
    path.write_text(json.dumps({"grid_side": 30, "step_window": 3, "tag_window": 5}), encoding="utf-8")

    main(["--config", str(path), "--steps", "4", "--agents", "10", "--workers", "1", "--seed", "3", "--log-every", "2"])

    out = capsys.readouterr().out
    assert "Steps done: 4" in out
    assert "Number of times tagged:" in out


class _RecordingRenderer:
    instances = []

    def __init__(self, grid_side, window_side=720, fps=120):
        self.closed = False
        _RecordingRenderer.instances.append(self)

    def update(self, objects, step, tagged=0):
        return True

    def close(self):
        self.closed = True


@pytest.fixture
def recording_renderer(monkeypatch):
    module = types.ModuleType("taggrid.utils.pygame_renderer")
    module.PyGameRenderer = _RecordingRenderer
    monkeypatch.setitem(sys.modules, "taggrid.utils.pygame_renderer", module)
    _RecordingRenderer.instances = []
    return _RecordingRenderer


def _render_config():
    return build_config({"grid_side": 20, "step_window": 3, "tag_window": 5, "n_agents": 5, "steps": 3, "render": True})


def test_renderer_closed_when_a_step_fails(recording_renderer, monkeypatch):
    def broken_step(self):
        raise RuntimeError("boom")

    monkeypatch.setattr(TagEngine, "step", broken_step)
    with pytest.raises(RuntimeError, match="boom"):
        run_simulation(_render_config())
    assert len(recording_renderer.instances) == 1
    assert recording_renderer.instances[0].closed


def test_no_window_when_engine_build_fails(recording_renderer, monkeypatch):
    def broken_from_config(config):
        raise ValueError("bad world")

    monkeypatch.setattr(TagEngine, "from_config", staticmethod(broken_from_config))
    with pytest.raises(ValueError, match="bad world"):
        run_simulation(_render_config())
    assert recording_renderer.instances == []


def test_rendered_run_closes_viewer(recording_renderer):
    stats = run_simulation(_render_config())
    assert stats["steps"] == 3
    assert recording_renderer.instances[0].closed
