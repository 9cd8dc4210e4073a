from __future__ import annotations

import pytest

pygame = pytest.importorskip("pygame")

from ring_growth_viewer import RingGrowthApp  # noqa: E402


@pytest.fixture
def app(monkeypatch):
    monkeypatch.setenv("SDL_VIDEODRIVER", "dummy")
    monkeypatch.setenv("SDL_AUDIODRIVER", "dummy")
    instance = RingGrowthApp(
        particle_count=12,
        spawn_radius=40.0,
        screen_size=(200, 150),
        zoom=1.0,
        seed=4,
    )
    yield instance
    pygame.quit()


def test_world_to_screen_centres_origin(app):
    assert app.world_to_screen((0.0, 0.0)) == (100, 75)
    # y axis points up in world space
    assert app.world_to_screen((10.0, 10.0)) == (110, 65)


def test_app_seeds_and_draws(app):
    assert app.sim.particle_count == 12
    for _ in range(3):
        app.sim.step()
    app._draw(app.sim.snapshot())


def test_seeded_apps_are_reproducible(app):
    other = RingGrowthApp(particle_count=12, spawn_radius=40.0, screen_size=(200, 150), seed=4)
    assert other.sim.positions == app.sim.positions
    assert other.sim.colors == app.sim.colors


def test_single_step_while_paused_runs_one_tick(monkeypatch):
    monkeypatch.setenv("SDL_VIDEODRIVER", "dummy")
    monkeypatch.setenv("SDL_AUDIODRIVER", "dummy")
    app = RingGrowthApp(
        particle_count=12, spawn_radius=40.0, screen_size=(200, 150), steps_per_frame=5, seed=4
    )
    try:
        app.paused = True
        assert app._advance() == 0
        assert app.sim.step_count == 0

        app.step_once = True
        assert app._advance() == 1
        assert app.sim.step_count == 1
        assert not app.step_once

        app.paused = False
        assert app._advance() == 5
        assert app.sim.step_count == 6
    finally:
        pygame.quit()
