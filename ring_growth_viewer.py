"""
Pygame host for the growing particle ring.

Owns one ``RingParticleSystem``, seeds it once, steps it every tick and
draws its snapshot:

- ring links as faint lines
- particles as filled circles coloured by the system's diagnostics
- a translucent background fill so motion leaves short trails

Keyboard controls:
  - Space: pause / resume
  - Right arrow: single-step one tick while paused
  - R: reseed the ring
  - +/-: zoom in / out
  - G: toggle population graph
  - Esc or window close: quit
"""

from __future__ import annotations

import argparse
import logging
import random
from typing import List, Optional, Tuple

import pygame

from ring_growth_2d import RingParticleSystem, SimConfig, Snapshot, Vec2

logger = logging.getLogger(__name__)


class RingGrowthApp:
    """Pygame app wrapper around RingParticleSystem."""

    def __init__(
        self,
        particle_count: int = SimConfig.particle_count,
        spawn_radius: float = SimConfig.spawn_radius,
        screen_size: Tuple[int, int] = (SimConfig.screen_width, SimConfig.screen_height),
        zoom: float = 1.0,
        steps_per_frame: int = 1,
        seed: Optional[int] = None,
        **sim_settings,
    ) -> None:
        pygame.init()
        self.clock = pygame.time.Clock()

        # Window
        self.pixel_width = screen_size[0]
        self.pixel_height = screen_size[1]
        self.screen = pygame.display.set_mode((self.pixel_width, self.pixel_height))
        pygame.display.set_caption("Particle Ring Growth (pygame)")

        # Translucent overlay for trails (alpha 0.2 of a near-black fill)
        self.fade = pygame.Surface((self.pixel_width, self.pixel_height), pygame.SRCALPHA)
        self.fade.fill((3, 3, 3, 51))
        self.edge_layer = pygame.Surface((self.pixel_width, self.pixel_height), pygame.SRCALPHA)

        # Simulation
        self.particle_count = particle_count
        self.spawn_radius = spawn_radius
        self.seed = seed
        self.sim_settings = sim_settings
        self.sim = self._new_system()

        self.zoom_factor = max(0.1, zoom)
        self.steps_per_frame = max(1, steps_per_frame)

        self.running = True
        self.paused = False
        self.step_once = False

        # Graph display state
        self.show_graphs = False
        self.population_history: List[float] = []
        self.max_history_points = 240

        self.screen.fill((3, 3, 3))

    def _new_system(self) -> RingParticleSystem:
        rng = random.Random(self.seed) if self.seed is not None else None
        sim = RingParticleSystem(rng=rng, **self.sim_settings)
        sim.spawn(self.particle_count, self.spawn_radius)
        return sim

    # ---------------
    # World <-> screen
    # ---------------

    def world_to_screen(self, p: Vec2) -> Tuple[int, int]:
        x = self.pixel_width * 0.5 + p[0] * self.zoom_factor
        # Invert y because screen y grows downward
        y = self.pixel_height * 0.5 - p[1] * self.zoom_factor
        return int(x), int(y)

    # ---------------
    # Input handling
    # ---------------

    def _handle_events(self) -> None:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.running = False
            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    self.running = False
                elif event.key == pygame.K_SPACE:
                    self.paused = not self.paused
                elif event.key == pygame.K_RIGHT:
                    self.step_once = True
                elif event.key == pygame.K_r:
                    self.sim = self._new_system()
                    self.population_history.clear()
                    print(f"Reseeded ring with {self.particle_count} particles")
                elif event.key in (pygame.K_EQUALS, pygame.K_PLUS, pygame.K_KP_PLUS):
                    self.zoom_factor = min(self.zoom_factor * 1.1, 20.0)
                elif event.key in (pygame.K_MINUS, pygame.K_UNDERSCORE, pygame.K_KP_MINUS):
                    self.zoom_factor = max(self.zoom_factor / 1.1, 0.05)
                elif event.key == pygame.K_g:
                    self.show_graphs = not self.show_graphs

    # ---------------
    # Rendering
    # ---------------

    def _draw(self, snap: Snapshot) -> None:
        self.screen.blit(self.fade, (0, 0))

        # Ring links (faint)
        self.edge_layer.fill((0, 0, 0, 0))
        for i in range(snap.count):
            next_id = snap.links[i][1]
            start = self.world_to_screen(snap.positions[i])
            end = self.world_to_screen(snap.positions[next_id])
            pygame.draw.line(self.edge_layer, (204, 204, 204, 26), start, end, 1)
        self.screen.blit(self.edge_layer, (0, 0))

        # Particles
        radius_px = max(1, int(snap.particle_radius * self.zoom_factor * 0.5))
        for i in range(snap.count):
            r, g, b, _ = snap.colors[i]
            color = (int(r * 255), int(g * 255), int(b * 255))
            pygame.draw.circle(self.screen, color, self.world_to_screen(snap.positions[i]), radius_px)

        if self.show_graphs:
            self._draw_graph()

        pygame.display.flip()

    def _draw_graph(self) -> None:
        """Population-over-time graph at the top-right."""
        margin = 10
        rect = pygame.Rect(self.pixel_width - margin - 260, margin, 260, 80)
        font = pygame.font.SysFont("consolas", 12)
        text_color = (230, 230, 230)

        pygame.draw.rect(self.screen, (5, 5, 20), rect)
        pygame.draw.rect(self.screen, (180, 180, 180), rect, 1)

        data = self.population_history
        max_val = max(max(data), 1.0) * 1.1 if data else 1.0
        n = len(data)
        for i in range(1, n):
            x0 = rect.left + int(rect.width * (i - 1) / max(n - 1, 1))
            x1 = rect.left + int(rect.width * i / max(n - 1, 1))
            y0 = rect.bottom - int(rect.height * (data[i - 1] / max_val))
            y1 = rect.bottom - int(rect.height * (data[i] / max_val))
            pygame.draw.line(self.screen, (80, 220, 80), (x0, y0), (x1, y1), 2)

        label = font.render(f"particles: {self.sim.particle_count}", True, text_color)
        self.screen.blit(label, (rect.left + 4, rect.top + 4))

    # ---------------
    # Main loop
    # ---------------

    def _advance(self) -> int:
        """Step the simulation for this frame; return the number of steps run."""
        if self.paused and not self.step_once:
            return 0
        # Right arrow while paused advances exactly one tick
        steps = 1 if self.paused else self.steps_per_frame
        for _ in range(steps):
            self.sim.step()
        self.step_once = False

        self.population_history.append(float(self.sim.particle_count))
        if len(self.population_history) > self.max_history_points:
            self.population_history = self.population_history[-self.max_history_points :]
        return steps

    def run(self) -> None:
        target_fps = 60
        while self.running:
            self.clock.tick(target_fps)
            self._handle_events()

            self._advance()
            self._draw(self.sim.snapshot())

        logger.info(
            "Stopped after %d steps with %d particles", self.sim.step_count, self.sim.particle_count
        )
        pygame.quit()


def main() -> None:
    parser = argparse.ArgumentParser(description="2D self-organizing particle ring (pygame)")
    parser.add_argument(
        "--particles",
        type=int,
        default=SimConfig.particle_count,
        help="Number of particles seeded on the initial ring (>= 3).",
    )
    parser.add_argument(
        "--spawn-radius",
        type=float,
        default=SimConfig.spawn_radius,
        help="Radius of the initial ring in world units.",
    )
    parser.add_argument(
        "--influence-radius",
        type=float,
        default=SimConfig.influence_radius,
        help="Distance within which non-linked particles push each other apart.",
    )
    parser.add_argument(
        "--particle-radius",
        type=float,
        default=SimConfig.particle_radius,
        help="Drawn particle size in world units.",
    )
    parser.add_argument(
        "--split-threshold",
        type=int,
        default=SimConfig.split_neighbor_threshold,
        help="An edge may split when its endpoints have fewer neighbours combined than this.",
    )
    parser.add_argument(
        "--split-probability",
        type=float,
        default=SimConfig.split_probability,
        help="Chance per qualifying edge per step that it splits.",
    )
    parser.add_argument(
        "--no-split",
        action="store_true",
        help="Disable edge splitting (fixed population).",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for the random source (default: unseeded).",
    )
    parser.add_argument(
        "--zoom",
        type=float,
        default=1.0,
        help="Pixels per world unit.",
    )
    parser.add_argument(
        "--steps-per-frame",
        type=int,
        default=1,
        help="Simulation steps per rendered frame.",
    )
    parser.add_argument(
        "--screen-width",
        type=int,
        default=SimConfig.screen_width,
        help="Window width in pixels.",
    )
    parser.add_argument(
        "--screen-height",
        type=int,
        default=SimConfig.screen_height,
        help="Window height in pixels.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = RingGrowthApp(
        particle_count=args.particles,
        spawn_radius=args.spawn_radius,
        screen_size=(args.screen_width, args.screen_height),
        zoom=args.zoom,
        steps_per_frame=args.steps_per_frame,
        seed=args.seed,
        influence_radius=args.influence_radius,
        particle_radius=args.particle_radius,
        split_enabled=not args.no_split,
        split_neighbor_threshold=args.split_threshold,
        split_probability=args.split_probability,
    )
    app.run()


if __name__ == "__main__":
    main()
