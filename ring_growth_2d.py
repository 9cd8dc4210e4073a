"""
2D self-organizing particle ring with local edge splitting.

A ring of point particles is stored as parallel arrays indexed by a stable
integer id. Every particle keeps two links, (prev, next), so the id set
forms one or more cycles. On each step:

- every particle is pulled toward the midpoint of its two linked neighbours
  (attraction)
- every particle is pushed away from nearby particles that are not its
  direct links (pressure)
- display colours are derived from the normalized diagnostics
- sparse edges may split: a new particle is appended at the edge midpoint
  and wired in between the two endpoints

The population only grows. Ids are dense and never reused, so
``new_index = len(positions)`` on every insertion.

Structure notes:

- All simulation state is stored in plain Python lists of tuples/floats.
- Tuning constants live in ``SimConfig``; ``RingParticleSystem`` copies
  them onto the instance and accepts per-instance overrides.
- Rendering is not done here. A host reads ``snapshot()`` and draws it
  (see ``ring_growth_viewer.py``).
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# ---------------------------------------------
# Type aliases
# ---------------------------------------------

Vec2 = Tuple[float, float]
Color4 = Tuple[float, float, float, float]
Link = Tuple[int, int]


# ---------------------------------------------
# Central simulation configuration
# (Edit this block to tweak behaviour)
# ---------------------------------------------


class SimConfig:
    # Seeding defaults (used by the host)
    particle_count: int = 100
    spawn_radius: float = 100.0

    # Screen/window size in pixels (host only)
    screen_width: int = 800
    screen_height: int = 600

    # Geometry
    particle_radius: float = 4.0  # draw size only
    influence_radius: float = 12.0

    # Radial wobble applied at seeding (purely cosmetic)
    spawn_wobble_amplitude: float = 50.0
    spawn_wobble_frequency: float = 6.2

    # Attraction toward the midpoint of the two linked neighbours
    attraction_gain: float = 0.6
    max_attraction: Optional[float] = None

    # Pressure away from non-linked neighbours inside influence_radius
    pressure_gain: float = 0.2
    pressure_scale: float = 0.5
    max_pressure: Optional[float] = 2.0

    # Edge splitting (sparsity rule)
    split_enabled: bool = True
    split_neighbor_threshold: int = 16
    split_probability: float = 0.05
    split_bulge: float = 1.0

    # Neighbour search
    use_spatial_hash: bool = True


# Settings a RingParticleSystem accepts as keyword overrides
SYSTEM_SETTINGS: Tuple[str, ...] = (
    "spawn_wobble_amplitude",
    "spawn_wobble_frequency",
    "attraction_gain",
    "max_attraction",
    "pressure_gain",
    "pressure_scale",
    "max_pressure",
    "split_enabled",
    "split_neighbor_threshold",
    "split_probability",
    "split_bulge",
    "use_spatial_hash",
)


class InvalidArgument(ValueError):
    """Raised when the system is created or driven with invalid arguments."""


# ---------------------------------------------
# Utility vector functions
# ---------------------------------------------

def v_add(a: Vec2, b: Vec2) -> Vec2:
    return a[0] + b[0], a[1] + b[1]


def v_sub(a: Vec2, b: Vec2) -> Vec2:
    return a[0] - b[0], a[1] - b[1]


def v_mul(a: Vec2, s: float) -> Vec2:
    return a[0] * s, a[1] * s


def v_length_sq(a: Vec2) -> float:
    return a[0] * a[0] + a[1] * a[1]


def v_length(a: Vec2) -> float:
    return math.sqrt(v_length_sq(a))


def v_normalize(a: Vec2) -> Vec2:
    """Unit vector along ``a``, or the zero vector when ``a`` has no length."""
    length = v_length(a)
    if length <= 1e-8:
        return 0.0, 0.0
    inv = 1.0 / length
    return a[0] * inv, a[1] * inv


def v_limit(a: Vec2, max_length: Optional[float]) -> Vec2:
    """Clamp the magnitude of ``a`` to ``max_length`` (None = no limit)."""
    if max_length is None:
        return a
    if v_length_sq(a) <= max_length * max_length:
        return a
    return v_mul(v_normalize(a), max_length)


def _clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


def _ratio(value: float, maximum: float) -> float:
    if maximum <= 1e-12:
        return 0.0
    return value / maximum


# ---------------------------------------------
# Spatial hashing
# ---------------------------------------------

OFFSETS_2D: List[Tuple[int, int]] = [
    (-1, 1),
    (0, 1),
    (1, 1),
    (-1, 0),
    (0, 0),
    (1, 0),
    (-1, -1),
    (0, -1),
    (1, -1),
]


def get_cell_2d(position: Vec2, radius: float) -> Tuple[int, int]:
    return int(math.floor(position[0] / radius)), int(math.floor(position[1] / radius))


def build_spatial_hash(positions: List[Vec2], radius: float) -> Dict[Tuple[int, int], List[int]]:
    """Bucket particle ids by grid cell of side ``radius``.

    With cells wider than the search radius, every point within the search
    radius of a query lies in the query's cell or one of its 8 neighbours.
    """
    cells: Dict[Tuple[int, int], List[int]] = {}
    for i, pos in enumerate(positions):
        cell = get_cell_2d(pos, radius)
        bucket = cells.get(cell)
        if bucket is None:
            bucket = []
            cells[cell] = bucket
        bucket.append(i)
    return cells


# ---------------------------------------------
# Read-only export for rendering
# ---------------------------------------------

@dataclass(frozen=True)
class Snapshot:
    """Point-in-time copy of the drawable state."""

    positions: Tuple[Vec2, ...]
    colors: Tuple[Color4, ...]
    links: Tuple[Link, ...]
    count: int
    particle_radius: float


# ---------------------------------------------
# Simulation state
# ---------------------------------------------

class RingParticleSystem:
    """
    Growth-only particle ring.

    Storage is append-only: ``positions``, ``colors``, ``links``,
    ``pressures``, ``attractions`` and ``neighbor_counts`` always have the
    same length, and ``links[i] == (prev, next)``.
    """

    def __init__(
        self,
        influence_radius: float = SimConfig.influence_radius,
        particle_radius: float = SimConfig.particle_radius,
        rng: Optional[random.Random] = None,
        **overrides,
    ) -> None:
        # --- Tuning (mirrors SimConfig) ---
        self.influence_radius: float = influence_radius
        self.particle_radius: float = particle_radius
        self.spawn_wobble_amplitude: float = SimConfig.spawn_wobble_amplitude
        self.spawn_wobble_frequency: float = SimConfig.spawn_wobble_frequency
        self.attraction_gain: float = SimConfig.attraction_gain
        self.max_attraction: Optional[float] = SimConfig.max_attraction
        self.pressure_gain: float = SimConfig.pressure_gain
        self.pressure_scale: float = SimConfig.pressure_scale
        self.max_pressure: Optional[float] = SimConfig.max_pressure
        self.split_enabled: bool = SimConfig.split_enabled
        self.split_neighbor_threshold: int = SimConfig.split_neighbor_threshold
        self.split_probability: float = SimConfig.split_probability
        self.split_bulge: float = SimConfig.split_bulge
        self.use_spatial_hash: bool = SimConfig.use_spatial_hash

        for name, value in overrides.items():
            if name not in SYSTEM_SETTINGS:
                raise InvalidArgument(f"unknown setting: {name!r}")
            setattr(self, name, value)

        self._validate_settings()

        self.rng: random.Random = rng if rng is not None else random.Random()

        # Internal state arrays (parallel, indexed by particle id)
        self.positions: List[Vec2] = []
        self.colors: List[Color4] = []
        self.links: List[Link] = []
        self.pressures: List[Vec2] = []
        self.attractions: List[Vec2] = []
        self.neighbor_counts: List[int] = []

        # Population maxima from the last step (colour normalization)
        self.max_pressure_index: int = 0
        self.max_attraction_index: int = 0
        self.max_neighbors_index: int = 0

        # Counters
        self.step_count: int = 0
        self.splits_last_step: int = 0

    def _validate_settings(self) -> None:
        for name in ("influence_radius", "particle_radius", "pressure_scale"):
            value = getattr(self, name)
            if not (value > 0.0 and math.isfinite(value)):
                raise InvalidArgument(f"{name} must be finite and > 0, got {value}")
        for name in ("max_attraction", "max_pressure"):
            value = getattr(self, name)
            if value is not None and not value >= 0.0:
                raise InvalidArgument(f"{name} must be None or >= 0, got {value}")
        if not 0.0 <= self.split_probability <= 1.0:
            raise InvalidArgument(
                f"split_probability must be within [0, 1], got {self.split_probability}"
            )
        if self.split_neighbor_threshold < 0:
            raise InvalidArgument(
                f"split_neighbor_threshold must be >= 0, got {self.split_neighbor_threshold}"
            )

    @property
    def particle_count(self) -> int:
        return len(self.positions)

    @property
    def hash_cell_size(self) -> float:
        # Slightly wider than influence_radius so a pair exactly one radius
        # apart never rounds into cells two apart.
        return self.influence_radius * (1.0 + 1e-9)

    def prev_of(self, index: int) -> int:
        return self.links[index][0]

    def next_of(self, index: int) -> int:
        return self.links[index][1]

    # -----------------------------
    # Storage
    # -----------------------------

    def _add_particle(self, position: Vec2, color: Color4, links: Link) -> int:
        new_index = len(self.positions)
        self.positions.append(position)
        self.colors.append(color)
        self.links.append(links)
        self.pressures.append((0.0, 0.0))
        self.attractions.append((0.0, 0.0))
        self.neighbor_counts.append(0)
        return new_index

    # -----------------------------
    # Seeding
    # -----------------------------

    def _random_color(self) -> Color4:
        lum = self.rng.random() * 0.8 + 0.1
        return (
            lum,
            _clamp01(lum - self.rng.random() * 0.2),
            _clamp01(lum - self.rng.random() * 0.1),
            1.0,
        )

    def spawn(self, count: int, radius: float) -> None:
        """Seed ``count`` particles on a circle of ``radius`` as one cycle."""
        if isinstance(count, bool) or not isinstance(count, int) or count < 3:
            raise InvalidArgument(f"count must be an integer >= 3, got {count!r}")
        if not (radius > 0.0 and math.isfinite(radius)):
            raise InvalidArgument(f"radius must be finite and > 0, got {radius}")
        if self.positions:
            raise InvalidArgument("system is already seeded")

        delta_phi = math.tau / count
        for i in range(count):
            phi = i * delta_phi
            direction = (math.cos(phi), math.sin(phi))
            wobble = math.sin(phi * self.spawn_wobble_frequency) * self.spawn_wobble_amplitude
            position = v_mul(direction, radius + wobble)
            links = ((i - 1) % count, (i + 1) % count)
            self._add_particle(position, self._random_color(), links)

        logger.info("Spawned ring of %d particles at radius %.3f", count, radius)

    # -----------------------------
    # Neighbour discovery
    # -----------------------------

    def _neighbors_in(
        self,
        index: int,
        positions: List[Vec2],
        cells: Optional[Dict[Tuple[int, int], List[int]]],
    ) -> List[int]:
        prev_id, next_id = self.links[index]
        pos = positions[index]
        r = self.influence_radius
        sqr_radius = r * r

        if cells is None:
            candidates = range(len(positions))
        else:
            origin_cell = get_cell_2d(pos, self.hash_cell_size)
            candidates = []
            for ox, oy in OFFSETS_2D:
                bucket = cells.get((origin_cell[0] + ox, origin_cell[1] + oy))
                if bucket:
                    candidates.extend(bucket)

        neighbors = []
        for j in candidates:
            if j == index or j == prev_id or j == next_id:
                continue
            if v_length_sq(v_sub(positions[j], pos)) <= sqr_radius:
                neighbors.append(j)
        neighbors.sort()
        return neighbors

    def neighbors_of(self, index: int) -> List[int]:
        """Ids within ``influence_radius`` of ``index``, excluding itself and its links."""
        if not 0 <= index < len(self.positions):
            raise InvalidArgument(f"particle id {index} out of range")
        cells = None
        if self.use_spatial_hash:
            cells = build_spatial_hash(self.positions, self.hash_cell_size)
        return self._neighbors_in(index, self.positions, cells)

    # -------------------------
    # Simulation step
    # -------------------------

    def step(self) -> None:
        """Advance one tick: forces, colours, then splitting."""
        if not self.positions:
            raise RuntimeError("spawn() must be called before step()")

        # Everything below reads the positions frozen here
        old_positions = list(self.positions)
        cells = None
        if self.use_spatial_hash:
            cells = build_spatial_hash(old_positions, self.hash_cell_size)

        denom = self.influence_radius * self.pressure_scale

        for i in range(len(old_positions)):
            pos = old_positions[i]
            neighbors = self._neighbors_in(i, old_positions, cells)

            prev_id, next_id = self.links[i]
            midpoint = v_mul(v_add(old_positions[prev_id], old_positions[next_id]), 0.5)
            attraction = v_limit(v_sub(midpoint, pos), self.max_attraction)

            pressure = (0.0, 0.0)
            for j in neighbors:
                pressure = v_add(pressure, v_mul(v_sub(pos, old_positions[j]), 1.0 / denom))
            pressure = v_limit(pressure, self.max_pressure)

            self.positions[i] = v_add(
                pos,
                v_add(
                    v_mul(attraction, self.attraction_gain),
                    v_mul(pressure, self.pressure_gain),
                ),
            )
            self.attractions[i] = attraction
            self.pressures[i] = pressure
            self.neighbor_counts[i] = len(neighbors)

        self._update_maxima()
        self._update_colors()

        self.splits_last_step = self.maybe_split() if self.split_enabled else 0
        self.step_count += 1

        logger.debug(
            "Step %d: %d particles, %d splits, max |pressure|=%.4f, max |attraction|=%.4f, max neighbours=%d",
            self.step_count,
            len(self.positions),
            self.splits_last_step,
            v_length(self.pressures[self.max_pressure_index]),
            v_length(self.attractions[self.max_attraction_index]),
            self.neighbor_counts[self.max_neighbors_index],
        )

    # -------------------------
    # Diagnostics and colouring
    # -------------------------

    def _update_maxima(self) -> None:
        n = len(self.positions)
        self.max_pressure_index = max(range(n), key=lambda i: v_length_sq(self.pressures[i]))
        self.max_attraction_index = max(range(n), key=lambda i: v_length_sq(self.attractions[i]))
        self.max_neighbors_index = max(range(n), key=lambda i: self.neighbor_counts[i])

    def _update_colors(self) -> None:
        max_p = v_length(self.pressures[self.max_pressure_index])
        max_a = v_length(self.attractions[self.max_attraction_index])
        max_n = float(self.neighbor_counts[self.max_neighbors_index])

        for i in range(len(self.positions)):
            p = _ratio(v_length(self.pressures[i]), max_p)
            a = _ratio(v_length(self.attractions[i]), max_a)
            n = 1.0 - _ratio(float(self.neighbor_counts[i]), max_n)
            self.colors[i] = (_clamp01(p), _clamp01(a), _clamp01(p * a + 0.1 * n), 1.0)

    # -------------------------
    # Topological splitting
    # -------------------------

    def maybe_split(self) -> int:
        """Split sparse edges; return the number of particles added.

        An edge (i, next(i)) qualifies when the endpoints' combined neighbour
        count is below ``split_neighbor_threshold``; a qualifying edge then
        splits with probability ``split_probability``. Particles created in
        this pass are not themselves evaluated until the next pass.
        """
        splits = 0
        for i in range(len(self.positions)):
            next_id = self.links[i][1]
            crowd = self.neighbor_counts[i] + self.neighbor_counts[next_id]
            if crowd < self.split_neighbor_threshold and self.rng.random() < self.split_probability:
                self.split_at(i, next_id)
                splits += 1
        return splits

    def split_at(self, p0: int, p1: int) -> int:
        """Insert a particle between ``p0`` and ``p1 == next(p0)``; return its id."""
        n = len(self.positions)
        if not (0 <= p0 < n and 0 <= p1 < n):
            raise InvalidArgument(f"particle ids ({p0}, {p1}) out of range")
        if self.links[p0][1] != p1 or self.links[p1][0] != p0:
            raise InvalidArgument(f"particles {p0} and {p1} are not linked as next({p0}) == {p1}")

        midpoint = v_mul(v_add(self.positions[p0], self.positions[p1]), 0.5)
        bulge = v_mul(v_add(self.pressures[p0], self.pressures[p1]), self.split_bulge)
        position = v_add(midpoint, bulge)

        c0 = self.colors[p0]
        c1 = self.colors[p1]
        color = tuple((c0[k] + c1[k]) * 0.5 for k in range(4))

        new_index = self._add_particle(position, color, (p0, p1))
        self.links[p0] = (self.links[p0][0], new_index)
        self.links[p1] = (new_index, self.links[p1][1])

        logger.debug("Split edge (%d, %d) -> new particle %d", p0, p1, new_index)
        return new_index

    # -------------------------
    # Export
    # -------------------------

    def snapshot(self) -> Snapshot:
        return Snapshot(
            positions=tuple(self.positions),
            colors=tuple(self.colors),
            links=tuple(self.links),
            count=len(self.positions),
            particle_radius=self.particle_radius,
        )


# ---------------------------------------------
# Functional facade (host contract)
# ---------------------------------------------

def create(
    influence_radius: float = SimConfig.influence_radius,
    particle_radius: float = SimConfig.particle_radius,
    rng: Optional[random.Random] = None,
    **overrides,
) -> RingParticleSystem:
    return RingParticleSystem(
        influence_radius=influence_radius,
        particle_radius=particle_radius,
        rng=rng,
        **overrides,
    )


def spawn(system: RingParticleSystem, count: int, radius: float) -> None:
    system.spawn(count, radius)


def step(system: RingParticleSystem) -> None:
    system.step()


def snapshot(system: RingParticleSystem) -> Snapshot:
    return system.snapshot()
