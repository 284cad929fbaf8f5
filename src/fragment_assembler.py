"""
Fragment assembly: clip the source solid by every cell prism and hand out
mass properties.

Pipeline (fragment_polyhedron):
1. Build the impact tangent frame (origin = impact point, normal = up axis)
2. Scatter seeds around the impact (or take the caller's seeds)
3. Partition a bounding square into one cell per seed
4. Derive one clip plane per cell edge
5. Clip the source by each cell's planes; cells that miss the source are skipped
6. Recentre each piece, place it in the world, scale mass/velocity by volume ratio
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from geometry_primitives import Plane, TangentFrame, quaternion_to_matrix
from halfspace_clipper import ClipInvariantError, clip_by_planes
from plane_deriver import derive_cell_planes
from polyhedron import Polyhedron
from seed_cells import (
    RandomSource,
    bounding_square,
    cell_boundary_loop,
    generate_seed_points,
    tessellate_cells,
)

logger = logging.getLogger(__name__)

CENTER_MODES = ("seed", "centroid")


def _zeros() -> np.ndarray:
    return np.zeros(3)


@dataclass
class RigidBodyState:
    """Rigid-body state exchanged with the physics world."""
    position: np.ndarray = field(default_factory=_zeros)
    orientation: np.ndarray = field(
        default_factory=lambda: np.array([0.0, 0.0, 0.0, 1.0])
    )  # quaternion (x, y, z, w)
    mass: float = 1.0
    velocity: np.ndarray = field(default_factory=_zeros)
    angular_velocity: np.ndarray = field(default_factory=_zeros)
    inertia: np.ndarray = field(default_factory=_zeros)  # principal moments
    force: np.ndarray = field(default_factory=_zeros)

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=float).reshape(3)
        self.orientation = np.asarray(self.orientation, dtype=float).reshape(4)
        self.velocity = np.asarray(self.velocity, dtype=float).reshape(3)
        self.angular_velocity = np.asarray(self.angular_velocity, dtype=float).reshape(3)
        self.inertia = np.asarray(self.inertia, dtype=float).reshape(3)
        self.force = np.asarray(self.force, dtype=float).reshape(3)

    def rotation_matrix(self) -> np.ndarray:
        return quaternion_to_matrix(self.orientation)

    def local_to_world(self, point_local: np.ndarray) -> np.ndarray:
        return self.position + self.rotation_matrix() @ np.asarray(point_local, dtype=float)

    def world_to_local(self, point_world: np.ndarray) -> np.ndarray:
        return self.rotation_matrix().T @ (np.asarray(point_world, dtype=float) - self.position)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "position": self.position.tolist(),
            "orientation": self.orientation.tolist(),
            "mass": float(self.mass),
            "velocity": self.velocity.tolist(),
            "angular_velocity": self.angular_velocity.tolist(),
            "inertia": self.inertia.tolist(),
            "force": self.force.tolist(),
        }


@dataclass
class FragmentationConfig:
    """Configuration for impact fragmentation."""
    seed_count: int = 4
    seed_radius: Optional[float] = None       # None: half the bounding radius
    epsilon: float = 1e-5                     # on-plane tolerance for clipping
    momentum_threshold: float = 20.0          # mass * impact speed needed to break
    bounds_margin: float = 1.0
    up_axis: Tuple[float, float, float] = (0.0, 0.0, 1.0)
    center_mode: str = "seed"                 # "seed" | "centroid"
    max_generations: int = 3
    strict: bool = False                      # re-raise ClipInvariantError
    random_seed: Optional[int] = None


@dataclass
class Fragment:
    """One piece of a broken body, ready for the physics world."""
    polyhedron: Polyhedron          # geometry relative to local_offset
    state: RigidBodyState
    volume: float
    volume_ratio: float             # fragment volume / source volume
    seed_index: int
    local_offset: np.ndarray        # (3,) piece origin in source body space
    generation: int = 1


def assemble_fragments(
    source: Polyhedron,
    state: RigidBodyState,
    cell_planes: Sequence[Sequence[Plane]],
    centers: Sequence[np.ndarray],
    config: Optional[FragmentationConfig] = None,
    generation: int = 0,
) -> List[Fragment]:
    """Clip ``source`` by each cell's planes and build the fragments.

    Args:
        source: Polyhedron being broken, in body space.
        state: Rigid-body state of the source.
        cell_planes: Per cell, its clip planes (in seed order).
        centers: Per cell, the body-space seed point used as fragment origin.
        config: Fragmentation parameters.
        generation: Fracture generation of the source (fragments get +1).

    Returns:
        Fragments in seed order; cells that miss the source contribute none.
    """
    if config is None:
        config = FragmentationConfig()
    if config.center_mode not in CENTER_MODES:
        raise ValueError(f"Unknown center mode: {config.center_mode}")
    if len(cell_planes) != len(centers):
        raise ValueError("Need one center per cell")

    source_volume = source.volume
    if source_volume <= 0.0:
        raise ValueError(f"Source volume must be positive, got {source_volume}")

    rotation = state.rotation_matrix()
    fragments: List[Fragment] = []

    for index, (planes, center) in enumerate(zip(cell_planes, centers)):
        if not planes:
            logger.debug("Cell %d has no boundary; skipped", index)
            continue
        center = np.asarray(center, dtype=float)
        seed_centered = config.center_mode == "seed"

        try:
            piece = clip_by_planes(
                source, list(planes),
                center=center if seed_centered else None,
                epsilon=config.epsilon,
            )
        except ClipInvariantError as exc:
            if config.strict:
                raise
            logger.warning("Cell %d abandoned: %s", index, exc)
            continue

        if piece is None:
            logger.debug("Cell %d does not intersect the source", index)
            continue

        if not seed_centered:
            center = piece.centroid
            piece = piece.translated(-center)

        volume = piece.volume
        if volume <= 0.0:
            logger.debug("Cell %d produced a zero-volume piece", index)
            continue
        ratio = volume / source_volume

        fragment_state = RigidBodyState(
            position=state.position + rotation @ center,
            orientation=state.orientation.copy(),
            mass=state.mass * ratio,
            velocity=state.velocity * ratio,
            angular_velocity=state.angular_velocity * ratio,
            inertia=state.inertia.copy(),
            force=state.force.copy(),
        )
        fragments.append(Fragment(
            polyhedron=piece,
            state=fragment_state,
            volume=volume,
            volume_ratio=ratio,
            seed_index=index,
            local_offset=center.copy(),
            generation=generation + 1,
        ))

    logger.info(
        "Assembled %d fragments from %d cells (%.1f%% of source volume)",
        len(fragments),
        len(cell_planes),
        100.0 * sum(f.volume_ratio for f in fragments),
    )
    return fragments


def fragment_polyhedron(
    source: Polyhedron,
    state: RigidBodyState,
    impact_point: np.ndarray,
    up: Optional[np.ndarray] = None,
    seeds: Optional[np.ndarray] = None,
    config: Optional[FragmentationConfig] = None,
    rng: RandomSource = None,
    generation: int = 0,
) -> List[Fragment]:
    """Break ``source`` around a body-space impact point.

    Args:
        source: Convex polyhedron in body space.
        state: Rigid-body state of the source.
        impact_point: (3,) impact location in body space.
        up: Propagation axis in body space (default: config.up_axis).
        seeds: Optional (k, 2) seeds in the impact tangent frame; sampled
            from ``rng`` (or config.random_seed) when omitted.
        config: Fragmentation parameters.
        rng: Seed or Generator used when sampling seeds.
        generation: Fracture generation of the source.

    Returns:
        List of Fragment (possibly empty).
    """
    if config is None:
        config = FragmentationConfig()
    axis = np.asarray(config.up_axis if up is None else up, dtype=float)
    frame = TangentFrame.from_normal(impact_point, axis)

    if seeds is None:
        radius = config.seed_radius
        if radius is None:
            radius = 0.5 * source.bounding_radius
        seeds = generate_seed_points(
            config.seed_count, radius,
            rng=config.random_seed if rng is None else rng,
        )
    seeds = np.asarray(seeds, dtype=float).reshape(-1, 2)

    projected = frame.to_2d(source.vertices)
    bounds = bounding_square(np.vstack([projected, seeds]), config.bounds_margin)
    cells = tessellate_cells(seeds, bounds)
    cell_planes = [derive_cell_planes(cell_boundary_loop(cell), frame) for cell in cells]
    centers = [frame.to_3d(seed) for seed in seeds]

    logger.debug(
        "Fragmenting %r at %s with %d seeds", source, np.round(frame.origin, 4), len(seeds),
    )
    return assemble_fragments(
        source, state, cell_planes, centers, config=config, generation=generation,
    )
