"""
Seed scattering and nearest-seed cell partition in the impact tangent plane.

Seeds are sampled in polar coordinates around the impact point. The plane
is partitioned into one convex cell per seed (a Voronoi diagram computed by
GEOS through Shapely), clipped to a bounding square that contains the
source polyhedron's projection.
"""
import logging
from typing import List, Optional, Union

import numpy as np
from shapely.geometry import MultiPoint, Point, Polygon, box
from shapely.geometry.polygon import orient
from shapely.ops import voronoi_diagram

logger = logging.getLogger(__name__)

RandomSource = Union[None, int, np.random.Generator]


def generate_seed_points(
    count: int,
    radius: float,
    rng: RandomSource = None,
) -> np.ndarray:
    """Scatter ``count`` seeds within ``radius`` of the impact point.

    Each seed takes a radius uniform in [0, radius] and an angle uniform in
    [0, 2 pi), so seeds cluster towards the impact.

    Args:
        count: Number of seeds (0 allowed).
        radius: Maximum distance from the impact point.
        rng: Seed or Generator for deterministic scattering.

    Returns:
        (count, 2) array of tangent-plane coordinates.
    """
    if count < 0:
        raise ValueError(f"Seed count must be non-negative, got {count}")
    if radius < 0:
        raise ValueError(f"Seed radius must be non-negative, got {radius}")
    generator = rng if isinstance(rng, np.random.Generator) else np.random.default_rng(rng)
    r = radius * generator.random(count)
    theta = 2.0 * np.pi * generator.random(count)
    return np.column_stack([r * np.cos(theta), r * np.sin(theta)])


def bounding_square(points_2d: np.ndarray, margin: float = 1.0) -> Polygon:
    """Origin-centred square containing every point with ``margin`` to spare."""
    pts = np.asarray(points_2d, dtype=float).reshape(-1, 2)
    half = float(np.abs(pts).max()) if len(pts) else 0.0
    half += max(float(margin), 1e-9)
    return box(-half, -half, half, half)


def tessellate_cells(seeds: np.ndarray, bounds: Polygon) -> List[Polygon]:
    """Partition ``bounds`` into one convex cell per seed, in seed order.

    Every point of a cell is at least as close to its seed as to any other.
    A seed that duplicates an earlier one gets an empty polygon.
    """
    pts = np.asarray(seeds, dtype=float).reshape(-1, 2)
    if len(pts) == 0:
        return []
    if len(pts) == 1:
        return [orient(bounds, sign=1.0)]

    regions = voronoi_diagram(MultiPoint([tuple(p) for p in pts]), envelope=bounds)
    pool: List[Optional[Polygon]] = []
    for region in regions.geoms:
        clipped = region.intersection(bounds)
        pool.append(orient(clipped, sign=1.0) if isinstance(clipped, Polygon) else None)

    cells: List[Polygon] = []
    for i, seed in enumerate(pts):
        point = Point(seed)
        match = next(
            (j for j, cell in enumerate(pool) if cell is not None and cell.covers(point)),
            None,
        )
        if match is None:
            logger.debug("Seed %d at %s has no cell (duplicate seed)", i, seed)
            cells.append(Polygon())
            continue
        cells.append(pool[match])
        pool[match] = None
    return cells


def cell_boundary_loop(cell: Polygon) -> np.ndarray:
    """Counter-clockwise exterior of ``cell`` without the closing vertex."""
    if cell.is_empty:
        return np.zeros((0, 2))
    ring = orient(cell, sign=1.0).exterior
    return np.asarray(ring.coords, dtype=float)[:-1, :2]
