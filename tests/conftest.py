"""
Shared test fixtures for fracture engine tests.
"""
import sys
import warnings
from pathlib import Path

# Suppress trimesh internal RuntimeWarning for degenerate slivers
# (divide-by-zero in center_mass when a piece has zero volume).
warnings.filterwarnings(
    "ignore",
    message="invalid value encountered in divide",
    category=RuntimeWarning,
    module=r"trimesh\.triangles",
)

import numpy as np
import pytest

# Add src/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fragment_assembler import RigidBodyState
from geometry_io import load_shape
from polyhedron import Polyhedron

REPO_ROOT = Path(__file__).resolve().parent.parent
PLATE_PATH = REPO_ROOT / "assets" / "plate_convex.json"


@pytest.fixture
def cube():
    """Cube with corners at (+-1, +-1, +-1): volume 8, six quad faces."""
    return Polyhedron.box((1.0, 1.0, 1.0))


@pytest.fixture
def tetrahedron():
    """Unit corner tetrahedron: volume 1/6."""
    vertices = [(0, 0, 0), (1, 0, 0), (0, 1, 0), (0, 0, 1)]
    faces = [[0, 2, 1], [0, 1, 3], [0, 3, 2], [1, 2, 3]]
    return Polyhedron(vertices, faces)


@pytest.fixture
def plate():
    """The convex plate asset (26 vertices, 48 triangles)."""
    return load_shape(PLATE_PATH)


@pytest.fixture
def plate_path():
    return PLATE_PATH


@pytest.fixture
def unit_state():
    """Resting body of mass 8 at the origin."""
    return RigidBodyState(mass=8.0)


@pytest.fixture
def random_hulls():
    """Ten convex hulls of random point clouds (fixed seed)."""
    rng = np.random.default_rng(1234)
    return [
        Polyhedron.from_convex_hull(rng.normal(size=(30, 3)) * rng.uniform(0.5, 2.0, size=3))
        for _ in range(10)
    ]
