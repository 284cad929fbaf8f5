"""
Core geometry types for convex fracture.

Provides Plane (a retained half-space used by the clipper), TangentFrame
(the 2D impact-local frame seeds and cells live in), and the small vector
helpers shared by the polyhedron, clipping and tessellation modules.
"""
from dataclasses import dataclass, field
from typing import Tuple

import numpy as np
from scipy.spatial.transform import Rotation


@dataclass
class Plane:
    """A cutting plane defining a retained half-space.

    The normal points into the retained side: a point with signed distance
    ``d = normal . (x - point)`` greater than the tolerance is inside.
    """
    normal: np.ndarray              # (3,) unit normal, towards the kept side
    point: np.ndarray               # (3,) any point on the plane

    def __post_init__(self):
        normal = np.asarray(self.normal, dtype=float).reshape(3)
        length = float(np.linalg.norm(normal))
        if length < 1e-12:
            raise ValueError("Plane normal must be non-zero")
        self.normal = normal / length
        self.point = np.asarray(self.point, dtype=float).reshape(3)

    @classmethod
    def from_normal_offset(cls, normal, offset: float) -> "Plane":
        """Build the plane ``n . x = offset`` (normal normalised first)."""
        n = np.asarray(normal, dtype=float).reshape(3)
        n = n / np.linalg.norm(n)
        return cls(normal=n, point=n * float(offset))

    @property
    def offset(self) -> float:
        """Signed offset d of the plane equation n . x = d."""
        return float(self.normal @ self.point)

    @property
    def outward(self) -> np.ndarray:
        """Direction pointing away from the retained side."""
        return -self.normal

    def signed_distance(self, points: np.ndarray) -> np.ndarray:
        """Signed distances of one point (3,) or many points (N, 3)."""
        pts = np.asarray(points, dtype=float)
        return (pts - self.point) @ self.normal

    def flipped(self) -> "Plane":
        """Same plane retaining the opposite side."""
        return Plane(normal=-self.normal, point=self.point.copy())


@dataclass
class TangentFrame:
    """Orthonormal 2D frame on the plane through ``origin`` perpendicular to ``normal``.

    The basis is right-handed: ``basis_u x basis_v == normal``, so a loop that
    is counter-clockwise in (u, v) is counter-clockwise seen from +normal.
    """
    origin: np.ndarray                                   # (3,) frame origin
    normal: np.ndarray                                   # (3,) unit "up" axis
    basis_u: np.ndarray = field(default=None)            # (3,) first in-plane axis
    basis_v: np.ndarray = field(default=None)            # (3,) second in-plane axis

    def __post_init__(self):
        self.origin = np.asarray(self.origin, dtype=float).reshape(3)
        self.normal = normalize(self.normal)
        if self.basis_u is None or self.basis_v is None:
            self.basis_u, self.basis_v = _make_2d_basis(self.normal)

    @classmethod
    def from_normal(cls, origin, normal) -> "TangentFrame":
        return cls(origin=origin, normal=normal)

    def to_2d(self, points_3d: np.ndarray) -> np.ndarray:
        """Project 3D point(s) into local (u, v) coordinates."""
        d = np.asarray(points_3d, dtype=float) - self.origin
        return np.stack([d @ self.basis_u, d @ self.basis_v], axis=-1)

    def to_3d(self, points_2d: np.ndarray) -> np.ndarray:
        """Lift local (u, v) coordinate(s) back onto the 3D plane."""
        uv = np.asarray(points_2d, dtype=float)
        return (
            self.origin
            + uv[..., 0:1] * self.basis_u
            + uv[..., 1:2] * self.basis_v
        )


# ─── Vector helpers ──────────────────────────────────────────────────────────

def normalize(vector) -> np.ndarray:
    """Return a unit copy of ``vector``; raises on zero length."""
    v = np.asarray(vector, dtype=float).reshape(3)
    length = float(np.linalg.norm(v))
    if length < 1e-12:
        raise ValueError(f"Cannot normalise zero-length vector {v}")
    return v / length


def quaternion_to_matrix(quaternion) -> np.ndarray:
    """Rotation matrix of an (x, y, z, w) quaternion."""
    return Rotation.from_quat(np.asarray(quaternion, dtype=float)).as_matrix()


def pose_matrix(position, quaternion) -> np.ndarray:
    """4x4 homogeneous transform from a position and (x, y, z, w) quaternion."""
    transform = np.eye(4)
    transform[:3, :3] = quaternion_to_matrix(quaternion)
    transform[:3, 3] = np.asarray(position, dtype=float)
    return transform


# ─── Internal helpers ────────────────────────────────────────────────────────

def _make_2d_basis(normal: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Build an orthonormal (u, v) basis perpendicular to normal."""
    n = normal / np.linalg.norm(normal)
    if abs(n[2]) < 0.9:
        ref = np.array([0.0, 0.0, 1.0])
    else:
        ref = np.array([1.0, 0.0, 0.0])
    u = np.cross(n, ref)
    u /= np.linalg.norm(u)
    v = np.cross(n, u)
    v /= np.linalg.norm(v)
    return u, v
