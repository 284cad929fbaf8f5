"""
Convex polyhedron with an integer half-edge arena.

Faces are outward-wound vertex loops. Every directed edge (a, b) lives in a
flat arena together with its reverse (b, a); each record stores the arena
index of its reverse instead of a reference, so copying the arrays copies
the whole adjacency graph. Mass properties are delegated to trimesh.
"""
import logging
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import trimesh

from geometry_primitives import Plane

logger = logging.getLogger(__name__)

EdgeKey = Tuple[int, int]


class Polyhedron:
    """Immutable-once-built convex solid: vertices, faces and half-edges.

    Attributes:
        vertices: (V, 3) float array in body space.
        faces: list of vertex index loops, outward (counter-clockwise) winding.
        edge_vertices: (E, 2) int array, start and end vertex of each edge.
        edge_reverse: (E,) int array, arena index of each edge's reverse.
        face_edges: per face, the arena indices of its edge loop.
        edge_lookup: ordered vertex pair -> arena index.
    """

    def __init__(self, vertices, faces: Sequence[Sequence[int]]):
        self.vertices = np.array(vertices, dtype=float).reshape(-1, 3)
        self.faces: List[List[int]] = [[int(i) for i in face] for face in faces]
        self._build_edges()

    # ─── Construction ────────────────────────────────────────────────────────

    def _build_edges(self):
        """Create each directed edge once, paired with its reverse."""
        starts: List[int] = []
        ends: List[int] = []
        reverse: List[int] = []
        lookup: Dict[EdgeKey, int] = {}
        face_edges: List[List[int]] = []

        for face in self.faces:
            loop = []
            for a, b in _loop_pairs(face):
                if (a, b) not in lookup:
                    e = len(starts)
                    starts.extend((a, b))
                    ends.extend((b, a))
                    reverse.extend((e + 1, e))
                    lookup[(a, b)] = e
                    lookup[(b, a)] = e + 1
                loop.append(lookup[(a, b)])
            face_edges.append(loop)

        self.edge_vertices = np.array(
            [starts, ends], dtype=np.int64,
        ).T.reshape(-1, 2)
        self.edge_reverse = np.array(reverse, dtype=np.int64)
        self.edge_lookup = lookup
        self.face_edges = face_edges

    @classmethod
    def box(cls, half_extents=(1.0, 1.0, 1.0)) -> "Polyhedron":
        """Axis-aligned box centred at the origin."""
        hx, hy, hz = (float(h) for h in np.broadcast_to(half_extents, (3,)))
        vertices = [
            (-hx, -hy, -hz), (hx, -hy, -hz), (hx, hy, -hz), (-hx, hy, -hz),
            (-hx, -hy, hz), (hx, -hy, hz), (hx, hy, hz), (-hx, hy, hz),
        ]
        faces = [
            [0, 3, 2, 1],   # -z
            [4, 5, 6, 7],   # +z
            [0, 1, 5, 4],   # -y
            [2, 3, 7, 6],   # +y
            [0, 4, 7, 3],   # -x
            [1, 2, 6, 5],   # +x
        ]
        return cls(vertices, faces)

    @classmethod
    def from_trimesh(cls, mesh: trimesh.Trimesh) -> "Polyhedron":
        """Wrap a closed, outward-wound triangle mesh (one face per triangle)."""
        return cls(np.asarray(mesh.vertices), np.asarray(mesh.faces))

    @classmethod
    def from_convex_hull(cls, points) -> "Polyhedron":
        """Convex hull of a point cloud as a triangulated polyhedron."""
        hull = trimesh.convex.convex_hull(np.asarray(points, dtype=float))
        return cls.from_trimesh(hull)

    # ─── Copies and derived polyhedra ────────────────────────────────────────

    def copy(self) -> "Polyhedron":
        """Deep copy; the edge arena indices stay valid against the copies."""
        clone = Polyhedron.__new__(Polyhedron)
        clone.vertices = self.vertices.copy()
        clone.faces = [list(face) for face in self.faces]
        clone.edge_vertices = self.edge_vertices.copy()
        clone.edge_reverse = self.edge_reverse.copy()
        clone.edge_lookup = dict(self.edge_lookup)
        clone.face_edges = [list(loop) for loop in self.face_edges]
        return clone

    def reindexed(self) -> "Polyhedron":
        """Drop vertices no face references and renumber densely."""
        return _reindexed(self.vertices, self.faces)

    def translated(self, offset) -> "Polyhedron":
        """Same topology with every vertex shifted by ``offset``."""
        shifted = self.copy()
        shifted.vertices = shifted.vertices + np.asarray(offset, dtype=float)
        return shifted

    # ─── Topology accessors ──────────────────────────────────────────────────

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def face_count(self) -> int:
        return len(self.faces)

    @property
    def edge_count(self) -> int:
        return len(self.edge_vertices)

    def edge(self, e: int) -> EdgeKey:
        a, b = self.edge_vertices[e]
        return int(a), int(b)

    def reverse(self, e: int) -> int:
        return int(self.edge_reverse[e])

    def edge_index(self, a: int, b: int) -> Optional[int]:
        return self.edge_lookup.get((int(a), int(b)))

    def iter_face_edges(self, f: int) -> Iterator[EdgeKey]:
        for e in self.face_edges[f]:
            yield self.edge(e)

    # ─── Geometry ────────────────────────────────────────────────────────────

    def face_normal(self, f: int) -> np.ndarray:
        """Outward unit normal of face ``f`` (Newell's method)."""
        pts = self.vertices[self.faces[f]]
        n = np.cross(pts, np.roll(pts, -1, axis=0)).sum(axis=0)
        length = float(np.linalg.norm(n))
        if length < 1e-15:
            return np.zeros(3)
        return n / length

    def face_centroid(self, f: int) -> np.ndarray:
        return self.vertices[self.faces[f]].mean(axis=0)

    def face_plane(self, f: int) -> Plane:
        """Supporting plane of face ``f`` retaining the solid's side."""
        return Plane(normal=-self.face_normal(f), point=self.face_centroid(f))

    def to_trimesh(self) -> trimesh.Trimesh:
        """Fan-triangulated mesh (faces are convex, so fans are valid)."""
        triangles = [
            (face[0], face[i], face[i + 1])
            for face in self.faces
            for i in range(1, len(face) - 1)
        ]
        return trimesh.Trimesh(
            vertices=self.vertices,
            faces=np.array(triangles, dtype=np.int64).reshape(-1, 3),
            process=False,
        )

    @property
    def volume(self) -> float:
        return float(self.to_trimesh().volume)

    @property
    def centroid(self) -> np.ndarray:
        """Centre of mass of the solid (uniform density)."""
        return np.asarray(self.to_trimesh().center_mass, dtype=float)

    @property
    def bounding_radius(self) -> float:
        """Radius of the origin-centred sphere enclosing every vertex."""
        if len(self.vertices) == 0:
            return 0.0
        return float(np.linalg.norm(self.vertices, axis=1).max())

    def contains(self, point, tolerance: float = 1e-9) -> bool:
        """True when ``point`` is inside or on the boundary of the solid."""
        p = np.asarray(point, dtype=float)
        for f in range(self.face_count):
            if not np.any(self.face_normal(f)):
                continue
            if self.face_plane(f).signed_distance(p) < -tolerance:
                return False
        return True

    # ─── Validation ──────────────────────────────────────────────────────────

    def validate(self, tolerance: float = 1e-5) -> List[str]:
        """Check closed-manifold and convexity invariants.

        Returns list of issue strings (empty = ok).
        """
        issues = []
        if self.face_count < 4:
            issues.append(f"Only {self.face_count} faces (a closed solid needs 4)")

        used = set()
        for f, face in enumerate(self.faces):
            if len(face) < 3:
                issues.append(f"Face {f} has {len(face)} vertices")
            if len(face) != len(self.face_edges[f]):
                issues.append(f"Face {f} edge loop length differs from vertex loop")
            for i in face:
                if i < 0 or i >= self.vertex_count:
                    issues.append(f"Face {f} references missing vertex {i}")
                used.add(i)
        unused = self.vertex_count - len(used & set(range(self.vertex_count)))
        if unused:
            issues.append(f"{unused} unused vertices")

        usage = np.zeros(self.edge_count, dtype=np.int64)
        for loop in self.face_edges:
            for e in loop:
                usage[e] += 1
        for e in range(self.edge_count):
            r = self.reverse(e)
            if self.reverse(r) != e:
                issues.append(f"Edge {e} reverse pairing is broken")
            if usage[e] > 1:
                issues.append(f"Edge {self.edge(e)} is used by {usage[e]} faces")
            elif usage[e] == 1 and usage[r] == 0:
                issues.append(f"Edge {self.edge(e)} has no matching reverse face")

        if not issues:
            issues.extend(self._convexity_issues(tolerance))
        return issues

    @property
    def is_valid(self) -> bool:
        return not self.validate()

    def _convexity_issues(self, tolerance: float) -> List[str]:
        scale = max(1.0, self.bounding_radius)
        issues = []
        for f in range(self.face_count):
            if not np.any(self.face_normal(f)):
                issues.append(f"Face {f} is degenerate (zero area)")
                continue
            plane = self.face_plane(f)
            worst = float(plane.signed_distance(self.vertices).min())
            if worst < -tolerance * scale:
                issues.append(
                    f"Face {f} is not supporting: vertex {worst:.2e} outside its plane"
                )
        return issues

    def __repr__(self) -> str:
        return (
            f"Polyhedron(vertices={self.vertex_count}, faces={self.face_count}, "
            f"edges={self.edge_count})"
        )


# ─── Internal helpers ────────────────────────────────────────────────────────

def _loop_pairs(loop: Sequence[int]) -> Iterator[EdgeKey]:
    """Consecutive (a, b) pairs of a closed index loop."""
    n = len(loop)
    for i in range(n):
        yield loop[i], loop[(i + 1) % n]


def _reindexed(vertices: np.ndarray, faces: Sequence[Sequence[int]]) -> Polyhedron:
    """Build a polyhedron keeping only the vertices ``faces`` reference."""
    remap: Dict[int, int] = {}
    for face in faces:
        for i in face:
            if i not in remap:
                remap[i] = len(remap)
    order = sorted(remap, key=remap.get)
    kept = np.asarray(vertices, dtype=float)[order] if order else np.zeros((0, 3))
    new_faces = [[remap[i] for i in face] for face in faces]
    return Polyhedron(kept, new_faces)
