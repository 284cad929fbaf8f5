"""
Clip a convex polyhedron against one half-space.

Faces fully inside pass through, faces fully outside are dropped, and cut
faces are rebuilt in a single pass over their edge loop. The cross-section
is closed with exactly one cap face chained from the open boundary edges.
A clip that leaves fewer than four faces has no result.
"""
import logging
from collections import Counter
from typing import Dict, List, Optional, Tuple

import numpy as np

from geometry_primitives import Plane
from plane_classifier import (
    DEFAULT_EPSILON,
    Classification,
    PlaneClassification,
    classify_against_plane,
)
from polyhedron import Polyhedron, _loop_pairs, _reindexed

logger = logging.getLogger(__name__)

MIN_SOLID_FACES = 4


class FractureError(Exception):
    """Base exception for fracture engine errors."""
    pass


class ClipInvariantError(FractureError):
    """Cut boundary could not be stitched: the input is not a convex manifold."""
    pass


def clip_polyhedron(
    polyhedron: Polyhedron,
    plane: Plane,
    center: Optional[np.ndarray] = None,
    epsilon: float = DEFAULT_EPSILON,
) -> Optional[Polyhedron]:
    """Keep the part of ``polyhedron`` on the retained side of ``plane``.

    Args:
        polyhedron: Convex, closed source solid (not modified).
        plane: Clip plane; its normal points into the kept half-space.
        center: Optional local point subtracted from every result vertex.
        epsilon: Tolerance for on-plane decisions.

    Returns:
        A new densely indexed Polyhedron, or None when nothing (or only a
        degenerate sliver) remains.

    Raises:
        ClipInvariantError: when a cut face or the cap cannot be stitched.
    """
    cls = classify_against_plane(polyhedron, plane, epsilon)

    faces: List[List[int]] = []
    for f, status in enumerate(cls.face_classes):
        if status is Classification.OUTSIDE:
            continue
        if status in (Classification.INSIDE, Classification.COPLANAR):
            faces.append(list(cls.polyhedron.faces[f]))
            continue
        loop = _rebuild_cut_face(cls, f)
        if len(loop) < 3:
            logger.debug("Dropping degenerate cut face %d (%d vertices)", f, len(loop))
            continue
        faces.append(loop)

    open_edges = _open_edges(faces)
    if open_edges:
        if len(open_edges) < 3:
            logger.debug("Cut boundary has %d edges; treating as empty", len(open_edges))
            return None
        faces.append(_stitch_cap(open_edges))

    if len(faces) < MIN_SOLID_FACES:
        return None

    vertices = cls.vertices
    if center is not None:
        vertices = vertices - np.asarray(center, dtype=float)
    return _reindexed(vertices, faces)


def clip_by_planes(
    polyhedron: Polyhedron,
    planes: List[Plane],
    center: Optional[np.ndarray] = None,
    epsilon: float = DEFAULT_EPSILON,
) -> Optional[Polyhedron]:
    """Clip sequentially by every plane; ``center`` is applied once, at the end.

    Stops at the first plane that leaves no result.
    """
    current = polyhedron
    for i, plane in enumerate(planes):
        last = i == len(planes) - 1
        current = clip_polyhedron(
            current, plane, center=center if last else None, epsilon=epsilon,
        )
        if current is None:
            return None
    if not planes and center is not None:
        current = current.translated(-np.asarray(center, dtype=float))
    return current


# ─── Cut faces ───────────────────────────────────────────────────────────────

def _rebuild_cut_face(cls: PlaneClassification, f: int) -> List[int]:
    """Vertex loop of an INTERSECT face after clipping, in original winding.

    The walk starts at the first strictly INSIDE vertex so the surviving run
    is contiguous and the synthesized cut edge closes the loop.
    """
    loop_edges = cls.polyhedron.face_edges[f]
    start = 0
    for i, e in enumerate(loop_edges):
        a = int(cls.edge_vertices[e, 0])
        if not cls.is_new_vertex(a) and cls.vertex_classes[a] is Classification.INSIDE:
            start = i
            break
    ordered = loop_edges[start:] + loop_edges[:start]

    loop: List[int] = []
    surviving: List[Tuple[int, int]] = []
    for e in ordered:
        s, t = (int(i) for i in cls.edge_vertices[e])
        if cls.is_kept(s):
            loop.append(s)
        if cls.edge_classes[e] is Classification.INTERSECT and cls.is_new_vertex(t):
            loop.append(t)
        if cls.is_kept(s) and cls.is_kept(t):
            surviving.append((s, t))

    exit_vertex, entry_vertex = _cut_endpoints(surviving, f)
    position = loop.index(exit_vertex)
    if loop[(position + 1) % len(loop)] != entry_vertex:
        raise ClipInvariantError(
            f"Face {f}: cut endpoints {exit_vertex}->{entry_vertex} are not adjacent"
        )
    return loop


def _cut_endpoints(surviving: List[Tuple[int, int]], f: int) -> Tuple[int, int]:
    """The two vertices used once by surviving edges: (exit, entry).

    The exit vertex ends a surviving edge and the entry vertex starts one.
    """
    counts: Counter = Counter()
    for s, t in surviving:
        counts[s] += 1
        counts[t] += 1
    ends = [v for v, n in counts.items() if n == 1]
    if len(ends) != 2:
        raise ClipInvariantError(
            f"Face {f}: expected 2 cut endpoints, found {len(ends)}"
        )
    edge_ends = {t for _, t in surviving}
    exit_vertex = next((v for v in ends if v in edge_ends), None)
    entry_vertex = next((v for v in ends if v != exit_vertex), None)
    if exit_vertex is None or entry_vertex is None:
        raise ClipInvariantError(f"Face {f}: cut endpoints have no direction")
    return exit_vertex, entry_vertex


# ─── Cap face ────────────────────────────────────────────────────────────────

def _open_edges(faces: List[List[int]]) -> List[Tuple[int, int]]:
    """Directed face edges whose reverse is used by no face, in face order."""
    directed = {pair for face in faces for pair in _loop_pairs(face)}
    return [
        (a, b)
        for face in faces
        for a, b in _loop_pairs(face)
        if (b, a) not in directed
    ]


def _stitch_cap(open_edges: List[Tuple[int, int]]) -> List[int]:
    """Chain the reversed open edges into a single cap loop."""
    next_vertex: Dict[int, int] = {}
    for a, b in open_edges:
        if b in next_vertex:
            raise ClipInvariantError(f"Cut boundary branches at vertex {b}")
        next_vertex[b] = a

    first = open_edges[0][1]
    cap = [first]
    current = next_vertex[first]
    while current != first:
        if current not in next_vertex or len(cap) > len(next_vertex):
            raise ClipInvariantError("Cut boundary does not close")
        cap.append(current)
        current = next_vertex[current]

    if len(cap) != len(next_vertex):
        raise ClipInvariantError(
            f"Cut boundary splits into several loops ({len(cap)} of {len(next_vertex)} edges)"
        )
    return cap
