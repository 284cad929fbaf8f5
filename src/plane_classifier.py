"""
Vertex, edge and face classification of a polyhedron against a cutting plane.

Works on a private copy of the polyhedron. Edges crossing the plane get a
new intersection vertex appended to the working vertex array, and the
OUTSIDE endpoint of both the edge and its reverse is rewritten to it, so the
clipper can walk surviving edge loops directly.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List

import numpy as np

from geometry_primitives import Plane
from polyhedron import Polyhedron

logger = logging.getLogger(__name__)

DEFAULT_EPSILON = 1e-5


class Classification(Enum):
    """Position of a vertex, edge or face relative to a clip plane."""
    INSIDE = "inside"
    OUTSIDE = "outside"
    COPLANAR = "coplanar"
    INTERSECT = "intersect"


@dataclass
class PlaneClassification:
    """Classification of one polyhedron against one plane."""
    polyhedron: Polyhedron                  # private working copy
    plane: Plane
    vertices: np.ndarray                    # (V + K, 3) incl. intersection points
    distances: np.ndarray                   # (V,) signed distances of the originals
    vertex_classes: List[Classification]    # one per working vertex
    edge_vertices: np.ndarray               # (E, 2) endpoints after rewriting
    edge_classes: List[Classification]
    face_classes: List[Classification]
    intersections: Dict[int, int] = field(default_factory=dict)  # edge -> new vertex

    @property
    def original_vertex_count(self) -> int:
        return len(self.distances)

    def is_kept(self, vertex: int) -> bool:
        """Vertices that survive the clip: INSIDE, on the plane, or new."""
        return self.vertex_classes[vertex] is not Classification.OUTSIDE

    def is_new_vertex(self, vertex: int) -> bool:
        return vertex >= self.original_vertex_count


def classify_against_plane(
    polyhedron: Polyhedron,
    plane: Plane,
    epsilon: float = DEFAULT_EPSILON,
) -> PlaneClassification:
    """Classify every vertex, edge and face of ``polyhedron`` against ``plane``.

    Args:
        polyhedron: Source solid; it is copied, never modified.
        plane: Clip plane, normal pointing into the retained half-space.
        epsilon: Distance band treated as lying on the plane.

    Returns:
        PlaneClassification over a working copy with intersection vertices
        appended and crossing edges rewritten.
    """
    work = polyhedron.copy()
    distances = plane.signed_distance(work.vertices) if work.vertex_count else np.zeros(0)

    vertex_classes = [_classify_distance(d, epsilon) for d in distances]
    edge_vertices = work.edge_vertices.copy()
    edge_classes: List[Classification] = [None] * work.edge_count
    new_points: List[np.ndarray] = []
    intersections: Dict[int, int] = {}

    for e in range(work.edge_count):
        if edge_classes[e] is not None:
            continue
        r = work.reverse(e)
        a, b = (int(i) for i in edge_vertices[e])
        ca, cb = vertex_classes[a], vertex_classes[b]

        if {ca, cb} == {Classification.INSIDE, Classification.OUTSIDE}:
            t = distances[a] / (distances[a] - distances[b])
            point = work.vertices[a] + t * (work.vertices[b] - work.vertices[a])
            nv = work.vertex_count + len(new_points)
            new_points.append(point)
            if ca is Classification.OUTSIDE:
                edge_vertices[e, 0] = nv
                edge_vertices[r, 1] = nv
            else:
                edge_vertices[e, 1] = nv
                edge_vertices[r, 0] = nv
            intersections[e] = nv
            intersections[r] = nv
            status = Classification.INTERSECT
        elif Classification.OUTSIDE in (ca, cb):
            status = Classification.OUTSIDE
        elif ca is Classification.COPLANAR and cb is Classification.COPLANAR:
            status = Classification.COPLANAR
        else:
            status = Classification.INSIDE

        edge_classes[e] = status
        edge_classes[r] = status

    if new_points:
        vertices = np.vstack([work.vertices, np.array(new_points)])
    else:
        vertices = work.vertices
    vertex_classes = vertex_classes + [Classification.COPLANAR] * len(new_points)

    face_classes = [
        _classify_face(work, f, edge_classes, plane)
        for f in range(work.face_count)
    ]

    logger.debug(
        "Classified %d faces against plane n=%s: %d intersection vertices",
        work.face_count, np.round(plane.normal, 4), len(new_points),
    )
    return PlaneClassification(
        polyhedron=work,
        plane=plane,
        vertices=vertices,
        distances=distances,
        vertex_classes=vertex_classes,
        edge_vertices=edge_vertices,
        edge_classes=edge_classes,
        face_classes=face_classes,
        intersections=intersections,
    )


# ─── Internal helpers ────────────────────────────────────────────────────────

def _classify_distance(d: float, epsilon: float) -> Classification:
    if d > epsilon:
        return Classification.INSIDE
    if d < -epsilon:
        return Classification.OUTSIDE
    return Classification.COPLANAR


def _classify_face(
    work: Polyhedron,
    f: int,
    edge_classes: List[Classification],
    plane: Plane,
) -> Classification:
    """Face status from its edge statuses.

    A face crossed only through coplanar vertices has both INSIDE and OUTSIDE
    edges and no INTERSECT edge; it still has to be rebuilt.
    """
    classes = {edge_classes[e] for e in work.face_edges[f]}
    if Classification.INTERSECT in classes:
        return Classification.INTERSECT
    if Classification.INSIDE in classes and Classification.OUTSIDE in classes:
        return Classification.INTERSECT
    if Classification.OUTSIDE in classes:
        return Classification.OUTSIDE
    if Classification.INSIDE in classes:
        return Classification.INSIDE

    # Face lies in the cutting plane: keep it only when it already faces
    # out of the retained side.
    if float(work.face_normal(f) @ plane.outward) > 0.0:
        return Classification.COPLANAR
    return Classification.OUTSIDE
