"""
Turn 2D cell boundary loops into 3D clip planes.

Each boundary edge of a cell, lifted into the impact tangent frame, spans a
plane containing the "up" axis (the impact propagation direction). The
planes of one cell bound an infinite prism along that axis.
"""
from typing import List

import numpy as np

from geometry_primitives import Plane, TangentFrame

MIN_EDGE_LENGTH = 1e-9


def derive_cell_planes(loop: np.ndarray, frame: TangentFrame) -> List[Plane]:
    """Clip planes for one counter-clockwise cell loop.

    For each edge ``curr -> next`` the plane normal is
    ``normalize(up x (next - curr))`` anchored at ``curr``; for a
    counter-clockwise loop it points into the cell, the retained side.

    Args:
        loop: (k, 2) boundary points in frame coordinates, no closing duplicate.
        frame: Tangent frame whose normal is the up axis.

    Returns:
        One Plane per non-degenerate edge, in loop order.
    """
    pts = np.asarray(loop, dtype=float).reshape(-1, 2)
    if len(pts) < 3:
        return []
    corners = frame.to_3d(pts)
    up = frame.normal

    planes = []
    for curr, nxt in zip(corners, np.roll(corners, -1, axis=0)):
        normal = np.cross(up, nxt - curr)
        length = float(np.linalg.norm(normal))
        if length < MIN_EDGE_LENGTH:
            continue
        planes.append(Plane(normal=normal / length, point=curr))
    return planes
