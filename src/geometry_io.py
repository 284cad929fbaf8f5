"""
Geometry interchange I/O and fragment export.

Interchange format (JSON):
    {"vertices": [x0, y0, z0, x1, ...], "faces": [a, b, c, ...]}

Vertices may also be nested [x, y, z] triples, and faces may be lists of
index lists (polygons with >= 3 vertices, outward winding). Flat face lists
are read as triangles.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence, Union

import numpy as np
import trimesh

from fragment_assembler import Fragment
from geometry_primitives import pose_matrix
from halfspace_clipper import FractureError
from polyhedron import Polyhedron

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class GeometryFormatError(FractureError, ValueError):
    """Interchange data is malformed."""
    pass


def parse_shape_data(data: Dict[str, Any]) -> Polyhedron:
    """Build a Polyhedron from interchange data.

    Raises:
        GeometryFormatError: on missing keys, bad lengths or bad indices.
    """
    if not isinstance(data, dict) or "vertices" not in data or "faces" not in data:
        raise GeometryFormatError("Shape data needs 'vertices' and 'faces'")

    try:
        vertices = np.asarray(data["vertices"], dtype=float)
    except (TypeError, ValueError) as exc:
        raise GeometryFormatError(f"Vertices are not numeric: {exc}") from exc
    if vertices.ndim == 1:
        if len(vertices) % 3:
            raise GeometryFormatError(
                f"Flat vertex list length {len(vertices)} is not a multiple of 3"
            )
        vertices = vertices.reshape(-1, 3)
    if vertices.ndim != 2 or vertices.shape[1] != 3:
        raise GeometryFormatError(f"Vertices must be 3D points, got shape {vertices.shape}")

    faces = _parse_faces(data["faces"])
    for face in faces:
        if len(face) < 3:
            raise GeometryFormatError(f"Face {face} has fewer than 3 vertices")
        if min(face) < 0 or max(face) >= len(vertices):
            raise GeometryFormatError(f"Face {face} references a missing vertex")

    return Polyhedron(vertices, faces)


def _parse_faces(raw: Sequence) -> List[List[int]]:
    if len(raw) and all(isinstance(f, (list, tuple)) for f in raw):
        return [[int(i) for i in face] for face in raw]
    if any(isinstance(f, (list, tuple)) for f in raw):
        raise GeometryFormatError("Faces mix index lists and flat indices")
    if len(raw) % 3:
        raise GeometryFormatError(f"Flat face list length {len(raw)} is not a multiple of 3")
    flat = [int(i) for i in raw]
    return [flat[i:i + 3] for i in range(0, len(flat), 3)]


def load_shape(path: PathLike) -> Polyhedron:
    """Load an interchange JSON file, or the convex hull of any mesh trimesh reads."""
    path = Path(path)
    if path.suffix.lower() != ".json":
        mesh = trimesh.load(str(path), force="mesh")
        polyhedron = Polyhedron.from_convex_hull(mesh.vertices)
        logger.debug("Loaded convex hull of %s: %r", path, polyhedron)
        return polyhedron

    with path.open("r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise GeometryFormatError(f"{path}: invalid JSON ({exc})") from exc
    polyhedron = parse_shape_data(data)
    logger.debug("Loaded %s: %r", path, polyhedron)
    return polyhedron


def polyhedron_to_data(polyhedron: Polyhedron) -> Dict[str, Any]:
    """Interchange data with nested vertices and polygon faces."""
    return {
        "vertices": polyhedron.vertices.tolist(),
        "faces": [list(map(int, face)) for face in polyhedron.faces],
    }


def fragment_to_dict(fragment: Fragment) -> Dict[str, Any]:
    """Convert a fragment to a JSON-ready dictionary."""
    return {
        "seed_index": fragment.seed_index,
        "generation": fragment.generation,
        "volume": float(fragment.volume),
        "volume_ratio": float(fragment.volume_ratio),
        "local_offset": np.asarray(fragment.local_offset).tolist(),
        "state": fragment.state.to_dict(),
        "shape": polyhedron_to_data(fragment.polyhedron),
    }


def write_json(path: PathLike, payload: Dict[str, Any]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)


def write_fragments_json(path: PathLike, fragments: Sequence[Fragment],
                         metadata: Dict[str, Any] = None) -> None:
    payload = {
        "fragment_count": len(fragments),
        "total_volume": float(sum(f.volume for f in fragments)),
        "fragments": [fragment_to_dict(f) for f in fragments],
    }
    if metadata:
        payload["metadata"] = metadata
    write_json(path, payload)


def export_fragment_meshes(fragments: Sequence[Fragment], output_dir: PathLike,
                           file_type: str = "stl") -> List[Path]:
    """Write one world-space mesh per fragment.

    Args:
        fragments: Fragments to export.
        output_dir: Directory for the mesh files (created if missing).
        file_type: Any format trimesh exports ("stl", "obj", "glb", ...).

    Returns:
        Paths of the written files, in fragment order.
    """
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    paths = []
    for i, fragment in enumerate(fragments):
        mesh = fragment.polyhedron.to_trimesh()
        mesh.apply_transform(pose_matrix(fragment.state.position, fragment.state.orientation))
        path = out / f"fragment_{i:03d}.{file_type}"
        mesh.export(str(path), file_type=file_type)
        paths.append(path)
    logger.info("Exported %d fragment meshes to %s", len(paths), out)
    return paths


def fragments_scene(fragments: Sequence[Fragment]) -> trimesh.Scene:
    """All fragments placed in one trimesh scene, for viewing."""
    scene = trimesh.Scene()
    for i, fragment in enumerate(fragments):
        scene.add_geometry(
            fragment.polyhedron.to_trimesh(),
            node_name=f"fragment_{i:03d}",
            geom_name=f"fragment_{i:03d}",
            transform=pose_matrix(fragment.state.position, fragment.state.orientation),
        )
    return scene
