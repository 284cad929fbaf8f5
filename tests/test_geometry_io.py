"""Tests for geometry interchange I/O and fragment export."""
import json

import numpy as np
import pytest
import trimesh

from fragment_assembler import RigidBodyState, fragment_polyhedron
from geometry_io import (
    GeometryFormatError,
    export_fragment_meshes,
    fragment_to_dict,
    fragments_scene,
    load_shape,
    parse_shape_data,
    polyhedron_to_data,
    write_fragments_json,
)
from halfspace_clipper import FractureError

GRID_SEEDS = np.array([[0.5, 0.5], [-0.5, 0.5], [-0.5, -0.5], [0.5, -0.5]])

TETRA_FLAT = {
    "vertices": [0, 0, 0, 1, 0, 0, 0, 1, 0, 0, 0, 1],
    "faces": [0, 2, 1, 0, 1, 3, 0, 3, 2, 1, 2, 3],
}


class TestParseShapeData:
    """Test interchange parsing."""

    def test_flat_lists(self):
        poly = parse_shape_data(TETRA_FLAT)
        assert poly.vertex_count == 4
        assert poly.face_count == 4
        assert poly.volume == pytest.approx(1.0 / 6.0)

    def test_nested_polygons(self, cube):
        poly = parse_shape_data(polyhedron_to_data(cube))
        assert poly.face_count == 6
        assert poly.volume == pytest.approx(8.0)

    def test_missing_key(self):
        with pytest.raises(GeometryFormatError):
            parse_shape_data({"vertices": [0, 0, 0]})

    def test_bad_vertex_length(self):
        with pytest.raises(GeometryFormatError):
            parse_shape_data({"vertices": [0, 0, 0, 1], "faces": [0, 0, 0]})

    def test_bad_face_length(self):
        data = dict(TETRA_FLAT, faces=[0, 1, 2, 3])
        with pytest.raises(GeometryFormatError):
            parse_shape_data(data)

    def test_index_out_of_range(self):
        data = dict(TETRA_FLAT, faces=[[0, 1, 9]])
        with pytest.raises(GeometryFormatError):
            parse_shape_data(data)

    def test_short_polygon(self):
        data = dict(TETRA_FLAT, faces=[[0, 1]])
        with pytest.raises(GeometryFormatError):
            parse_shape_data(data)

    def test_error_is_value_error(self):
        assert issubclass(GeometryFormatError, ValueError)
        assert issubclass(GeometryFormatError, FractureError)


class TestLoadShape:
    """Test reading shapes from disk."""

    def test_plate_asset(self, plate_path):
        plate = load_shape(plate_path)
        assert plate.vertex_count == 26
        assert plate.face_count == 48
        assert plate.volume > 0

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(GeometryFormatError):
            load_shape(path)

    def test_mesh_file_convex_hull(self, tmp_path):
        path = tmp_path / "box.stl"
        trimesh.creation.box(extents=[2.0, 2.0, 2.0]).export(str(path))
        poly = load_shape(path)
        assert poly.volume == pytest.approx(8.0)
        assert poly.is_valid


class TestFragmentOutput:
    """Test fragment serialization and mesh export."""

    @pytest.fixture
    def fragments(self, cube):
        return fragment_polyhedron(cube, RigidBodyState(mass=8.0), np.zeros(3), seeds=GRID_SEEDS)

    def test_fragment_to_dict(self, fragments):
        data = fragment_to_dict(fragments[0])
        assert data["seed_index"] == 0
        assert data["volume"] == pytest.approx(2.0)
        assert data["state"]["mass"] == pytest.approx(2.0)
        assert parse_shape_data(data["shape"]).volume == pytest.approx(2.0)

    def test_write_fragments_json(self, fragments, tmp_path):
        path = tmp_path / "out" / "fragments.json"
        write_fragments_json(path, fragments, metadata={"seed_count": 4})
        with path.open() as f:
            payload = json.load(f)
        assert payload["fragment_count"] == 4
        assert payload["total_volume"] == pytest.approx(8.0)
        assert payload["metadata"]["seed_count"] == 4

    def test_export_meshes_in_world_space(self, fragments, tmp_path):
        paths = export_fragment_meshes(fragments, tmp_path / "meshes")
        assert len(paths) == 4
        merged = trimesh.util.concatenate([trimesh.load(str(p), force="mesh") for p in paths])
        np.testing.assert_allclose(merged.bounds, [[-1, -1, -1], [1, 1, 1]], atol=1e-6)

    def test_scene(self, fragments):
        scene = fragments_scene(fragments)
        assert len(scene.geometry) == 4
        np.testing.assert_allclose(scene.bounds, [[-1, -1, -1], [1, 1, 1]], atol=1e-9)
