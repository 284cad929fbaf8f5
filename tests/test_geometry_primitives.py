"""Tests for geometry_primitives module."""
import numpy as np
import pytest

from geometry_primitives import (
    Plane,
    TangentFrame,
    normalize,
    pose_matrix,
    quaternion_to_matrix,
)


class TestPlane:
    """Test half-space planes."""

    def test_normal_is_normalised(self):
        plane = Plane([0.0, 0.0, 2.0], [0.0, 0.0, 1.0])
        np.testing.assert_allclose(plane.normal, [0.0, 0.0, 1.0])
        assert plane.offset == pytest.approx(1.0)

    def test_zero_normal_rejected(self):
        with pytest.raises(ValueError):
            Plane([0.0, 0.0, 0.0], [0.0, 0.0, 0.0])

    def test_signed_distance_positive_on_kept_side(self):
        plane = Plane([-1.0, 0.0, 0.0], [0.0, 0.0, 0.0])
        assert plane.signed_distance([-2.0, 5.0, 5.0]) == pytest.approx(2.0)
        distances = plane.signed_distance(np.array([[1.0, 0, 0], [-1.0, 0, 0]]))
        np.testing.assert_allclose(distances, [-1.0, 1.0])

    def test_outward_and_flipped(self):
        plane = Plane([0.0, 1.0, 0.0], [0.0, 0.5, 0.0])
        np.testing.assert_allclose(plane.outward, [0.0, -1.0, 0.0])
        flipped = plane.flipped()
        assert flipped.signed_distance([0.0, 2.0, 0.0]) == pytest.approx(-1.5)

    def test_from_normal_offset(self):
        plane = Plane.from_normal_offset([0.0, 3.0, 4.0], 2.0)
        assert plane.offset == pytest.approx(2.0)
        assert plane.signed_distance(plane.point) == pytest.approx(0.0)


class TestTangentFrame:
    """Test the impact-local 2D frame."""

    @pytest.mark.parametrize("normal", [
        [0.0, 0.0, 1.0],
        [0.0, 1.0, 0.0],
        [1.0, -2.0, 0.5],
        [0.0, 0.0, -1.0],
    ])
    def test_right_handed_orthonormal(self, normal):
        frame = TangentFrame.from_normal([0.0, 0.0, 0.0], normal)
        assert np.linalg.norm(frame.basis_u) == pytest.approx(1.0)
        assert np.linalg.norm(frame.basis_v) == pytest.approx(1.0)
        assert float(frame.basis_u @ frame.normal) == pytest.approx(0.0, abs=1e-12)
        np.testing.assert_allclose(np.cross(frame.basis_u, frame.basis_v), frame.normal, atol=1e-12)

    def test_round_trip_in_plane(self):
        frame = TangentFrame.from_normal([1.0, 2.0, 3.0], [1.0, 1.0, 1.0])
        uv = np.array([[0.5, -0.25], [2.0, 1.0]])
        np.testing.assert_allclose(frame.to_2d(frame.to_3d(uv)), uv, atol=1e-12)

    def test_single_point(self):
        frame = TangentFrame.from_normal([0.0, 0.0, 1.0], [0.0, 0.0, 1.0])
        lifted = frame.to_3d(np.array([0.0, 0.0]))
        np.testing.assert_allclose(lifted, [0.0, 0.0, 1.0])
        assert frame.to_2d(lifted).shape == (2,)

    def test_projection_drops_normal_component(self):
        frame = TangentFrame.from_normal([0.0, 0.0, 0.0], [0.0, 0.0, 1.0])
        a = frame.to_2d(np.array([0.3, 0.4, 0.0]))
        b = frame.to_2d(np.array([0.3, 0.4, 7.0]))
        np.testing.assert_allclose(a, b)


class TestVectorHelpers:
    """Test normalisation and pose helpers."""

    def test_normalize(self):
        np.testing.assert_allclose(normalize([3.0, 0.0, 4.0]), [0.6, 0.0, 0.8])
        with pytest.raises(ValueError):
            normalize([0.0, 0.0, 0.0])

    def test_identity_quaternion(self):
        np.testing.assert_allclose(quaternion_to_matrix([0, 0, 0, 1]), np.eye(3), atol=1e-12)

    def test_quarter_turn_about_z(self):
        s = np.sqrt(0.5)
        rotation = quaternion_to_matrix([0.0, 0.0, s, s])
        np.testing.assert_allclose(rotation @ [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], atol=1e-12)

    def test_pose_matrix(self):
        transform = pose_matrix([1.0, 2.0, 3.0], [0.0, 0.0, 0.0, 1.0])
        point = transform @ np.array([1.0, 1.0, 1.0, 1.0])
        np.testing.assert_allclose(point[:3], [2.0, 3.0, 4.0])
