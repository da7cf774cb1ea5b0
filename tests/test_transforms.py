"""
Tests for the rotation helpers.
"""

import numpy as np
import pytest

from transforms import (
    as_rotation, is_orthonormal, rotation_from_axis_angle, rotation_from_euler,
    rotation_from_quaternion,
)


class TestRotations:

    def test_zero_euler_is_identity(self):
        np.testing.assert_allclose(rotation_from_euler((0.0, 0.0, 0.0)), np.eye(3))

    def test_quaternion_matches_axis_angle(self):
        angle = 0.7
        axis = np.array([1.0, 2.0, -0.5])
        axis /= np.linalg.norm(axis)
        quaternion = np.append(axis * np.sin(angle / 2), np.cos(angle / 2))
        np.testing.assert_allclose(
            rotation_from_quaternion(quaternion), rotation_from_axis_angle(axis, angle), atol=1e-12
        )

    def test_single_axis_euler_matches_axis_angle(self):
        np.testing.assert_allclose(
            rotation_from_euler((0.0, 0.4, 0.0)), rotation_from_axis_angle((0, 1, 0), 0.4), atol=1e-12
        )

    def test_columns_are_rotated_axes(self):
        rotation = rotation_from_euler((-np.pi / 2, 0.0, 0.0))
        np.testing.assert_allclose(rotation[:, 2], [0.0, 1.0, 0.0], atol=1e-12)

    @pytest.mark.parametrize("value", [
        None, (0.1, 0.2, 0.3), (0.0, 0.0, 0.0, 1.0), np.eye(3), {"axis": (1, 1, 0), "angle": 0.8},
    ])
    def test_as_rotation_accepts_supported_forms(self, value):
        assert is_orthonormal(as_rotation(value))

    def test_as_rotation_axis_angle_mapping(self):
        np.testing.assert_allclose(
            as_rotation({"axis": [0.0, 2.0, 0.0], "angle": 0.4}), rotation_from_euler((0.0, 0.4, 0.0)), atol=1e-12
        )

    def test_as_rotation_rejects_other_shapes(self):
        with pytest.raises(ValueError):
            as_rotation((1.0, 2.0))

    def test_is_orthonormal(self):
        assert is_orthonormal(rotation_from_euler((1.0, -2.0, 0.3)))
        assert is_orthonormal(np.diag([1.0, -1.0, 1.0]))
        assert not is_orthonormal(np.diag([1.0, 2.0, 1.0]))
        assert not is_orthonormal(np.full((3, 3), np.nan))
