# transforms.py
"""
Rotation helpers shared by the obstacle and emitter snapshots.

Rotations are plain 3x3 NumPy matrices whose columns are the local X, Y
and Z axes expressed in world space.
"""
import numpy as np
from typing import Sequence


def rotation_from_euler(angles: Sequence[float]) -> np.ndarray:
    """Builds a rotation matrix from intrinsic XYZ Euler angles in radians."""
    ax, ay, az = (float(a) for a in angles)
    cx, sx = np.cos(ax), np.sin(ax)
    cy, sy = np.cos(ay), np.sin(ay)
    cz, sz = np.cos(az), np.sin(az)
    rot_x = np.array([[1.0, 0.0, 0.0], [0.0, cx, -sx], [0.0, sx, cx]])
    rot_y = np.array([[cy, 0.0, sy], [0.0, 1.0, 0.0], [-sy, 0.0, cy]])
    rot_z = np.array([[cz, -sz, 0.0], [sz, cz, 0.0], [0.0, 0.0, 1.0]])
    return rot_x @ rot_y @ rot_z


def rotation_from_axis_angle(axis: Sequence[float], angle: float) -> np.ndarray:
    """Rodrigues' formula. A zero axis yields the identity."""
    axis = np.asarray(axis, dtype=np.float64)
    length = np.linalg.norm(axis)
    if length < 1e-12:
        return np.eye(3)
    x, y, z = axis / length
    c, s = np.cos(angle), np.sin(angle)
    t = 1.0 - c
    return np.array([
        [t * x * x + c, t * x * y - s * z, t * x * z + s * y],
        [t * x * y + s * z, t * y * y + c, t * y * z - s * x],
        [t * x * z - s * y, t * y * z + s * x, t * z * z + c],
    ])


def rotation_from_quaternion(quaternion: Sequence[float]) -> np.ndarray:
    """Converts an (x, y, z, w) quaternion. The input is normalized first."""
    q = np.asarray(quaternion, dtype=np.float64)
    norm = np.linalg.norm(q)
    if norm < 1e-12:
        return np.eye(3)
    x, y, z, w = q / norm
    return np.array([
        [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
        [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
        [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
    ])


def as_rotation(rotation) -> np.ndarray:
    """
    Accepts None (identity), three Euler angles, a quaternion, a 3x3 matrix
    or an {"axis": [x, y, z], "angle": radians} mapping.
    """
    if rotation is None:
        return np.eye(3)
    if isinstance(rotation, dict):
        return rotation_from_axis_angle(rotation["axis"], float(rotation["angle"]))
    arr = np.asarray(rotation, dtype=np.float64)
    if arr.shape == (3, 3):
        return arr.copy()
    if arr.shape == (3,):
        return rotation_from_euler(arr)
    if arr.shape == (4,):
        return rotation_from_quaternion(arr)
    raise ValueError(f"Unsupported rotation shape {arr.shape}; expected (3,), (4,) or (3, 3).")


def is_orthonormal(matrix: np.ndarray, tolerance: float = 1e-6) -> bool:
    """True for proper or improper orthonormal 3x3 matrices."""
    matrix = np.asarray(matrix, dtype=np.float64)
    if matrix.shape != (3, 3) or not np.all(np.isfinite(matrix)):
        return False
    return bool(np.allclose(matrix.T @ matrix, np.eye(3), atol=tolerance))
