# emitter.py
"""
Emitter surface sampling.

The emitter is a rectangle in its local XY plane that blows along its local
+Z axis. Particles spawn on a regular vertex grid over that rectangle; the
world-space copy of the grid is rebuilt lazily, only after the emitter's
transform or density has changed.
"""
import logging
import numpy as np
from typing import Any, Dict, NamedTuple, Optional, Sequence

from constants import (
    EMITTER_DENSITY_MAX, EMITTER_DENSITY_MIN, EMITTER_HEIGHT, EMITTER_WIDTH,
    MIN_EFFECTIVE_SPAWN_RATE, SCALE_EPSILON, SPAWN_RATE_PER_VERTEX,
)
from transforms import as_rotation, is_orthonormal

# --- Data Contracts ---
#
# class SpawnSet(NamedTuple):
#   - vertices: float64 array of shape (V, 3), world-space spawn points in
#     row-major grid order.
#   - normal, right, up: float64 arrays of shape (3,), the emitter's world
#     basis (unit length). `normal` is the ambient flow direction.
#
# class Emitter:
#   - spawn_set() -> SpawnSet: cached until the transform or density changes.


def clamp_density(value: float, low: int = EMITTER_DENSITY_MIN, high: int = EMITTER_DENSITY_MAX) -> int:
    return max(low, min(high, int(round(value))))


def get_emitter_vertex_count(density_x: float, density_y: float) -> int:
    return (clamp_density(density_x) + 1) * (clamp_density(density_y) + 1)


def build_emitter_local_vertices(
    density_x: float,
    density_y: float,
    width: float = EMITTER_WIDTH,
    height: float = EMITTER_HEIGHT,
) -> np.ndarray:
    """Returns the (V, 3) local grid, row by row from (-w/2, -h/2) to (w/2, h/2)."""
    seg_x = clamp_density(density_x)
    seg_y = clamp_density(density_y)
    xs = (np.arange(seg_x + 1) / seg_x - 0.5) * width
    ys = (np.arange(seg_y + 1) / seg_y - 0.5) * height
    grid_x, grid_y = np.meshgrid(xs, ys)
    vertices = np.zeros((grid_x.size, 3), dtype=np.float64)
    vertices[:, 0] = grid_x.ravel()
    vertices[:, 1] = grid_y.ravel()
    return vertices


def compute_emitter_world_normal(rotation: Any) -> np.ndarray:
    normal = as_rotation(rotation) @ np.array([0.0, 0.0, 1.0])
    return normal / np.linalg.norm(normal)


def compute_spawn_rate(vertex_count: int, max_particles: int) -> float:
    """Base emission rate in particles per second for a given grid size."""
    rate = vertex_count * SPAWN_RATE_PER_VERTEX
    return float(max(MIN_EFFECTIVE_SPAWN_RATE, min(max_particles * 8.0, rate)))


class SpawnSet(NamedTuple):
    vertices: np.ndarray
    normal: np.ndarray
    right: np.ndarray
    up: np.ndarray


class Emitter:
    """
    The particle source. Owned by the scene; edits go through the setters so
    the cached spawn set knows when to rebuild.
    """
    def __init__(
        self,
        density_x: float = 20,
        density_y: float = 12,
        position: Sequence[float] = (0.0, 0.0, 0.0),
        rotation: Any = None,
        scale: Sequence[float] = (1.0, 1.0, 1.0),
    ):
        self.density_x = clamp_density(density_x)
        self.density_y = clamp_density(density_y)
        self._position = np.asarray(position, dtype=np.float64).reshape(3)
        self._rotation = as_rotation(rotation)
        self._scale = np.asarray(scale, dtype=np.float64).reshape(3)
        self._local_vertices = build_emitter_local_vertices(self.density_x, self.density_y)
        self._spawn_set: Optional[SpawnSet] = None
        self.rebuild_count = 0

    @classmethod
    def from_config(cls, params: Dict[str, Any]) -> "Emitter":
        return cls(
            density_x=params.get("density_x", 20),
            density_y=params.get("density_y", 12),
            position=params.get("position", (0.0, 0.0, 0.0)),
            rotation=params.get("rotation"),
            scale=params.get("scale", (1.0, 1.0, 1.0)),
        )

    @property
    def vertex_count(self) -> int:
        return len(self._local_vertices)

    def set_density(self, density_x: float, density_y: float) -> bool:
        """Returns True if the grid actually changed."""
        next_x = clamp_density(density_x)
        next_y = clamp_density(density_y)
        if (next_x, next_y) == (self.density_x, self.density_y):
            return False
        self.density_x, self.density_y = next_x, next_y
        self._local_vertices = build_emitter_local_vertices(next_x, next_y)
        self._spawn_set = None
        logging.info(f"Emitter density set to {next_x}x{next_y} ({self.vertex_count} vertices).")
        return True

    def set_transform(self, position=None, rotation=None, scale=None) -> None:
        if position is not None:
            self._position = np.asarray(position, dtype=np.float64).reshape(3)
        if rotation is not None:
            self._rotation = as_rotation(rotation)
        if scale is not None:
            self._scale = np.asarray(scale, dtype=np.float64).reshape(3)
        self._spawn_set = None

    def spawn_set(self) -> SpawnSet:
        if self._spawn_set is None:
            self._spawn_set = self._build_spawn_set()
        return self._spawn_set

    def _build_spawn_set(self) -> SpawnSet:
        if np.any(np.abs(self._scale) < SCALE_EPSILON) or not is_orthonormal(self._rotation):
            msg = f"Degenerate emitter transform: scale {self._scale.tolist()}."
            logging.critical(msg)
            raise ValueError(msg)

        rotation = self._rotation
        vertices = (self._local_vertices * self._scale) @ rotation.T + self._position
        right = rotation[:, 0] / np.linalg.norm(rotation[:, 0])
        up = rotation[:, 1] / np.linalg.norm(rotation[:, 1])
        normal = compute_emitter_world_normal(rotation)
        self.rebuild_count += 1
        logging.debug(f"Emitter spawn set rebuilt with {len(vertices)} vertices.")
        return SpawnSet(vertices=vertices, normal=normal, right=right, up=up)
