# obstacles.py
"""
Obstacle descriptors and the analytic surface model.

Scene objects (`Obstacle`) are owned by the caller and may be edited
freely between ticks. Once per tick they are frozen into read-only
`ObstacleDescriptor` snapshots and packed into an `ObstacleField`, a pair
of flat NumPy arrays that the Numba kernels can consume.

Signed distances are evaluated in each obstacle's local, unscaled frame,
one kernel per shape kind, and mapped back to world space through the
obstacle's rotation and (possibly non-uniform) scale.
"""
import logging
import math
import numpy as np
from enum import IntEnum
from numba import jit
from typing import Any, Dict, Iterable, NamedTuple, Optional, Sequence, Tuple

from constants import PLANE_THICKNESS_RATIO, SCALE_EPSILON
from transforms import as_rotation, is_orthonormal

# --- Data Contracts ---
#
# ObstacleField:
#   - kinds: int64 array of shape (M,), one ShapeKind value per obstacle.
#   - table: float64 array of shape (M, FIELD_COUNT). Row layout:
#       [0:3]   center (world)
#       [3:6]   local X axis (world, unit)
#       [6:9]   local Y axis (world, unit)
#       [9:12]  local Z axis (world, unit)
#       [12:15] scale along the local axes (|s| >= SCALE_EPSILON)
#       [15:18] shape parameters in local units (see ShapeKind)
#       [18]    bounding radius (world)
#       [19]    wake radius (world)
#       [20]    influence radius (world)
#       [21]    wake strength
#   - Invariants: rows are never mutated during a tick.
#
# _surface_query_numba(kind, row, px, py, pz) -> (d, nx, ny, nz, qx, qy, qz):
#   - d: world signed distance (negative inside).
#   - n: unit outward world normal at the nearest surface point q.
#   - q: nearest surface point in world space.

CENTER = 0
AXIS_X = 3
AXIS_Y = 6
AXIS_Z = 9
SCALE = 12
PARAMS = 15
BOUNDING_RADIUS = 18
WAKE_RADIUS = 19
INFLUENCE_RADIUS = 20
WAKE_STRENGTH = 21
FIELD_COUNT = 22

PYRAMID_APEX_TAPER = 0.02


class ShapeKind(IntEnum):
    """
    Obstacle shape tags. Local shape parameters per kind:
      PLANE:   half width, half height, half thickness
      BOX:     half width, half height, half depth
      SPHERE:  radius
      PYRAMID: base half width, base half depth, height (apex toward local +Z)
      TORUS:   major radius, minor radius (ring in the local XY plane)
    """
    PLANE = 0
    BOX = 1
    SPHERE = 2
    PYRAMID = 3
    TORUS = 4

    @classmethod
    def coerce(cls, value) -> "ShapeKind":
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"Unknown obstacle shape '{value}'.") from None
        try:
            return cls(int(value))
        except ValueError:
            raise ValueError(f"Unknown obstacle shape '{value}'.") from None


DEFAULT_SHAPE_PARAMS: Dict[ShapeKind, Dict[str, float]] = {
    ShapeKind.PLANE: {"width": 1.0, "height": 1.0},
    ShapeKind.BOX: {"width": 1.0, "height": 0.62, "depth": 0.62},
    ShapeKind.SPHERE: {"radius": 0.5},
    ShapeKind.PYRAMID: {"base_width": 0.7, "base_depth": 0.7, "height": 1.0},
    ShapeKind.TORUS: {"major_radius": 0.34, "minor_radius": 0.16},
}


@jit(nopython=True)
def _sign(value):
    return 1.0 if value >= 0.0 else -1.0


@jit(nopython=True)
def _clamp(value, low, high):
    return max(low, min(high, value))


@jit(nopython=True)
def _sphere_distance(lx, ly, lz, radius):
    length = math.sqrt(lx * lx + ly * ly + lz * lz)
    if length < 1e-9:
        return -radius, 0.0, 0.0, 1.0
    return length - radius, lx / length, ly / length, lz / length


@jit(nopython=True)
def _box_distance(lx, ly, lz, hx, hy, hz):
    dx = lx - _clamp(lx, -hx, hx)
    dy = ly - _clamp(ly, -hy, hy)
    dz = lz - _clamp(lz, -hz, hz)
    gap = math.sqrt(dx * dx + dy * dy + dz * dz)
    if gap > 1e-9:
        return gap, dx / gap, dy / gap, dz / gap

    # Inside: the shallowest axis decides the exit face.
    pen_x = hx - abs(lx)
    pen_y = hy - abs(ly)
    pen_z = hz - abs(lz)
    if pen_x <= pen_y and pen_x <= pen_z:
        return -pen_x, _sign(lx), 0.0, 0.0
    if pen_y <= pen_z:
        return -pen_y, 0.0, _sign(ly), 0.0
    return -pen_z, 0.0, 0.0, _sign(lz)


@jit(nopython=True)
def _torus_distance(lx, ly, lz, major, minor):
    rho = math.sqrt(lx * lx + ly * ly)
    ux = 1.0
    uy = 0.0
    if rho > 1e-9:
        ux = lx / rho
        uy = ly / rho
    a = rho - major
    tube = math.sqrt(a * a + lz * lz)
    if tube < 1e-9:
        return -minor, ux, uy, 0.0
    return tube - minor, a * ux / tube, a * uy / tube, lz / tube


@jit(nopython=True)
def _pyramid_taper(lz, half_height, height):
    t = _clamp((lz + half_height) / height, 0.0, 1.0)
    return max(PYRAMID_APEX_TAPER, 1.0 - t)


@jit(nopython=True)
def _pyramid_distance(lx, ly, lz, hx, hy, height):
    half_height = height * 0.5
    taper = _pyramid_taper(lz, half_height, height)
    ax = hx * taper
    ay = hy * taper

    if -half_height <= lz <= half_height and abs(lx) <= ax and abs(ly) <= ay:
        # Nearest of the two tapered side pairs, the base and the apex cap.
        slope_x = hx / height
        slope_y = hy / height
        norm_x = math.sqrt(1.0 + slope_x * slope_x)
        norm_y = math.sqrt(1.0 + slope_y * slope_y)
        side_x = (ax - abs(lx)) / norm_x
        side_y = (ay - abs(ly)) / norm_y
        base = lz + half_height
        cap = half_height - lz

        best = side_x
        nx = _sign(lx) / norm_x
        ny = 0.0
        nz = slope_x / norm_x
        if side_y < best:
            best = side_y
            nx = 0.0
            ny = _sign(ly) / norm_y
            nz = slope_y / norm_y
        if base < best:
            best = base
            nx = 0.0
            ny = 0.0
            nz = -1.0
        if cap < best:
            best = cap
            nx = 0.0
            ny = 0.0
            nz = 1.0
        return -best, nx, ny, nz

    cz = _clamp(lz, -half_height, half_height)
    clamp_taper = _pyramid_taper(cz, half_height, height)
    qx = _clamp(lx, -hx * clamp_taper, hx * clamp_taper)
    qy = _clamp(ly, -hy * clamp_taper, hy * clamp_taper)
    dx = lx - qx
    dy = ly - qy
    dz = lz - cz
    gap = math.sqrt(dx * dx + dy * dy + dz * dz)
    if gap < 1e-9:
        return 0.0, 0.0, 0.0, 1.0
    return gap, dx / gap, dy / gap, dz / gap


@jit(nopython=True)
def _local_signed_distance_numba(kind, lx, ly, lz, p0, p1, p2):
    """Dispatches to the signed distance kernel of one shape kind."""
    if kind == 2:
        return _sphere_distance(lx, ly, lz, p0)
    if kind == 3:
        return _pyramid_distance(lx, ly, lz, p0, p1, p2)
    if kind == 4:
        return _torus_distance(lx, ly, lz, p0, p1)
    return _box_distance(lx, ly, lz, p0, p1, p2)


@jit(nopython=True)
def _surface_query_numba(kind, row, px, py, pz):
    """
    World-space signed distance, outward normal and nearest surface point.

    The query point is moved into the local unscaled frame, the distance is
    taken there, and the nearest point is mapped back through the full
    transform so the returned distance is measured in world units. Normals
    use the inverse-transpose (axis / scale) to stay correct under
    non-uniform scale.
    """
    rx = px - row[CENTER]
    ry = py - row[CENTER + 1]
    rz = pz - row[CENTER + 2]
    sx = row[SCALE]
    sy = row[SCALE + 1]
    sz = row[SCALE + 2]

    lx = (rx * row[AXIS_X] + ry * row[AXIS_X + 1] + rz * row[AXIS_X + 2]) / sx
    ly = (rx * row[AXIS_Y] + ry * row[AXIS_Y + 1] + rz * row[AXIS_Y + 2]) / sy
    lz = (rx * row[AXIS_Z] + ry * row[AXIS_Z + 1] + rz * row[AXIS_Z + 2]) / sz

    local_d, nlx, nly, nlz = _local_signed_distance_numba(
        kind, lx, ly, lz, row[PARAMS], row[PARAMS + 1], row[PARAMS + 2]
    )

    qlx = (lx - local_d * nlx) * sx
    qly = (ly - local_d * nly) * sy
    qlz = (lz - local_d * nlz) * sz
    qx = row[CENTER] + row[AXIS_X] * qlx + row[AXIS_Y] * qly + row[AXIS_Z] * qlz
    qy = row[CENTER + 1] + row[AXIS_X + 1] * qlx + row[AXIS_Y + 1] * qly + row[AXIS_Z + 1] * qlz
    qz = row[CENTER + 2] + row[AXIS_X + 2] * qlx + row[AXIS_Y + 2] * qly + row[AXIS_Z + 2] * qlz

    gx = px - qx
    gy = py - qy
    gz = pz - qz
    gap = math.sqrt(gx * gx + gy * gy + gz * gz)
    distance = gap if local_d >= 0.0 else -gap

    mx = nlx / sx
    my = nly / sy
    mz = nlz / sz
    nx = row[AXIS_X] * mx + row[AXIS_Y] * my + row[AXIS_Z] * mz
    ny = row[AXIS_X + 1] * mx + row[AXIS_Y + 1] * my + row[AXIS_Z + 1] * mz
    nz = row[AXIS_X + 2] * mx + row[AXIS_Y + 2] * my + row[AXIS_Z + 2] * mz
    length = math.sqrt(nx * nx + ny * ny + nz * nz)
    if length > 1e-12:
        nx /= length
        ny /= length
        nz /= length
    else:
        nx = row[AXIS_Z]
        ny = row[AXIS_Z + 1]
        nz = row[AXIS_Z + 2]
    return distance, nx, ny, nz, qx, qy, qz


class Obstacle:
    """
    A placed obstacle as owned by the scene: shape kind, world transform and
    shape parameters. The simulation only ever reads it through snapshots.
    """
    def __init__(
        self,
        kind,
        position: Sequence[float] = (0.0, 0.0, 0.0),
        rotation: Any = None,
        scale: Sequence[float] = (1.0, 1.0, 1.0),
        params: Optional[Dict[str, float]] = None,
        name: Optional[str] = None,
    ):
        self.kind = ShapeKind.coerce(kind)
        self.position = np.asarray(position, dtype=np.float64).reshape(3)
        self.rotation = as_rotation(rotation)
        self.scale = np.asarray(scale, dtype=np.float64).reshape(3)
        self.params = dict(DEFAULT_SHAPE_PARAMS[self.kind])
        if params:
            unknown = set(params) - set(self.params)
            if unknown:
                raise ValueError(
                    f"Unknown parameters {sorted(unknown)} for {self.kind.name.lower()} obstacle."
                )
            self.params.update({k: float(v) for k, v in params.items()})
        self.name = name or self.kind.name.lower()

    @classmethod
    def from_config(cls, entry: Dict[str, Any]) -> "Obstacle":
        """Builds an obstacle from one entry of the config 'obstacles' list."""
        return cls(
            kind=entry["kind"],
            position=entry.get("position", (0.0, 0.0, 0.0)),
            rotation=entry.get("rotation"),
            scale=entry.get("scale", (1.0, 1.0, 1.0)),
            params=entry.get("params"),
            name=entry.get("name"),
        )

    def __repr__(self) -> str:
        return f"Obstacle({self.name!r}, kind={self.kind.name}, position={self.position.tolist()})"


class ObstacleDescriptor(NamedTuple):
    """Read-only per-tick snapshot of one obstacle."""
    kind: ShapeKind
    center: np.ndarray
    axes: np.ndarray
    scale: np.ndarray
    shape_params: np.ndarray
    bounding_radius: float
    wake_radius: float
    influence_radius: float
    wake_strength: float

    def pack(self) -> np.ndarray:
        row = np.zeros(FIELD_COUNT, dtype=np.float64)
        row[CENTER:CENTER + 3] = self.center
        row[AXIS_X:AXIS_X + 3] = self.axes[0]
        row[AXIS_Y:AXIS_Y + 3] = self.axes[1]
        row[AXIS_Z:AXIS_Z + 3] = self.axes[2]
        row[SCALE:SCALE + 3] = self.scale
        row[PARAMS:PARAMS + 3] = self.shape_params
        row[BOUNDING_RADIUS] = self.bounding_radius
        row[WAKE_RADIUS] = self.wake_radius
        row[INFLUENCE_RADIUS] = self.influence_radius
        row[WAKE_STRENGTH] = self.wake_strength
        return row


def _shape_params(obstacle: Obstacle, influence_radius: float, scale_z: float) -> np.ndarray:
    p = obstacle.params
    kind = obstacle.kind
    if kind == ShapeKind.PLANE:
        half_thickness = influence_radius * PLANE_THICKNESS_RATIO * 0.5 / abs(scale_z)
        values = (p["width"] * 0.5, p["height"] * 0.5, half_thickness)
    elif kind == ShapeKind.BOX:
        values = (p["width"] * 0.5, p["height"] * 0.5, p["depth"] * 0.5)
    elif kind == ShapeKind.SPHERE:
        values = (p["radius"], 0.0, 0.0)
    elif kind == ShapeKind.PYRAMID:
        values = (p["base_width"] * 0.5, p["base_depth"] * 0.5, p["height"])
    else:
        values = (p["major_radius"], p["minor_radius"], 0.0)
    params = np.maximum(np.abs(np.asarray(values, dtype=np.float64)), SCALE_EPSILON)
    if kind == ShapeKind.SPHERE:
        params[1:] = 0.0
    elif kind == ShapeKind.TORUS:
        params[2] = 0.0
    return params


def _extents(kind: ShapeKind, params: np.ndarray, scale: np.ndarray) -> Tuple[float, float]:
    """Returns (bounding radius, lateral characteristic extent) in world units."""
    s = np.abs(scale)
    if kind == ShapeKind.SPHERE:
        radius = params[0] * s.max()
        return radius, radius
    if kind == ShapeKind.TORUS:
        outer = (params[0] + params[1]) * max(s[0], s[1])
        return float(math.hypot(outer, params[1] * s[2])), outer
    if kind == ShapeKind.PYRAMID:
        base = params[:2] * s[:2]
        bounding = math.sqrt(base[0] ** 2 + base[1] ** 2 + (params[2] * 0.5 * s[2]) ** 2)
        return bounding, float(base.max())
    half = params * s
    return float(np.linalg.norm(half)), float(half.max())


def describe_obstacle(obstacle: Obstacle, influence_radius: float, wake_strength: float) -> ObstacleDescriptor:
    """
    Freezes an obstacle into a descriptor.

    Raises:
        ValueError: if the world transform is degenerate (a scale component
            below SCALE_EPSILON in magnitude, or a non-orthonormal rotation).
    """
    scale = obstacle.scale
    if not np.all(np.isfinite(scale)) or np.any(np.abs(scale) < SCALE_EPSILON):
        msg = f"Degenerate transform for {obstacle!r}: scale {scale.tolist()} is not invertible."
        logging.critical(msg)
        raise ValueError(msg)
    if not is_orthonormal(obstacle.rotation) or not np.all(np.isfinite(obstacle.position)):
        msg = f"Degenerate transform for {obstacle!r}: rotation is not orthonormal."
        logging.critical(msg)
        raise ValueError(msg)

    influence = max(0.0, float(influence_radius))
    params = _shape_params(obstacle, influence, scale[2])
    bounding, lateral = _extents(obstacle.kind, params, scale)
    return ObstacleDescriptor(
        kind=obstacle.kind,
        center=obstacle.position.copy(),
        axes=obstacle.rotation.T.copy(),
        scale=scale.copy(),
        shape_params=params,
        bounding_radius=float(bounding),
        wake_radius=float(lateral + influence),
        influence_radius=influence,
        wake_strength=max(0.0, float(wake_strength)),
    )


class ObstacleField:
    """
    Packed, read-only obstacle snapshot for one tick.
    """
    def __init__(self, descriptors: Iterable[ObstacleDescriptor] = ()):
        self.descriptors = tuple(descriptors)
        self.kinds = np.array([int(d.kind) for d in self.descriptors], dtype=np.int64)
        if self.descriptors:
            self.table = np.vstack([d.pack() for d in self.descriptors])
        else:
            self.table = np.zeros((0, FIELD_COUNT), dtype=np.float64)

    @classmethod
    def snapshot(
        cls, obstacles: Iterable[Obstacle], influence_radius: float, wake_strength: float
    ) -> "ObstacleField":
        return cls(describe_obstacle(o, influence_radius, wake_strength) for o in obstacles)

    def __len__(self) -> int:
        return len(self.descriptors)


def local_signed_distance(kind, local_point: Sequence[float], params: Sequence[float]) -> Tuple[float, np.ndarray]:
    """Signed distance and outward normal in an obstacle's local unscaled frame."""
    lx, ly, lz = (float(c) for c in local_point)
    p = [float(v) for v in params] + [0.0] * (3 - len(params))
    d, nx, ny, nz = _local_signed_distance_numba(int(ShapeKind.coerce(kind)), lx, ly, lz, p[0], p[1], p[2])
    return float(d), np.array([nx, ny, nz])


def signed_distance_and_normal(descriptor: ObstacleDescriptor, point: Sequence[float]) -> Tuple[float, np.ndarray]:
    """World-space signed distance from `point` to the obstacle and the outward normal."""
    px, py, pz = (float(c) for c in point)
    d, nx, ny, nz, _, _, _ = _surface_query_numba(int(descriptor.kind), descriptor.pack(), px, py, pz)
    return float(d), np.array([nx, ny, nz])
