# interaction.py
"""
Per-obstacle particle interaction.

One call moves a single particle through the influence of a single
obstacle: hard non-penetration, tangential slide, bypass steering around
the body, and, downstream of it, wake realignment and wake turbulence.
"""
import math
import numpy as np
from numba import jit
from typing import Sequence

from constants import (
    BARRIER_INFLUENCE_RATIO, BARRIER_MAX, BYPASS_STEER_STRENGTH, MIN_INFLUENCE_RADIUS,
    PUSH_OUT_EPSILON, SLIDE_FLOW_PULL, WAKE_MIN_FACTOR, WAKE_REALIGN_MAX_BLEND,
    WAKE_REALIGN_RATE,
)
from flow_field import curl_noise, wake_decay
from obstacles import (
    BOUNDING_RADIUS, CENTER, INFLUENCE_RADIUS, WAKE_RADIUS, WAKE_STRENGTH,
    ObstacleDescriptor, _surface_query_numba,
)

# --- Data Contracts ---
#
# _apply_interaction_numba(position, velocity, kind, row, fx, fy, fz,
#                          time, turbulence_scale, turbulence_strength) -> bool:
#   - Inputs:
#     - position, velocity: float64 arrays of shape (3,), mutated in place.
#     - kind, row: one entry of an ObstacleField (kinds[i], table[i]).
#     - (fx, fy, fz): unit ambient flow direction.
#   - Outputs: True when the particle lies inside the obstacle's influence
#     shell (signed distance <= influence radius).
#   - Invariants:
#     - A particle closer than the barrier thickness ends on or outside the
#       surface.
#     - Inside the influence shell the velocity component along the surface
#       normal is removed; nothing added afterwards has a normal component.
#     - Wake turbulence never changes the speed along the flow direction.


@jit(nopython=True)
def _apply_interaction_numba(position, velocity, kind, row, fx, fy, fz,
                             time, turbulence_scale, turbulence_strength):
    influence = max(MIN_INFLUENCE_RADIUS, row[INFLUENCE_RADIUS])
    distance, nx, ny, nz, qx, qy, qz = _surface_query_numba(
        kind, row, position[0], position[1], position[2]
    )

    near_surface = distance <= influence
    if near_surface:
        barrier = min(BARRIER_MAX, influence * BARRIER_INFLUENCE_RATIO)
        if distance < barrier:
            lift = barrier + PUSH_OUT_EPSILON
            position[0] = qx + nx * lift
            position[1] = qy + ny * lift
            position[2] = qz + nz * lift
            # The normal can turn under non-uniform scale; slide along the one at the new position.
            distance, nx, ny, nz, qx, qy, qz = _surface_query_numba(
                kind, row, position[0], position[1], position[2]
            )

        vn = velocity[0] * nx + velocity[1] * ny + velocity[2] * nz
        velocity[0] -= nx * vn
        velocity[1] -= ny * vn
        velocity[2] -= nz * vn

        depth = 1.0 - min(1.0, max(0.0, distance / influence))

        # Steer around the body, away from its center, within the tangent plane.
        ox = position[0] - row[CENTER]
        oy = position[1] - row[CENTER + 1]
        oz = position[2] - row[CENTER + 2]
        on = ox * nx + oy * ny + oz * nz
        ox -= nx * on
        oy -= ny * on
        oz -= nz * on
        radial = math.sqrt(ox * ox + oy * oy + oz * oz)
        if radial > 1e-3:
            steer = BYPASS_STEER_STRENGTH * depth / radial
            velocity[0] += ox * steer
            velocity[1] += oy * steer
            velocity[2] += oz * steer

        # Keep sliding particles moving downstream.
        fn = fx * nx + fy * ny + fz * nz
        tx = fx - nx * fn
        ty = fy - ny * fn
        tz = fz - nz * fn
        if tx * tx + ty * ty + tz * tz > 1e-12:
            pull = SLIDE_FLOW_PULL * depth
            velocity[0] += tx * pull
            velocity[1] += ty * pull
            velocity[2] += tz * pull

    cx = position[0] - row[CENTER]
    cy = position[1] - row[CENTER + 1]
    cz = position[2] - row[CENTER + 2]
    along = cx * fx + cy * fy + cz * fz
    downstream = along - row[BOUNDING_RADIUS]
    if downstream <= 0.0:
        return near_surface

    lx = cx - fx * along
    ly = cy - fy * along
    lz = cz - fz * along
    lateral = math.sqrt(lx * lx + ly * ly + lz * lz)
    wake = wake_decay(downstream, lateral, row[WAKE_RADIUS])
    if wake <= WAKE_MIN_FACTOR:
        return near_surface

    if not near_surface and downstream > influence * BARRIER_INFLUENCE_RATIO:
        speed = math.sqrt(velocity[0] ** 2 + velocity[1] ** 2 + velocity[2] ** 2)
        if speed > 1e-6:
            blend = min(WAKE_REALIGN_MAX_BLEND, wake * WAKE_REALIGN_RATE)
            keep = (1.0 - blend) / speed
            dx = velocity[0] * keep + fx * blend
            dy = velocity[1] * keep + fy * blend
            dz = velocity[2] * keep + fz * blend
            dl = math.sqrt(dx * dx + dy * dy + dz * dz)
            if dl > 1e-6:
                velocity[0] = dx / dl * speed
                velocity[1] = dy / dl * speed
                velocity[2] = dz / dl * speed

    strength = max(0.0, turbulence_strength)
    if strength > 0.0:
        wx, wy, wz = curl_noise(position[0], position[1], position[2], time, turbulence_scale)
        wf = wx * fx + wy * fy + wz * fz
        wx -= fx * wf
        wy -= fy * wf
        wz -= fz * wf
        if near_surface:
            # Restrict to the direction orthogonal to both flow and normal.
            ex = fy * nz - fz * ny
            ey = fz * nx - fx * nz
            ez = fx * ny - fy * nx
            el = math.sqrt(ex * ex + ey * ey + ez * ez)
            if el > 1e-6:
                ex /= el
                ey /= el
                ez /= el
                we = wx * ex + wy * ey + wz * ez
                wx = ex * we
                wy = ey * we
                wz = ez * we
        length = math.sqrt(wx * wx + wy * wy + wz * wz)
        if length > 1e-6:
            gain = wake * row[WAKE_STRENGTH] * strength / length
            velocity[0] += wx * gain
            velocity[1] += wy * gain
            velocity[2] += wz * gain

    return near_surface


def apply_obstacle_interaction(
    position: np.ndarray,
    velocity: np.ndarray,
    obstacle: ObstacleDescriptor,
    flow_direction: Sequence[float],
    time: float,
    turbulence_scale: float,
    turbulence_strength: float,
) -> bool:
    """
    Applies one obstacle to one particle, mutating `position` and `velocity`.

    Both arrays must be float64 of shape (3,). `flow_direction` is normalized
    here; a zero direction disables the downstream terms.

    Returns:
        bool: True if the particle touched the obstacle's influence shell.
    """
    flow = np.asarray(flow_direction, dtype=np.float64)
    length = np.linalg.norm(flow)
    flow = flow / length if length > 1e-9 else np.zeros(3)
    return bool(_apply_interaction_numba(
        position, velocity, int(obstacle.kind), obstacle.pack(),
        flow[0], flow[1], flow[2],
        float(time), float(turbulence_scale), float(turbulence_strength),
    ))
