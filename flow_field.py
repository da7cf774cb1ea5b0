# flow_field.py
"""
Procedural turbulence field and wake attenuation.

The turbulence vector is the curl of three scalar potentials, each the sum
of two sine-cosine "hash waves" along skewed axes. Taking the curl keeps
the field divergence-free, so injected turbulence never makes particles
clump or fly apart. Magnitude is normalized away; strength is always
applied by the caller.
"""
import math
import numpy as np
from numba import jit
from typing import Sequence

from constants import CURL_EPSILON, CURL_MIN_MAGNITUDE, WAKE_DECAY_LENGTH_RATIO

# --- Data Contracts ---
#
# curl_noise(px, py, pz, time, scale) -> (float, float, float):
#   - Jitted. Returns a unit vector, or (0, 0, 0) when the raw curl
#     magnitude is at or below CURL_MIN_MAGNITUDE.
#
# wake_decay(downstream, lateral, radius) -> float:
#   - Jitted. Returns a value in [0, 1]; exactly 0 for downstream <= 0.
#   - Non-increasing in |lateral| and in downstream (for downstream > 0).

AXIS_A = (12.9898, 78.233, 37.719)
AXIS_B = (39.3468, 11.135, 83.155)
AXIS_C = (73.156, 52.235, 9.151)


@jit(nopython=True)
def _hash_wave(px, py, pz, axis, time):
    phase = px * axis[0] + py * axis[1] + pz * axis[2] + time * 0.65
    return math.sin(phase) * math.cos(phase * 1.37 + 3.1)


@jit(nopython=True)
def _potential_a(px, py, pz, time):
    return _hash_wave(px, py, pz, AXIS_A, time) + _hash_wave(px, py, pz, AXIS_B, time * 0.65)


@jit(nopython=True)
def _potential_b(px, py, pz, time):
    return _hash_wave(px, py, pz, AXIS_B, time) + _hash_wave(px, py, pz, AXIS_C, time * 0.72)


@jit(nopython=True)
def _potential_c(px, py, pz, time):
    return _hash_wave(px, py, pz, AXIS_C, time) + _hash_wave(px, py, pz, AXIS_A, time * 0.59)


@jit(nopython=True)
def _curl_components(px, py, pz, time, scale):
    """
    Unnormalized discrete curl of the three potentials. The partial
    derivatives are central differences with step CURL_EPSILON, taken in the
    scaled domain.
    """
    s = max(1e-4, scale)
    x = px * s
    y = py * s
    z = pz * s
    e = CURL_EPSILON
    inv = 1.0 / (2.0 * e)

    da_dy = (_potential_a(x, y + e, z, time) - _potential_a(x, y - e, z, time)) * inv
    da_dz = (_potential_a(x, y, z + e, time) - _potential_a(x, y, z - e, time)) * inv
    db_dx = (_potential_b(x + e, y, z, time) - _potential_b(x - e, y, z, time)) * inv
    db_dz = (_potential_b(x, y, z + e, time) - _potential_b(x, y, z - e, time)) * inv
    dc_dx = (_potential_c(x + e, y, z, time) - _potential_c(x - e, y, z, time)) * inv
    dc_dy = (_potential_c(x, y + e, z, time) - _potential_c(x, y - e, z, time)) * inv

    cx = dc_dy - db_dz
    cy = da_dz - dc_dx
    cz = db_dx - da_dy
    return cx, cy, cz


@jit(nopython=True)
def curl_noise(px, py, pz, time, scale):
    """Numba-jitted unit curl-noise direction at a world point."""
    cx, cy, cz = _curl_components(px, py, pz, time, scale)
    length = math.sqrt(cx * cx + cy * cy + cz * cz)
    if length <= CURL_MIN_MAGNITUDE:
        return 0.0, 0.0, 0.0
    return cx / length, cy / length, cz / length


@jit(nopython=True)
def wake_decay(downstream, lateral, radius):
    """Gaussian lateral falloff times exponential downstream falloff."""
    if downstream <= 0.0:
        return 0.0
    r = max(1e-4, radius)
    lateral_term = math.exp(-(lateral * lateral) / (r * r))
    downstream_term = math.exp(-downstream / (r * WAKE_DECAY_LENGTH_RATIO))
    return lateral_term * downstream_term


def sample_curl_noise(position: Sequence[float], time: float, scale: float) -> np.ndarray:
    """Returns the curl-noise direction at `position` as a (3,) array."""
    px, py, pz = (float(c) for c in position)
    return np.array(curl_noise(px, py, pz, float(time), float(scale)), dtype=np.float64)


def compute_wake_decay(downstream: float, lateral: float, radius: float) -> float:
    return float(wake_decay(float(downstream), float(lateral), float(radius)))
