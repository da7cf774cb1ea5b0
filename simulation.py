# simulation.py
"""
Handles the core simulation logic and physics calculations.

This module defines the Simulation class, which is responsible for
advancing the particle system by one tick: it refreshes the obstacle and
emitter snapshots, respawns expired particles, and runs the jitted
integrator that composes base-flow relaxation, obstacle interaction,
impact turbulence and lane recovery.
"""
import logging
import math
import numpy as np
from numba import jit
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

from constants import (
    BASE_FLOW_RELAX_RATE, FLOW_LENGTH_MIN, IMPACT_DEVIATION_SNAP, IMPACT_TURBULENCE_GAIN,
    IMPACT_WEIGHT_RELAX_BASE, IMPACT_WEIGHT_RELAX_SPAN, IMPACT_WEIGHT_SNAP, LANE_MIN_FORWARD_SPEED,
    LANE_RECOVERY_GAIN, LANE_RECOVERY_MAX_STEP, MIN_EFFECTIVE_SPAWN_RATE, MIN_RECOVERY_LENGTH,
    OFF_PATH_DISTANCE_FOR_MAX_COLOR,
)
from emitter import Emitter, SpawnSet, compute_spawn_rate
from flow_field import curl_noise
from interaction import _apply_interaction_numba
from obstacles import Obstacle, ObstacleField
from particle import ParticleSystem

# --- Data Contracts ---
#
# class FlowSettings(NamedTuple):
#   - Immutable configuration snapshot passed into every tick. Field names
#     follow the config keys; out-of-range values are clamped where used.
#
# _integrate_particles_numba(...) -> None:
#   - Inputs: the ParticleSystem arrays, a skip mask for particles that
#     were respawned this tick, the ObstacleField arrays, the unit flow
#     direction, the base flow speed and the scalar settings.
#   - Side Effects: updates positions, velocities, off_lane, impact_weight
#     and contacts in place for every non-skipped particle.
#   - Invariants: a particle reads only its own slots plus the read-only
#     obstacle arrays; particle order does not affect the result.
#
# class Simulation:
#   - step(self, dt: float) -> None: advances one tick. `dt` is trusted
#     as given; callers clamp it.
#   - restart(self) -> None: resets time and redistributes the particles.


class FlowSettings(NamedTuple):
    flow_speed: float = 2.7
    flow_length: float = 6.0
    impact_recovery: float = 1.0
    impact_buffer: float = 0.1
    impact_turbulence: float = 0.0
    turbulence_scale: float = 0.35
    drag: float = 0.8
    wake_strength: float = 1.05
    time_scale: float = 1.0

    @classmethod
    def from_params(cls, params: Dict[str, Any]) -> "FlowSettings":
        defaults = cls()
        return cls(**{
            field: float(params.get(field, getattr(defaults, field)))
            for field in cls._fields
        })

    @property
    def recovery_length(self) -> float:
        return max(MIN_RECOVERY_LENGTH, self.impact_recovery)

    @property
    def turbulence_strength(self) -> float:
        return max(0.0, self.impact_turbulence)

    @property
    def influence_radius(self) -> float:
        return max(0.0, self.impact_buffer)


@jit(nopython=True)
def _off_lane_deviation_numba(px, py, pz, ox, oy, oz, dx, dy, dz):
    """Normalized lateral distance from a point to its lane ray, in [0, 1]."""
    rx = px - ox
    ry = py - oy
    rz = pz - oz
    forward = rx * dx + ry * dy + rz * dz
    if forward <= 0.0:
        return 0.0
    lx = rx - dx * forward
    ly = ry - dy * forward
    lz = rz - dz * forward
    lateral = math.sqrt(lx * lx + ly * ly + lz * lz)
    return min(1.0, max(0.0, lateral / OFF_PATH_DISTANCE_FOR_MAX_COLOR))


@jit(nopython=True)
def _integrate_particles_numba(
    positions, velocities, lane_origins, lane_directions, off_lane, impact_weight,
    contacts, skip, kinds, table, fx, fy, fz, flow_speed, dt, time,
    drag, recovery_length, turbulence_scale, turbulence_strength,
):
    """
    Numba-jitted per-particle update. The order of the contributions is
    fixed: relax toward base flow, obstacles, impact turbulence, lane
    recovery, drag and integration, then deviation bookkeeping.
    """
    particle_count = positions.shape[0]
    obstacle_count = kinds.shape[0]
    # Scratch buffers reused for every particle.
    pos = np.empty(3)
    vel = np.empty(3)

    relax = min(1.0, dt * BASE_FLOW_RELAX_RATE)
    drag_scale = math.exp(-drag * dt)
    base_x = fx * flow_speed
    base_y = fy * flow_speed
    base_z = fz * flow_speed
    weight_blend = min(1.0, dt * (IMPACT_WEIGHT_RELAX_BASE + IMPACT_WEIGHT_RELAX_SPAN / recovery_length))

    for i in range(particle_count):
        if skip[i]:
            continue
        pos[0] = positions[i, 0]
        pos[1] = positions[i, 1]
        pos[2] = positions[i, 2]
        vel[0] = velocities[i, 0]
        vel[1] = velocities[i, 1]
        vel[2] = velocities[i, 2]

        # 1. Relax toward the ambient flow.
        vel[0] += (base_x - vel[0]) * relax
        vel[1] += (base_y - vel[1]) * relax
        vel[2] += (base_z - vel[2]) * relax

        # 2. Obstacles, in field order.
        touched = False
        for k in range(obstacle_count):
            if _apply_interaction_numba(pos, vel, kinds[k], table[k], fx, fy, fz,
                                        time, turbulence_scale, turbulence_strength):
                touched = True
        contacts[i] = touched
        if touched:
            impact_weight[i] = 1.0

        # 3. Lateral turbulence remembered from the last impact.
        weight = impact_weight[i]
        if weight > 1e-4 and turbulence_strength > 1e-5:
            tx, ty, tz = curl_noise(pos[0], pos[1], pos[2], time, turbulence_scale)
            tf = tx * fx + ty * fy + tz * fz
            tx -= fx * tf
            ty -= fy * tf
            tz -= fz * tf
            length = math.sqrt(tx * tx + ty * ty + tz * tz)
            if length > 1e-6:
                gain = turbulence_strength * weight * dt * IMPACT_TURBULENCE_GAIN / length
                vel[0] += tx * gain
                vel[1] += ty * gain
                vel[2] += tz * gain

        # 4. Lane recovery toward the spawn ray.
        if not touched:
            ox = lane_origins[i, 0]
            oy = lane_origins[i, 1]
            oz = lane_origins[i, 2]
            dx = lane_directions[i, 0]
            dy = lane_directions[i, 1]
            dz = lane_directions[i, 2]
            forward = (pos[0] - ox) * dx + (pos[1] - oy) * dy + (pos[2] - oz) * dz
            if forward > 0.0:
                ex = ox + dx * forward - pos[0]
                ey = oy + dy * forward - pos[1]
                ez = oz + dz * forward - pos[2]
                error = math.sqrt(ex * ex + ey * ey + ez * ez)
                if error > 1e-4:
                    forward_speed = max(LANE_MIN_FORWARD_SPEED, abs(vel[0] * dx + vel[1] * dy + vel[2] * dz))
                    rate = (forward_speed / recovery_length) * LANE_RECOVERY_GAIN
                    step = min(LANE_RECOVERY_MAX_STEP, rate * dt)
                    vel[0] += ex * step
                    vel[1] += ey * step
                    vel[2] += ez * step

        # 5. Drag, then integrate.
        vel[0] *= drag_scale
        vel[1] *= drag_scale
        vel[2] *= drag_scale
        pos[0] += vel[0] * dt
        pos[1] += vel[1] * dt
        pos[2] += vel[2] * dt

        positions[i, 0] = pos[0]
        positions[i, 1] = pos[1]
        positions[i, 2] = pos[2]
        velocities[i, 0] = vel[0]
        velocities[i, 1] = vel[1]
        velocities[i, 2] = vel[2]

        # 6. Deviation and impact weight bookkeeping.
        deviation = _off_lane_deviation_numba(
            pos[0], pos[1], pos[2],
            lane_origins[i, 0], lane_origins[i, 1], lane_origins[i, 2],
            lane_directions[i, 0], lane_directions[i, 1], lane_directions[i, 2],
        )
        if touched:
            impact_weight[i] = 1.0
        elif impact_weight[i] > 0.0:
            target = min(1.0, deviation * 2.0)
            relaxed = impact_weight[i] + (target - impact_weight[i]) * weight_blend
            if relaxed < IMPACT_WEIGHT_SNAP and deviation < IMPACT_DEVIATION_SNAP:
                relaxed = 0.0
            impact_weight[i] = relaxed
        off_lane[i] = deviation


def off_lane_deviation(particles: ParticleSystem, index: int, world_position: Sequence[float]) -> float:
    """
    Normalized lateral deviation of `world_position` from particle `index`'s lane.
    """
    px, py, pz = (float(c) for c in world_position)
    ox, oy, oz = particles.lane_origins[index]
    dx, dy, dz = particles.lane_directions[index]
    return float(_off_lane_deviation_numba(px, py, pz, ox, oy, oz, dx, dy, dz))


class Simulation:
    """
    Drives the particle system through the flow field, one tick at a time.
    """
    def __init__(
        self,
        particles: ParticleSystem,
        emitter: Emitter,
        obstacles: Optional[List[Obstacle]] = None,
        settings: Optional[FlowSettings] = None,
    ):
        """
        Initializes the simulation environment.

        Args:
            particles (ParticleSystem): The particle system to simulate.
            emitter (Emitter): The particle source.
            obstacles (List[Obstacle]): Scene obstacles; the list is read,
                never mutated, and may be edited between ticks.
            settings (FlowSettings): Initial configuration snapshot.
        """
        self.particles = particles
        self.emitter = emitter
        self.obstacles = obstacles if obstacles is not None else []
        self.settings = FlowSettings()
        if settings is not None:
            self.apply_settings(settings)

        self.time = 0.0
        self.spawn_accumulator = 0.0
        self.spawn_particle_cursor = 0
        self.field = ObstacleField()
        self.spawn_set: Optional[SpawnSet] = None

        logging.info(
            f"Simulation initialized with {len(self.obstacles)} obstacles and "
            f"{self.emitter.vertex_count} emitter vertices."
        )

    def apply_settings(self, settings: FlowSettings) -> None:
        """Replaces the configuration snapshot used from the next tick on."""
        self.settings = settings
        self.particles.spawn_speed = settings.flow_speed
        self.particles.flow_length = settings.flow_length

    def effective_spawn_rate(self) -> float:
        base_rate = compute_spawn_rate(self.emitter.vertex_count, self.particles.max_particles)
        rate = base_rate / max(FLOW_LENGTH_MIN, self.settings.flow_length)
        return max(MIN_EFFECTIVE_SPAWN_RATE, min(self.particles.max_particles * 8.0, rate))

    def refresh_snapshots(self) -> None:
        """Rebuilds the read-only obstacle and emitter snapshots for this tick."""
        self.spawn_set = self.emitter.spawn_set()
        self.field = ObstacleField.snapshot(
            self.obstacles, self.settings.influence_radius, self.settings.wake_strength
        )

    def restart(self) -> None:
        self.time = 0.0
        self.spawn_accumulator = 0.0
        self.spawn_particle_cursor = 0
        self.refresh_snapshots()
        self.particles.distribute_along_lanes(self.spawn_set)
        logging.info("Simulation restarted.")

    def step(self, dt: float) -> None:
        """
        Executes one time step of the simulation.
        """
        dt = float(dt)
        particles = self.particles
        self.time += dt

        # 1. Snapshots are fixed for the rest of the tick.
        self.refresh_snapshots()
        spawn_set = self.spawn_set

        # 2. Continuous emission at a rotating particle cursor.
        self.spawn_accumulator += dt * self.effective_spawn_rate()
        emit_count = int(self.spawn_accumulator)
        if emit_count > 0:
            self.spawn_accumulator -= emit_count
            emitted = (self.spawn_particle_cursor + np.arange(emit_count)) % particles.max_particles
            self.spawn_particle_cursor = int((self.spawn_particle_cursor + emit_count) % particles.max_particles)
            particles.respawn(emitted, spawn_set)

        # 3. Age, then respawn expired particles instead of integrating them.
        particles.ages += dt
        expired = particles.ages >= particles.lifetimes
        if np.any(expired):
            particles.respawn(np.flatnonzero(expired), spawn_set)

        # 4. Integrate everyone else.
        self.integrate(dt, expired)

    def integrate(self, dt: float, skip: Optional[np.ndarray] = None) -> None:
        """
        Runs the jitted integrator over the current snapshots. Particles
        flagged in `skip` keep their state for this tick.
        """
        particles = self.particles
        settings = self.settings
        if self.spawn_set is None:
            self.refresh_snapshots()
        spawn_set = self.spawn_set
        if skip is None:
            skip = np.zeros(particles.max_particles, dtype=np.bool_)
        _integrate_particles_numba(
            particles.positions, particles.velocities,
            particles.lane_origins, particles.lane_directions,
            particles.off_lane, particles.impact_weight, particles.contacts,
            skip, self.field.kinds, self.field.table,
            spawn_set.normal[0], spawn_set.normal[1], spawn_set.normal[2],
            settings.flow_speed, float(dt), self.time,
            max(0.0, settings.drag), settings.recovery_length,
            settings.turbulence_scale, settings.turbulence_strength,
        )

    def color_blend(self) -> np.ndarray:
        """Per-particle path-to-impact color blend in [0, 1]."""
        return self.particles.off_lane
