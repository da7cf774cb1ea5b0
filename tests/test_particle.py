"""
Tests for particle respawning and the restart distribution.
"""

import numpy as np

from emitter import Emitter, SpawnSet
from particle import ParticleSystem


def three_vertex_set():
    return SpawnSet(
        vertices=np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [2.0, 0.0, 0.0]]),
        normal=np.array([0.0, 0.0, 1.0]),
        right=np.array([1.0, 0.0, 0.0]),
        up=np.array([0.0, 1.0, 0.0]),
    )


class TestRespawn:

    def test_round_robin_vertices(self):
        particles = ParticleSystem({"max_particles": 5, "seed": 1})
        spawn_set = three_vertex_set()

        particles.respawn(np.arange(5), spawn_set)

        np.testing.assert_array_equal(particles.positions[:, 0], [0.0, 1.0, 2.0, 0.0, 1.0])
        assert particles.spawn_vertex_cursor == 2

        particles.respawn([4], spawn_set)
        np.testing.assert_array_equal(particles.positions[4], [2.0, 0.0, 0.0])
        assert particles.spawn_vertex_cursor == 0

    def test_resets_lane_and_bookkeeping(self):
        particles = ParticleSystem({"max_particles": 3, "seed": 1, "flow_speed": 2.0})
        particles.off_lane[:] = 0.7
        particles.impact_weight[:] = 1.0
        particles.contacts[:] = True
        particles.ages[:] = 5.0

        particles.respawn(np.arange(3), three_vertex_set())

        np.testing.assert_array_equal(particles.lane_origins, particles.positions)
        np.testing.assert_array_equal(particles.lane_directions, np.tile([0.0, 0.0, 1.0], (3, 1)))
        np.testing.assert_array_equal(particles.off_lane, 0.0)
        np.testing.assert_array_equal(particles.impact_weight, 0.0)
        assert not particles.contacts.any()
        np.testing.assert_array_equal(particles.ages, 0.0)
        # Spawn speed along the normal, jitter only in the emitter plane.
        np.testing.assert_allclose(particles.velocities[:, 2], 2.0)
        assert np.all(np.abs(particles.velocities[:, :2]) <= 0.15)

    def test_lifetime_bounds(self):
        particles = ParticleSystem({"max_particles": 500, "seed": 4, "particle_lifetime": 2.0, "flow_length": 1.0})
        particles.respawn(np.arange(500), three_vertex_set())
        assert particles.lifetimes.min() >= 2.0 * 0.72
        assert particles.lifetimes.max() <= 2.0 * 1.27

    def test_lifetime_scales_with_square_root_of_flow_length(self):
        short = ParticleSystem({"max_particles": 50, "seed": 9, "flow_length": 1.0})
        long = ParticleSystem({"max_particles": 50, "seed": 9, "flow_length": 4.0})
        short.respawn(np.arange(50), three_vertex_set())
        long.respawn(np.arange(50), three_vertex_set())
        np.testing.assert_allclose(long.lifetimes, short.lifetimes * 2.0)

    def test_lifetime_floor(self):
        particles = ParticleSystem({"max_particles": 4, "seed": 0, "particle_lifetime": 0.0})
        particles.respawn(np.arange(4), three_vertex_set())
        np.testing.assert_array_equal(particles.lifetimes, 0.05)

    def test_empty_inputs_are_noops(self):
        particles = ParticleSystem({"max_particles": 2})
        particles.respawn([], three_vertex_set())
        assert particles.spawn_vertex_cursor == 0


class TestDistributeAlongLanes:

    def test_particles_start_on_their_lanes(self):
        emitter = Emitter(4, 4, position=(0.0, 0.0, -3.0))
        particles = ParticleSystem({"max_particles": 200, "seed": 3, "flow_length": 6.0})

        particles.distribute_along_lanes(emitter.spawn_set())

        assert np.all(particles.ages < particles.lifetimes)
        assert np.all(particles.ages > 0.0)
        offset = particles.positions - particles.lane_origins
        np.testing.assert_allclose(offset[:, :2], 0.0, atol=1e-12)
        assert offset[:, 2].min() >= 0.02 * 5.4 - 1e-12
        assert offset[:, 2].max() <= 0.98 * 5.4 + 1e-12

    def test_same_seed_same_layout(self):
        spawn_set = Emitter(3, 3).spawn_set()
        a = ParticleSystem({"max_particles": 40, "seed": 12})
        b = ParticleSystem({"max_particles": 40, "seed": 12})
        a.distribute_along_lanes(spawn_set)
        b.distribute_along_lanes(spawn_set)
        np.testing.assert_array_equal(a.positions, b.positions)
        np.testing.assert_array_equal(a.velocities, b.velocities)
