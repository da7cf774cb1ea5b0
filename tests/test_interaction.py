"""
Tests for the per-obstacle particle interaction: non-penetration,
tangential slide, wake turbulence and wake realignment.
"""

import numpy as np
import pytest

from interaction import apply_obstacle_interaction
from obstacles import Obstacle, describe_obstacle, signed_distance_and_normal
from transforms import rotation_from_euler

FLOW = (0.0, 0.0, 1.0)


def vec(*values):
    return np.array(values, dtype=np.float64)


def lateral_speed(velocity):
    return float(np.hypot(velocity[0], velocity[1]))


def facing_plane(width, height, influence, wake, position=(0.0, 0.0, 0.0)):
    """A plane whose local normal (+Z) points along world +Y."""
    obstacle = Obstacle(
        "plane",
        position=position,
        rotation=rotation_from_euler((-np.pi / 2, 0.0, 0.0)),
        params={"width": width, "height": height},
    )
    return describe_obstacle(obstacle, influence, wake)


# ─────────────────────────────────────────────────────────────────────
# Surface contact
# ─────────────────────────────────────────────────────────────────────

class TestSurfaceContact:

    def test_penetrating_particle_is_pushed_out_and_slides(self):
        sphere = describe_obstacle(Obstacle("sphere"), 0.5, 0.0)
        position = vec(0.1, 0.1, 0.01)
        velocity = vec(0.2, 0.0, -1.5)

        touched = apply_obstacle_interaction(position, velocity, sphere, FLOW, 0.0, 0.35, 0.0)

        assert touched
        assert position[2] > 0.01
        d, n = signed_distance_and_normal(sphere, position)
        assert d >= 0.0
        assert abs(np.dot(velocity, n)) < 1e-4

    def test_particle_outside_influence_is_untouched(self):
        sphere = describe_obstacle(Obstacle("sphere"), 0.1, 0.0)
        position = vec(0.0, 1.0, -2.0)
        velocity = vec(0.0, 0.0, 2.0)

        touched = apply_obstacle_interaction(position, velocity, sphere, FLOW, 0.0, 0.35, 0.0)

        assert not touched
        np.testing.assert_array_equal(position, [0.0, 1.0, -2.0])
        np.testing.assert_array_equal(velocity, [0.0, 0.0, 2.0])

    def test_non_uniform_sphere_influence_shell(self):
        sphere = describe_obstacle(Obstacle("sphere", scale=(2.0, 0.6, 1.0)), 0.1, 0.0)

        assert apply_obstacle_interaction(vec(0.92, 0.0, 0.0), vec(0.0, 0.0, 1.0),
                                          sphere, FLOW, 0.0, 0.35, 0.0)
        assert not apply_obstacle_interaction(vec(0.0, 0.55, 0.0), vec(0.0, 0.0, 1.0),
                                              sphere, FLOW, 0.0, 0.35, 0.0)

    @pytest.mark.parametrize("obstacle", [
        Obstacle("sphere", scale=(1.6, 0.7, 1.1), rotation=(0.4, 0.2, -0.3)),
        Obstacle("box", rotation=(0.9, -0.4, 0.1)),
        Obstacle("torus", rotation=(1.2, 0.0, 0.5)),
        Obstacle("pyramid", rotation=(0.3, 0.0, 0.2)),
        Obstacle("plane", rotation=(0.5, 0.3, 0.0)),
    ], ids=["anisotropic-sphere", "rotated-box", "rotated-torus", "pyramid", "plane"])
    def test_never_ends_inside(self, obstacle):
        descriptor = describe_obstacle(obstacle, 0.3, 1.0)
        rng = np.random.default_rng(21)
        checked = 0
        while checked < 150:
            position = rng.uniform(-1.2, 1.2, size=3)
            d, _ = signed_distance_and_normal(descriptor, position)
            if d >= 0.05:
                continue
            velocity = rng.normal(0.0, 2.0, size=3)
            apply_obstacle_interaction(position, velocity, descriptor, FLOW, 0.3, 0.35, 1.0)
            d_after, _ = signed_distance_and_normal(descriptor, position)
            assert d_after >= -1e-9
            checked += 1

    @pytest.mark.parametrize("obstacle", [
        Obstacle("sphere", scale=(1.2, 1.2, 1.2)),
        Obstacle("sphere", scale=(2.0, 0.6, 1.0)),
        Obstacle("box", rotation=(0.9, -0.4, 0.1)),
        Obstacle("torus", rotation=(1.2, 0.0, 0.5)),
        Obstacle("torus", scale=(1.5, 0.7, 1.3)),
        Obstacle("pyramid"),
        Obstacle("plane", rotation=(0.5, 0.3, 0.0)),
    ], ids=["sphere", "anisotropic-sphere", "rotated-box", "rotated-torus", "scaled-torus",
            "pyramid", "plane"])
    def test_no_normal_velocity_inside_shell(self, obstacle):
        descriptor = describe_obstacle(obstacle, 0.25, 1.0)
        rng = np.random.default_rng(5)
        checked = 0
        while checked < 150:
            position = rng.uniform(-1.2, 1.2, size=3)
            d, _ = signed_distance_and_normal(descriptor, position)
            if d > 0.25:
                continue
            velocity = rng.normal(0.0, 2.0, size=3)
            touched = apply_obstacle_interaction(position, velocity, descriptor, FLOW, 0.9, 0.35, 1.0)
            assert touched
            _, n = signed_distance_and_normal(descriptor, position)
            assert abs(np.dot(velocity, n)) < 1e-4
            checked += 1


# ─────────────────────────────────────────────────────────────────────
# Wake
# ─────────────────────────────────────────────────────────────────────

class TestWake:

    def test_turbulence_stirs_a_resting_particle(self):
        plane = facing_plane(1.6, 1.0, influence=0.35, wake=2.0)
        velocity = vec(0.0, 0.0, 0.0)

        touched = apply_obstacle_interaction(vec(0.0, 0.0, 2.0), velocity, plane, FLOW, 1.1, 0.3, 1.0)

        assert not touched
        assert np.linalg.norm(velocity) > 0.0
        # Wake turbulence is purely lateral.
        assert velocity[2] == pytest.approx(0.0, abs=1e-12)

    def test_no_turbulence_no_stir(self):
        plane = facing_plane(1.6, 1.0, influence=0.35, wake=2.0)
        velocity = vec(0.0, 0.0, 0.0)

        apply_obstacle_interaction(vec(0.0, 0.0, 2.0), velocity, plane, FLOW, 1.1, 0.3, 0.0)

        assert np.linalg.norm(velocity) == pytest.approx(0.0, abs=1e-12)

    def test_upstream_particle_feels_no_wake(self):
        plane = facing_plane(1.6, 1.0, influence=0.35, wake=2.0)
        velocity = vec(0.4, 0.0, 1.0)

        apply_obstacle_interaction(vec(0.0, 0.0, -2.0), velocity, plane, FLOW, 1.1, 0.3, 1.0)

        np.testing.assert_array_equal(velocity, [0.4, 0.0, 1.0])

    def test_realignment_reduces_lateral_speed(self):
        plane = facing_plane(2.0, 1.0, influence=0.2, wake=0.0)
        velocity = vec(1.2, 0.0, 1.8)
        before = lateral_speed(velocity)
        speed = np.linalg.norm(velocity)

        apply_obstacle_interaction(vec(0.0, 0.0, 1.4), velocity, plane, FLOW, 0.8, 0.3, 0.0)

        assert lateral_speed(velocity) < before
        assert np.linalg.norm(velocity) == pytest.approx(speed)

    def test_realignment_converges_behind_the_obstacle(self):
        plane = facing_plane(2.0, 1.0, influence=0.2, wake=0.0)
        position = vec(0.0, 0.0, 1.4)
        velocity = vec(1.2, 0.0, 1.8)
        dt = 0.05
        initial = lateral_speed(velocity)

        previous = initial
        for step in range(40):
            apply_obstacle_interaction(position, velocity, plane, FLOW, step * dt, 0.3, 0.0)
            current = lateral_speed(velocity)
            assert current < previous
            previous = current
            position += velocity * dt

        assert previous < initial * 0.05

    def test_zero_flow_direction_is_harmless(self):
        sphere = describe_obstacle(Obstacle("sphere"), 0.2, 1.0)
        position = vec(0.0, 0.6, 0.0)
        velocity = vec(0.0, -1.0, 0.5)

        touched = apply_obstacle_interaction(position, velocity, sphere, (0.0, 0.0, 0.0), 0.0, 0.35, 1.0)

        assert touched
        assert np.all(np.isfinite(position))
        assert np.all(np.isfinite(velocity))
