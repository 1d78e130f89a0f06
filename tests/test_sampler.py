"""
Tests for chord-linearized path sampling.
"""

import math

import numpy as np
import pytest

from trajectory.curve_fit import fit_local_curve
from trajectory.sampler import compute_x_step, sample_path

STRAIGHT = [(-1.0, 0.0), (0.0, 0.0), (60.0, 0.0), (90.0, 0.0), (120.0, 0.0)]
LANE_CHANGE = [(-1.0, 0.0), (0.0, 0.0), (60.0, -4.0), (90.0, -4.0), (120.0, -4.0)]


class TestXStep:

    def test_straight_step_is_distance_per_tick(self):
        curve = fit_local_curve(STRAIGHT)
        x_step, target_dist = compute_x_step(curve, 60.0, speed=20.0, tick=0.02)
        assert target_dist == pytest.approx(60.0)
        assert x_step == pytest.approx(0.4)

    def test_step_uses_chord_length(self):
        curve = fit_local_curve(LANE_CHANGE)
        x_step, target_dist = compute_x_step(curve, 60.0, speed=20.0, tick=0.02)

        expected_dist = math.sqrt(60.0 ** 2 + 4.0 ** 2)
        n = expected_dist / (0.02 * 20.0)
        assert target_dist == pytest.approx(expected_dist)
        assert x_step == pytest.approx(60.0 / n)

    def test_zero_speed_gives_zero_step(self):
        curve = fit_local_curve(STRAIGHT)
        x_step, _ = compute_x_step(curve, 60.0, speed=0.0)
        assert x_step == 0.0


class TestSamplePath:

    def test_emits_requested_count(self):
        curve = fit_local_curve(LANE_CHANGE)
        sampled = sample_path(curve, 37, 60.0, speed=10.0)
        assert sampled.points.shape == (37, 2)

    def test_points_follow_curve(self):
        curve = fit_local_curve(LANE_CHANGE)
        sampled = sample_path(curve, 50, 60.0, speed=20.0)
        np.testing.assert_allclose(sampled.points[:, 1], curve.evaluate(sampled.points[:, 0]))

    def test_x_advances_in_equal_steps_from_origin(self):
        curve = fit_local_curve(LANE_CHANGE)
        sampled = sample_path(curve, 10, 60.0, speed=15.0)
        assert sampled.points[0, 0] == pytest.approx(sampled.x_step)
        np.testing.assert_allclose(np.diff(sampled.points[:, 0]), sampled.x_step)

    def test_straight_spacing_matches_speed(self):
        curve = fit_local_curve(STRAIGHT)
        sampled = sample_path(curve, 100, 60.0, speed=20.0, tick=0.02)
        spacing = np.hypot(*np.diff(sampled.points, axis=0).T)
        np.testing.assert_allclose(spacing, 0.4, atol=1e-9)

    def test_zero_or_negative_count(self):
        curve = fit_local_curve(STRAIGHT)
        assert sample_path(curve, 0, 60.0, speed=10.0).points.shape == (0, 2)
        assert sample_path(curve, -5, 60.0, speed=10.0).points.shape == (0, 2)

    def test_stationary_command_stays_at_origin(self):
        curve = fit_local_curve(STRAIGHT)
        sampled = sample_path(curve, 5, 60.0, speed=0.0)
        np.testing.assert_allclose(sampled.points, 0.0, atol=1e-12)
