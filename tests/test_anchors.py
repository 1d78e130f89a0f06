"""
Tests for anchor selection (bootstrapping vs tracking).
"""

import math

import numpy as np
import pytest

from trajectory.anchors import PlannerMode, history_anchors, select_anchors, select_mode
from trajectory.models.path_planner import VehiclePose
from trajectory.utils import to_local


class TestModeTransition:

    @pytest.mark.parametrize("length,expected", [
        (0, PlannerMode.BOOTSTRAPPING),
        (1, PlannerMode.BOOTSTRAPPING),
        (2, PlannerMode.TRACKING),
        (47, PlannerMode.TRACKING),
    ])
    def test_select_mode(self, length, expected):
        assert select_mode(length) is expected


class TestBootstrapping:
    """Fewer than 2 previous points: anchor on the vehicle pose."""

    def test_synthesizes_point_behind_pose(self, origin_pose):
        mode, prev, ref, heading = history_anchors(origin_pose, [])

        assert mode is PlannerMode.BOOTSTRAPPING
        assert ref == (0.0, 0.0)
        assert prev == pytest.approx((-1.0, 0.0))
        assert heading == 0.0

    def test_uses_pose_yaw(self):
        pose = VehiclePose(x=5.0, y=5.0, s=0.0, d=6.0, yaw=math.pi / 2.0, speed=0.0)
        _, prev, ref, heading = history_anchors(pose, [(5.0, 5.2)])

        assert ref == (5.0, 5.0)
        assert prev == pytest.approx((5.0, 4.0))
        assert heading == pytest.approx(math.pi / 2.0)

    def test_cold_start_anchor_set(self, origin_pose, straight_map):
        anchors = select_anchors(origin_pose, [], 6.0, straight_map)

        assert anchors.mode is PlannerMode.BOOTSTRAPPING
        assert len(anchors.points) == 5
        assert anchors.history[0] == pytest.approx((-1.0, 0.0))
        assert anchors.history[1] == (0.0, 0.0)
        np.testing.assert_allclose(anchors.forward, [(60.0, -6.0), (90.0, -6.0), (120.0, -6.0)], atol=1e-9)


class TestTracking:
    """At least 2 previous points: continue from the end of the planned path."""

    def test_uses_last_two_previous_points(self, straight_map):
        pose = VehiclePose(x=9.0, y=0.0, s=9.0, d=6.0, yaw=0.4, speed=5.0)
        previous_path = [(8.0, 0.0), (10.0, 0.0), (12.0, 0.0)]

        anchors = select_anchors(pose, previous_path, 6.0, straight_map)

        assert anchors.mode is PlannerMode.TRACKING
        assert anchors.history == ((10.0, 0.0), (12.0, 0.0))
        assert anchors.origin == (12.0, 0.0)
        # Heading follows the planned path, not the reported yaw
        assert anchors.heading == pytest.approx(0.0)

    def test_heading_is_bearing_between_last_points(self, straight_map):
        pose = VehiclePose(x=0.0, y=0.0, s=0.0, d=6.0, yaw=0.0, speed=5.0)
        anchors = select_anchors(pose, [(0.0, 0.0), (1.0, -1.0)], 6.0, straight_map)
        assert anchors.heading == pytest.approx(-math.pi / 4.0)

    def test_forward_anchors_project_from_vehicle_s(self, straight_map):
        pose = VehiclePose(x=11.0, y=0.0, s=11.0, d=6.0, yaw=0.0, speed=5.0)
        anchors = select_anchors(pose, [(10.0, 0.0), (12.0, 0.0)], 2.0, straight_map)
        np.testing.assert_allclose(anchors.forward, [(71.0, -2.0), (101.0, -2.0), (131.0, -2.0)], atol=1e-9)

    def test_custom_forward_offsets(self, origin_pose, straight_map):
        anchors = select_anchors(origin_pose, [], 6.0, straight_map, forward_offsets=(30.0, 45.0))
        assert len(anchors.points) == 4
        assert anchors.forward[0] == pytest.approx((30.0, -6.0))


class TestLocalOrdering:

    def test_local_x_strictly_increasing(self, straight_map):
        pose = VehiclePose(x=11.0, y=0.0, s=11.0, d=2.0, yaw=0.0, speed=5.0)
        anchors = select_anchors(pose, [(10.0, 0.0), (12.0, 0.0)], 10.0, straight_map)
        local = to_local(anchors.points, anchors.origin, anchors.heading)
        assert np.all(np.diff(local[:, 0]) > 0.0)
