"""
Shared synthetic waypoint maps for planner tests.
"""

import math

import numpy as np
import pytest

from mapping.waypoint_map import load_waypoint_map
from trajectory.models.path_planner import PathPlanner, PlannerConfig, VehiclePose

STRAIGHT_SPACING = 30.0
STRAIGHT_LENGTH = 1200.0
CIRCLE_RADIUS = 500.0
CIRCLE_WAYPOINTS = 360


def straight_rows(spacing: float = STRAIGHT_SPACING, length: float = STRAIGHT_LENGTH):
    """Road along +x; the lateral normal points to the right of travel (-y)."""
    return [(s, 0.0, s, 0.0, -1.0) for s in np.arange(0.0, length + spacing / 2.0, spacing)]


def circle_rows(radius: float = CIRCLE_RADIUS, count: int = CIRCLE_WAYPOINTS):
    """Counter-clockwise loop; the lateral normal points outward."""
    rows = []
    for i in range(count):
        theta = 2.0 * math.pi * i / count
        rows.append((
            radius * math.cos(theta),
            radius * math.sin(theta),
            radius * theta,
            math.cos(theta),
            math.sin(theta),
        ))
    return rows


@pytest.fixture
def straight_map():
    return load_waypoint_map(straight_rows(), max_s=STRAIGHT_LENGTH + STRAIGHT_SPACING)


@pytest.fixture
def circle_map():
    return load_waypoint_map(circle_rows(), max_s=2.0 * math.pi * CIRCLE_RADIUS)


@pytest.fixture
def planner(straight_map):
    return PathPlanner(straight_map, PlannerConfig())


@pytest.fixture
def origin_pose():
    return VehiclePose(x=0.0, y=0.0, s=0.0, d=6.0, yaw=0.0, speed=0.0)
