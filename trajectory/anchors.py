"""
Anchor point selection for the per-cycle curve fit.

Two history anchors fix the starting position and heading of the new curve,
three forward anchors in the target lane define where it is heading.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence, Tuple

import numpy as np

from mapping.frenet import to_cartesian
from mapping.waypoint_map import WaypointMap

from .utils import Point, heading_between


class PlannerMode(str, Enum):
    """Anchor selection state."""
    BOOTSTRAPPING = "bootstrapping"  # previous path too short, anchor on the pose
    TRACKING = "tracking"  # continue from the end of the previous path


def select_mode(previous_path_length: int) -> PlannerMode:
    """Pure transition function evaluated fresh every cycle."""
    if previous_path_length < 2:
        return PlannerMode.BOOTSTRAPPING
    return PlannerMode.TRACKING


@dataclass(frozen=True)
class AnchorSet:
    """Global anchor points plus the reference frame they are fitted in."""
    points: Tuple[Point, ...]  # 2 history anchors followed by the forward anchors
    origin: Point
    heading: float  # radians
    mode: PlannerMode

    @property
    def history(self) -> Tuple[Point, ...]:
        return self.points[:2]

    @property
    def forward(self) -> Tuple[Point, ...]:
        return self.points[2:]

    def as_array(self) -> np.ndarray:
        return np.asarray(self.points, dtype=float)


def history_anchors(pose, previous_path: Sequence[Point]) -> Tuple[PlannerMode, Point, Point, float]:
    """
    Choose the two history anchors and the reference heading.

    Returns:
        (mode, prev_anchor, ref_anchor, ref_heading). ref_anchor is also the
        origin of the local frame.
    """
    mode = select_mode(len(previous_path))
    if mode is PlannerMode.BOOTSTRAPPING:
        # Synthesize a point one unit behind the vehicle along its heading
        ref = (float(pose.x), float(pose.y))
        prev = (ref[0] - math.cos(pose.yaw), ref[1] - math.sin(pose.yaw))
        return mode, prev, ref, float(pose.yaw)

    # Heading of the planned path, not the sensor yaw, keeps the curve continuous
    prev = (float(previous_path[-2][0]), float(previous_path[-2][1]))
    ref = (float(previous_path[-1][0]), float(previous_path[-1][1]))
    return mode, prev, ref, heading_between(prev, ref)


def select_anchors(
    pose,
    previous_path: Sequence[Point],
    target_d: float,
    waypoint_map: WaypointMap,
    forward_offsets: Sequence[float] = (60.0, 90.0, 120.0),
) -> AnchorSet:
    """
    Build the anchor set for this cycle.

    Args:
        pose: Vehicle pose (x, y, s, yaw in radians)
        previous_path: Unconsumed global points from the last cycle
        target_d: Lateral offset of the target lane center
        waypoint_map: Centerline map used to project forward anchors
        forward_offsets: Longitudinal offsets ahead of the vehicle's s

    Returns:
        AnchorSet with history and forward anchors in the global frame
    """
    mode, prev, ref, heading = history_anchors(pose, previous_path)
    points = [prev, ref]
    for offset in forward_offsets:
        points.append(to_cartesian(float(pose.s) + float(offset), target_d, waypoint_map))
    return AnchorSet(points=tuple(points), origin=ref, heading=heading, mode=mode)
