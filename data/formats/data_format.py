"""
Data format definitions for planner recordings.
"""

from dataclasses import dataclass
import numpy as np


@dataclass
class CycleRecord:
    """One completed planning cycle."""
    timestamp: float
    cycle: int
    # Vehicle pose (planner units)
    pose_x: float
    pose_y: float
    pose_s: float
    pose_d: float
    pose_yaw: float  # radians
    pose_speed: float  # m/s
    # Planner outputs
    mode: str  # "bootstrapping" or "tracking"
    commanded_speed: float  # m/s
    retained: int  # points copied from the previous path
    generated: int  # newly sampled points
    x_step: float  # local x increment per trajectory point
    reference_x: float  # local frame origin
    reference_y: float
    reference_heading: float  # radians
    anchors: np.ndarray  # (anchor_count, 2) global anchor points
    trajectory_x: np.ndarray
    trajectory_y: np.ndarray
