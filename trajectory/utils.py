from __future__ import annotations

import math
from typing import Sequence, Tuple

import numpy as np

Point = Tuple[float, float]


def as_points(points: Sequence[Sequence[float]]) -> np.ndarray:
    """Coerce a sequence of (x, y) pairs to an (N, 2) float array."""
    array = np.asarray(points, dtype=float)
    if array.size == 0:
        return np.zeros((0, 2), dtype=float)
    return array.reshape(-1, 2)


def to_local(points: Sequence[Sequence[float]], origin: Sequence[float], heading: float) -> np.ndarray:
    """
    Express global points in a vehicle-relative frame.

    Translates by -origin, then rotates by -heading, so the local +x axis
    points along `heading`.
    """
    pts = as_points(points)
    shift = pts - np.asarray(origin, dtype=float)
    cos_h = math.cos(-heading)
    sin_h = math.sin(-heading)
    local_x = shift[:, 0] * cos_h - shift[:, 1] * sin_h
    local_y = shift[:, 0] * sin_h + shift[:, 1] * cos_h
    return np.column_stack((local_x, local_y))


def to_global(points: Sequence[Sequence[float]], origin: Sequence[float], heading: float) -> np.ndarray:
    """Inverse of to_local: rotate by +heading, then translate by +origin."""
    pts = as_points(points)
    cos_h = math.cos(heading)
    sin_h = math.sin(heading)
    global_x = pts[:, 0] * cos_h - pts[:, 1] * sin_h
    global_y = pts[:, 0] * sin_h + pts[:, 1] * cos_h
    return np.column_stack((global_x, global_y)) + np.asarray(origin, dtype=float)


def heading_between(start: Sequence[float], end: Sequence[float]) -> float:
    """Bearing (radians) of the segment from start to end."""
    return math.atan2(float(end[1]) - float(start[1]), float(end[0]) - float(start[0]))


def lane_center_d(lane: int, lane_width: float = 4.0) -> float:
    """Lateral offset of a lane's center from the road centerline."""
    return lane_width / 2.0 + lane_width * lane


def chord_length(x: float, y: float) -> float:
    """Straight-line distance from the local origin to (x, y)."""
    return math.hypot(x, y)
