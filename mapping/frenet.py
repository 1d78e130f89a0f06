"""
Conversions between road-relative Frenet coordinates and global Cartesian
coordinates on a waypoint map.

s is the distance along the centerline, d the lateral offset along the map
normal (positive toward the outer lanes).
"""

from __future__ import annotations

import math
from typing import Tuple

import numpy as np

from .waypoint_map import Waypoint, WaypointMap


def wrap_s(s: float, max_s: float) -> float:
    """Wrap a longitudinal position into [0, max_s)."""
    wrapped = math.fmod(float(s), max_s)
    if wrapped < 0.0:
        wrapped += max_s
    return wrapped


def _segment_for_s(s: float, waypoint_map: WaypointMap) -> Tuple[int, int, float, float]:
    """Return (prev_index, next_index, prev_s, next_s) for a wrapped s.

    The last segment runs from the final waypoint back to the first one, with
    s values unrolled so that prev_s <= s < next_s.
    """
    s_values = waypoint_map.s
    n = len(s_values)
    max_s = waypoint_map.max_s
    i = int(np.searchsorted(s_values, s, side='right')) - 1
    if i < 0:
        # Before the first waypoint: still on the closing segment.
        return n - 1, 0, float(s_values[-1]) - max_s, float(s_values[0])
    if i >= n - 1:
        return n - 1, 0, float(s_values[-1]), float(s_values[0]) + max_s
    return i, i + 1, float(s_values[i]), float(s_values[i + 1])


def _interpolate_normal(a: Waypoint, b: Waypoint, t: float) -> Tuple[float, float]:
    return a.dx + t * (b.dx - a.dx), a.dy + t * (b.dy - a.dy)


def to_cartesian(s: float, d: float, waypoint_map: WaypointMap) -> Tuple[float, float]:
    """
    Map a Frenet (s, d) coordinate to global (x, y).

    The centerline point and the lateral normal are both linearly
    interpolated between the endpoints of the segment containing s, and the
    point is offset by d along the re-normalised normal.

    Args:
        s: Longitudinal position (meters, wrapped modulo max_s)
        d: Lateral offset (meters)
        waypoint_map: Centerline map

    Returns:
        Global (x, y)
    """
    s = wrap_s(s, waypoint_map.max_s)
    prev_wp, next_wp, prev_s, next_s = _segment_for_s(s, waypoint_map)

    a, b = waypoint_map[prev_wp], waypoint_map[next_wp]

    t = (s - prev_s) / (next_s - prev_s)
    seg_x = a.x + t * (b.x - a.x)
    seg_y = a.y + t * (b.y - a.y)

    nx, ny = _interpolate_normal(a, b, t)
    norm = math.hypot(nx, ny)
    if norm > 1e-12:
        nx /= norm
        ny /= norm
    else:
        # Opposing normals cancel out; fall back to the segment's right-hand normal.
        heading = math.atan2(b.y - a.y, b.x - a.x)
        nx, ny = math.sin(heading), -math.cos(heading)

    return float(seg_x + d * nx), float(seg_y + d * ny)


def closest_waypoint(x: float, y: float, waypoint_map: WaypointMap) -> int:
    """Index of the waypoint nearest to (x, y)."""
    distances = np.hypot(waypoint_map.x - x, waypoint_map.y - y)
    return int(np.argmin(distances))


def next_waypoint(x: float, y: float, theta: float, waypoint_map: WaypointMap) -> int:
    """Index of the next waypoint ahead of a vehicle at (x, y) heading theta."""
    closest = closest_waypoint(x, y, waypoint_map)
    heading = math.atan2(waypoint_map.y[closest] - y, waypoint_map.x[closest] - x)
    angle = abs(theta - heading)
    angle = min(2.0 * math.pi - angle, angle)
    if angle > math.pi / 2.0:
        closest = (closest + 1) % len(waypoint_map)
    return closest


def to_frenet(x: float, y: float, theta: float, waypoint_map: WaypointMap) -> Tuple[float, float]:
    """
    Map a global (x, y) with heading theta to Frenet (s, d).

    Projects the point onto the map segment ending at the next waypoint. d is
    signed along the interpolated map normal, so it is consistent with
    to_cartesian on the same segment.
    """
    next_wp = next_waypoint(x, y, theta, waypoint_map)
    prev_wp = (next_wp - 1) % len(waypoint_map)
    a, b = waypoint_map[prev_wp], waypoint_map[next_wp]

    seg_dx = b.x - a.x
    seg_dy = b.y - a.y
    rel_x = x - a.x
    rel_y = y - a.y
    seg_len = math.hypot(seg_dx, seg_dy)
    if seg_len < 1e-12:
        return a.s, float(math.hypot(rel_x, rel_y))

    along = (rel_x * seg_dx + rel_y * seg_dy) / seg_len
    prev_s = a.s
    next_s = b.s
    if next_wp == 0:
        next_s += waypoint_map.max_s
    # Scale along-segment distance onto the map's own s spacing.
    s = prev_s + along * (next_s - prev_s) / seg_len

    t = min(max(along / seg_len, 0.0), 1.0)
    nx, ny = _interpolate_normal(a, b, t)
    norm = math.hypot(nx, ny)
    if norm > 1e-12:
        nx /= norm
        ny /= norm
    else:
        nx, ny = seg_dy / seg_len, -seg_dx / seg_len
    foot_x = rel_x - along * seg_dx / seg_len
    foot_y = rel_y - along * seg_dy / seg_len
    # The foot offset is perpendicular to the segment; project it on the normal.
    d = foot_x * nx + foot_y * ny

    return float(wrap_s(s, waypoint_map.max_s)), float(d)
