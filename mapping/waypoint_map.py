"""
Highway waypoint map.

Centerline reference points with their longitudinal position along the track
and the lateral unit normal pointing away from the road center.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence, Union

import numpy as np

from trajectory.errors import PlannerError

logger = logging.getLogger(__name__)

# The max s value before wrapping around the track back to 0
DEFAULT_MAX_S = 6945.554


class MapLoadError(PlannerError):
    """Waypoint source is missing, malformed or empty."""


@dataclass(frozen=True)
class Waypoint:
    """Single centerline waypoint."""
    x: float
    y: float
    s: float  # meters along track
    dx: float  # lateral unit normal
    dy: float


class WaypointMap:
    """
    Immutable table of centerline waypoints ordered by s.

    Columns are exposed as read-only numpy arrays so one map can be shared by
    every planning session in the process.
    """

    def __init__(self, x: np.ndarray, y: np.ndarray, s: np.ndarray,
                 dx: np.ndarray, dy: np.ndarray, max_s: float = DEFAULT_MAX_S):
        columns = []
        for column in (x, y, s, dx, dy):
            array = np.array(column, dtype=float)
            array.setflags(write=False)
            columns.append(array)
        self._x, self._y, self._s, self._dx, self._dy = columns
        self._max_s = float(max_s)

    @property
    def x(self) -> np.ndarray:
        return self._x

    @property
    def y(self) -> np.ndarray:
        return self._y

    @property
    def s(self) -> np.ndarray:
        return self._s

    @property
    def dx(self) -> np.ndarray:
        return self._dx

    @property
    def dy(self) -> np.ndarray:
        return self._dy

    @property
    def max_s(self) -> float:
        """Track length; s values wrap back to 0 here."""
        return self._max_s

    def __len__(self) -> int:
        return len(self._s)

    def __getitem__(self, index: int) -> Waypoint:
        return Waypoint(
            x=float(self._x[index]),
            y=float(self._y[index]),
            s=float(self._s[index]),
            dx=float(self._dx[index]),
            dy=float(self._dy[index]),
        )

    def __repr__(self) -> str:
        return f"WaypointMap(waypoints={len(self)}, max_s={self._max_s:.3f})"


def load_waypoint_map(rows: Iterable[Sequence[float]], max_s: float = DEFAULT_MAX_S) -> WaypointMap:
    """
    Build a waypoint map from (x, y, s, dx, dy) rows.

    Args:
        rows: Waypoint rows ordered by s
        max_s: Track length used for wrap-around

    Returns:
        Immutable waypoint map

    Raises:
        MapLoadError: If rows are malformed, fewer than 2, or not ordered by s
    """
    try:
        table = np.array([[float(value) for value in row] for row in rows], dtype=float)
    except (TypeError, ValueError) as e:
        raise MapLoadError(f"Waypoint rows are not numeric: {e}") from e

    if table.ndim != 2 or table.shape[0] == 0:
        raise MapLoadError("Waypoint map is empty")
    if table.shape[1] != 5:
        raise MapLoadError(f"Expected 5 columns (x, y, s, dx, dy), got {table.shape[1]}")
    if table.shape[0] < 2:
        raise MapLoadError(f"Waypoint map needs at least 2 rows, got {table.shape[0]}")
    if not np.all(np.isfinite(table)):
        raise MapLoadError("Waypoint map contains non-finite values")

    x, y, s, dx, dy = table.T
    if np.any(np.diff(s) <= 0.0):
        raise MapLoadError("Waypoint s values must be strictly increasing")
    max_s = float(max_s)
    if not np.isfinite(max_s) or max_s <= s[-1]:
        raise MapLoadError(f"max_s={max_s} must exceed the last waypoint s={s[-1]:.3f}")

    return WaypointMap(x, y, s, dx, dy, max_s=max_s)


def load_waypoint_map_file(path: Union[str, Path], max_s: float = DEFAULT_MAX_S) -> WaypointMap:
    """Load a whitespace-separated `x y s dx dy` map file."""
    map_path = Path(path)
    if not map_path.exists():
        raise MapLoadError(f"Map file not found: {map_path}")

    rows = []
    with open(map_path, 'r') as f:
        for line_number, line in enumerate(f, start=1):
            fields = line.split()
            if not fields:
                continue
            if len(fields) != 5:
                raise MapLoadError(
                    f"{map_path}:{line_number}: expected 5 fields, got {len(fields)}"
                )
            rows.append(fields)

    waypoint_map = load_waypoint_map(rows, max_s=max_s)
    logger.info(f"Loaded {len(waypoint_map)} waypoints from {map_path} (max_s={waypoint_map.max_s:.3f})")
    return waypoint_map
