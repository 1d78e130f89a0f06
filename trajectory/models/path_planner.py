"""
Per-cycle highway path planner.

Takes the vehicle pose and the unconsumed tail of the previous trajectory and
extends it with points sampled from a spline that runs into the target lane.
"""

from __future__ import annotations

import logging
import math
import numbers
from dataclasses import dataclass, field, fields, replace
from typing import Any, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from control.velocity_ramp import VelocityRamp, VelocityRampConfig
from mapping.waypoint_map import WaypointMap

from ..anchors import AnchorSet, PlannerMode, select_anchors
from ..curve_fit import fit_local_curve
from ..errors import MalformedInputError
from ..sampler import DEFAULT_TICK_SECONDS, sample_path
from ..utils import Point, lane_center_d, to_global, to_local

logger = logging.getLogger(__name__)


@dataclass
class PlannerConfig:
    """Geometry and timing of the generated trajectory."""

    target_length: int = 100  # points per trajectory
    tick_seconds: float = DEFAULT_TICK_SECONDS  # time between trajectory points
    forward_offsets: Tuple[float, ...] = (60.0, 90.0, 120.0)  # meters of s ahead of the vehicle
    lane_width: float = 4.0  # meters
    linearization_distance: Optional[float] = None  # defaults to the first forward offset

    def __post_init__(self) -> None:
        self.target_length = int(self.target_length)
        self.forward_offsets = tuple(float(offset) for offset in self.forward_offsets)
        if self.target_length < 0:
            raise ValueError(f"target_length must be >= 0, got {self.target_length}")
        if self.tick_seconds <= 0.0:
            raise ValueError(f"tick_seconds must be > 0, got {self.tick_seconds}")
        if not self.forward_offsets or any(o <= 0.0 for o in self.forward_offsets):
            raise ValueError(f"forward_offsets must be positive, got {self.forward_offsets}")
        if any(b <= a for a, b in zip(self.forward_offsets, self.forward_offsets[1:])):
            raise ValueError(f"forward_offsets must be increasing, got {self.forward_offsets}")
        if self.lane_width <= 0.0:
            raise ValueError(f"lane_width must be > 0, got {self.lane_width}")
        if self.linearization_distance is not None and not self.linearization_distance > 0.0:
            raise ValueError(f"linearization_distance must be > 0, got {self.linearization_distance}")

    @property
    def target_x(self) -> float:
        if self.linearization_distance is not None:
            return float(self.linearization_distance)
        return self.forward_offsets[0]

    @classmethod
    def from_dict(cls, config: Optional[Mapping[str, Any]]) -> "PlannerConfig":
        config = dict(config or {})
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in config.items() if key in known})


@dataclass(frozen=True)
class VehiclePose:
    """Vehicle localization for one cycle."""
    x: float
    y: float
    s: float
    d: float
    yaw: float  # radians
    speed: float  # m/s


@dataclass(frozen=True)
class PlannerPolicy:
    """Externally chosen lane and speed ceiling."""
    target_lane: int = 1  # 0 = innermost lane
    speed_ceiling: float = 20.0  # m/s


@dataclass(frozen=True)
class PlannerState:
    """Per-session state carried from one cycle to the next."""
    speed: float = 0.0  # commanded speed, m/s
    cycle: int = 0


@dataclass
class CycleResult:
    """Output of one planning cycle."""
    trajectory: List[Point]
    state: PlannerState
    anchors: AnchorSet
    retained: int  # points copied from the previous path
    generated: int  # newly sampled points
    x_step: float = 0.0
    local_anchors: np.ndarray = field(default_factory=lambda: np.zeros((0, 2)))

    @property
    def mode(self) -> PlannerMode:
        return self.anchors.mode

    @property
    def next_x(self) -> List[float]:
        return [p[0] for p in self.trajectory]

    @property
    def next_y(self) -> List[float]:
        return [p[1] for p in self.trajectory]


def _validate_pose(pose: VehiclePose) -> None:
    if pose is None:
        raise MalformedInputError("Missing vehicle pose")
    for name in ("x", "y", "s", "d", "yaw", "speed"):
        value = getattr(pose, name, None)
        if not isinstance(value, numbers.Real) or not math.isfinite(value):
            raise MalformedInputError(f"Invalid pose field {name}={value!r}")


def _validate_previous_path(previous_path: Optional[Sequence[Sequence[float]]]) -> List[Point]:
    if previous_path is None:
        return []
    points: List[Point] = []
    for i, point in enumerate(previous_path):
        try:
            x, y = point
            x, y = float(x), float(y)
        except (TypeError, ValueError) as e:
            raise MalformedInputError(f"Invalid previous path point {i}: {point!r}") from e
        if not (math.isfinite(x) and math.isfinite(y)):
            raise MalformedInputError(f"Non-finite previous path point {i}: ({x}, {y})")
        points.append((x, y))
    return points


def _validate_policy(policy: PlannerPolicy) -> None:
    if not isinstance(policy.target_lane, (int, np.integer)) or policy.target_lane < 0:
        raise MalformedInputError(f"Invalid target lane {policy.target_lane!r}")
    ceiling = policy.speed_ceiling
    if not isinstance(ceiling, numbers.Real) or not math.isfinite(ceiling) or ceiling < 0.0:
        raise MalformedInputError(f"Invalid speed ceiling {ceiling!r}")


class PathPlanner:
    """
    Spline-based trajectory generator.

    Stateless apart from its configuration: every call takes a PlannerState
    and returns the next one, so one planner and one map can serve any number
    of vehicle sessions.
    """

    def __init__(self, waypoint_map: WaypointMap,
                 config: Optional[PlannerConfig] = None,
                 ramp_config: Optional[VelocityRampConfig] = None):
        """
        Initialize path planner.

        Args:
            waypoint_map: Shared read-only centerline map
            config: Trajectory geometry and timing
            ramp_config: Speed ramp step and default ceiling
        """
        self.waypoint_map = waypoint_map
        self.config = config or PlannerConfig()
        self.ramp = VelocityRamp(ramp_config or VelocityRampConfig())

    def initial_state(self) -> PlannerState:
        return PlannerState(speed=float(self.ramp.config.initial_speed), cycle=0)

    def plan_cycle(
        self,
        state: PlannerState,
        pose: VehiclePose,
        previous_path: Optional[Sequence[Sequence[float]]],
        policy: Optional[PlannerPolicy] = None,
    ) -> CycleResult:
        """
        Run one planning cycle.

        Args:
            state: State returned by the previous cycle
            pose: Current vehicle pose
            previous_path: Unconsumed global points of the last trajectory
            policy: Target lane and speed ceiling for this cycle

        Returns:
            CycleResult carrying the trajectory and the next state

        Raises:
            MalformedInputError: If pose, previous path or policy are invalid
            DegenerateFitError: If the anchors cannot be fitted
        """
        if policy is None:
            policy = PlannerPolicy(speed_ceiling=self.ramp.config.speed_ceiling)
        _validate_pose(pose)
        _validate_policy(policy)
        path = _validate_previous_path(previous_path)

        speed = self.ramp.step(state.speed, policy.speed_ceiling)
        next_state = replace(state, speed=speed, cycle=state.cycle + 1)

        target_d = lane_center_d(int(policy.target_lane), self.config.lane_width)
        anchors = select_anchors(pose, path, target_d, self.waypoint_map, self.config.forward_offsets)
        local_anchors = to_local(anchors.points, anchors.origin, anchors.heading)
        curve = fit_local_curve(local_anchors)

        count = max(0, self.config.target_length - len(path))
        sampled = sample_path(curve, count, self.config.target_x, speed, self.config.tick_seconds)
        new_points = to_global(sampled.points, anchors.origin, anchors.heading)

        trajectory = list(path)
        trajectory.extend((float(x), float(y)) for x, y in new_points)

        logger.debug(
            f"[PLANNER] cycle={next_state.cycle} mode={anchors.mode.value} lane={policy.target_lane} "
            f"speed={speed:.2f} retained={len(path)} generated={count} x_step={sampled.x_step:.4f}"
        )
        return CycleResult(
            trajectory=trajectory,
            state=next_state,
            anchors=anchors,
            retained=len(path),
            generated=count,
            x_step=sampled.x_step,
            local_anchors=local_anchors,
        )
