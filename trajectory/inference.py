"""
Trajectory planning session for a single vehicle.
"""

from typing import List, Optional, Sequence
import logging

from .errors import PlannerError
from .models.path_planner import (
    CycleResult, PathPlanner, PlannerPolicy, PlannerState, VehiclePose
)

logger = logging.getLogger(__name__)


class TrajectoryPlanningInference:
    """Owns one vehicle's planner state and policy across cycles."""

    def __init__(self, planner: PathPlanner, policy: Optional[PlannerPolicy] = None,
                 recorder=None, session_id: str = "default"):
        """
        Initialize planning session.

        Args:
            planner: Shared path planner (map + configuration)
            policy: Initial target lane and speed ceiling
            recorder: Optional CycleRecorder receiving every completed cycle
            session_id: Label used in log messages
        """
        self.planner = planner
        self.policy = policy or PlannerPolicy(speed_ceiling=planner.ramp.config.speed_ceiling)
        self.recorder = recorder
        self.session_id = session_id
        self.state: PlannerState = planner.initial_state()
        self.last_result: Optional[CycleResult] = None
        self.skipped_cycles = 0

    def set_policy(self, target_lane: Optional[int] = None,
                   speed_ceiling: Optional[float] = None) -> PlannerPolicy:
        """Update the externally supplied lane and speed ceiling."""
        self.policy = PlannerPolicy(
            target_lane=self.policy.target_lane if target_lane is None else target_lane,
            speed_ceiling=self.policy.speed_ceiling if speed_ceiling is None else speed_ceiling,
        )
        logger.info(
            f"[SESSION {self.session_id}] Policy: lane={self.policy.target_lane} "
            f"ceiling={self.policy.speed_ceiling:.2f} m/s"
        )
        return self.policy

    def reset(self) -> None:
        """Drop the speed ramp back to its initial state."""
        self.state = self.planner.initial_state()
        self.last_result = None

    def plan(self, pose: VehiclePose,
             previous_path: Sequence[Sequence[float]]) -> Optional[List]:
        """
        Plan one cycle.

        Returns:
            Trajectory as a list of (x, y), or None if the cycle was skipped.
            A skipped cycle keeps the prior state; the vehicle keeps driving
            whatever is left of its previous path.
        """
        try:
            result = self.planner.plan_cycle(self.state, pose, previous_path, self.policy)
        except PlannerError as e:
            self.skipped_cycles += 1
            logger.warning(
                f"[SESSION {self.session_id}] Skipping cycle {self.state.cycle + 1}: "
                f"{type(e).__name__}: {e}"
            )
            return None

        self.state = result.state
        self.last_result = result
        if self.recorder is not None:
            self.recorder.record_cycle(pose, result)
        return result.trajectory
