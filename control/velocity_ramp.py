"""
Commanded speed ramp.

The commanded speed climbs by a fixed step every planning cycle until it
reaches the ceiling set by the policy layer. There is no knowledge of traffic
here; the ceiling is trusted.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional

SPEED_EPSILON = 1e-9


@dataclass
class VelocityRampConfig:
    """Configuration for the per-cycle speed ramp."""

    ramp_step: float = 0.1  # m/s per cycle
    speed_ceiling: float = 20.0  # m/s
    initial_speed: float = 0.0  # m/s

    @classmethod
    def from_dict(cls, config: Optional[Mapping[str, Any]]) -> "VelocityRampConfig":
        config = config or {}
        known = {f.name for f in fields(cls)}
        return cls(**{key: float(value) for key, value in config.items() if key in known})


class VelocityRamp:
    """Steps a commanded speed toward a ceiling."""

    def __init__(self, config: VelocityRampConfig) -> None:
        if config.ramp_step < 0.0:
            raise ValueError(f"ramp_step must be >= 0, got {config.ramp_step}")
        self.config = config

    def step(self, speed: float, ceiling: Optional[float] = None) -> float:
        """Advance one cycle. A ceiling below the current speed clamps it down."""
        if ceiling is None:
            ceiling = self.config.speed_ceiling
        ceiling = max(0.0, float(ceiling))
        next_speed = max(0.0, float(speed) + self.config.ramp_step)
        # Snap onto the ceiling within accumulated rounding
        if next_speed >= ceiling - SPEED_EPSILON:
            return ceiling
        return float(next_speed)

    def cycles_to_ceiling(self, speed: float = 0.0, ceiling: Optional[float] = None) -> int:
        """Number of cycles needed to reach the ceiling from `speed`."""
        if ceiling is None:
            ceiling = self.config.speed_ceiling
        gap = float(ceiling) - float(speed)
        if gap <= 0.0:
            return 0
        if self.config.ramp_step <= 0.0:
            raise ValueError("Ceiling is unreachable with a zero ramp step")
        return int(math.ceil(gap / self.config.ramp_step))
