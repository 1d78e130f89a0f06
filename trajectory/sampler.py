"""
Resample the fitted curve into trajectory points at the commanded speed.

The curve is linearized over [0, Dx]: its arc length is approximated by the
chord L = sqrt(Dx^2 + f(Dx)^2), and the x axis is cut into equal steps so
that each step covers tick * speed meters of chord. The lateral speed error
this introduces grows with the curve's curvature over a step and is kept on
purpose; it defines the vehicle's acceleration profile.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .curve_fit import LocalCurve
from .utils import chord_length

DEFAULT_TICK_SECONDS = 0.02


@dataclass(frozen=True)
class SampledPath:
    """Local-frame samples and the stepping that produced them."""
    points: np.ndarray  # (N, 2) local (x, y)
    x_step: float
    chord_length: float


def compute_x_step(curve: LocalCurve, target_x: float, speed: float,
                   tick: float = DEFAULT_TICK_SECONDS) -> tuple[float, float]:
    """
    Return (x_step, chord_length) for one control tick at `speed`.

    N = L / (tick * speed) equal steps cover the chord, so the step in x is
    target_x / N. Written without the division by speed so a stationary
    command yields a zero step.
    """
    target_y = curve.evaluate(target_x)
    target_dist = chord_length(target_x, target_y)
    if target_dist <= 0.0 or speed <= 0.0:
        return 0.0, target_dist
    return float(target_x * tick * speed / target_dist), target_dist


def sample_path(curve: LocalCurve, count: int, target_x: float, speed: float,
                tick: float = DEFAULT_TICK_SECONDS) -> SampledPath:
    """
    Walk the curve from the local origin and emit `count` points.

    Args:
        curve: Fitted local curve
        count: Number of new points to generate (<= 0 yields none)
        target_x: Linearization distance along local x (meters)
        speed: Commanded speed (m/s)
        tick: Control tick (seconds per trajectory point)

    Returns:
        SampledPath with local-frame points
    """
    x_step, target_dist = compute_x_step(curve, target_x, speed, tick)
    count = max(0, int(count))
    if count == 0:
        return SampledPath(points=np.zeros((0, 2), dtype=float), x_step=x_step, chord_length=target_dist)

    x_points = x_step * np.arange(1, count + 1, dtype=float)
    y_points = np.asarray(curve.evaluate(x_points), dtype=float)
    return SampledPath(
        points=np.column_stack((x_points, y_points)),
        x_step=x_step,
        chord_length=target_dist,
    )
