"""
Smooth one-dimensional curve through the local anchor points.
"""

from __future__ import annotations

from typing import Sequence, Union

import numpy as np
from scipy.interpolate import CubicSpline

from .errors import DegenerateFitError


class LocalCurve:
    """y = f(x) in the vehicle-relative frame, a natural cubic spline."""

    def __init__(self, x: np.ndarray, y: np.ndarray):
        self.x = x
        self.y = y
        self._spline = CubicSpline(x, y, bc_type='natural', extrapolate=True)

    def evaluate(self, x: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
        values = self._spline(x)
        if np.ndim(values) == 0:
            return float(values)
        return values

    __call__ = evaluate

    def curvature(self, x: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
        """Signed curvature of the fitted curve at x (1/m)."""
        dy = self._spline(x, 1)
        ddy = self._spline(x, 2)
        kappa = ddy / np.power(1.0 + dy * dy, 1.5)
        if np.ndim(kappa) == 0:
            return float(kappa)
        return kappa


def fit_local_curve(points: Sequence[Sequence[float]]) -> LocalCurve:
    """
    Fit a curve through local anchor points.

    Raises:
        DegenerateFitError: If x is not strictly increasing, fewer than two
            distinct x values remain, or any coordinate is non-finite.
    """
    pts = np.asarray(points, dtype=float).reshape(-1, 2)
    if not np.all(np.isfinite(pts)):
        raise DegenerateFitError("Anchor points contain non-finite values")
    x = pts[:, 0]
    y = pts[:, 1]
    if len(np.unique(x)) < 2:
        raise DegenerateFitError(f"Need at least 2 distinct x values, got {len(np.unique(x))}")
    if np.any(np.diff(x) <= 0.0):
        raise DegenerateFitError(
            "Anchor x values must be strictly increasing in the local frame: "
            + ", ".join(f"{value:.3f}" for value in x)
        )
    return LocalCurve(x, y)
