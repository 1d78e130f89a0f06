"""
Error types raised by the planning pipeline.
"""


class PlannerError(Exception):
    """Base class for planning failures."""


class MalformedInputError(PlannerError):
    """Pose, previous path or policy input is missing or invalid.

    The cycle is skipped and the session keeps its prior state.
    """


class DegenerateFitError(PlannerError):
    """Anchor points cannot define a one-dimensional curve in the local frame."""
