"""
Planar geometry primitives over landmark points.

All angles are returned in degrees. Degenerate configurations either
raise DegenerateGeometryError (scale references) or yield NaN (single
features), never a silently wrong number.
"""

from __future__ import annotations

import math

import numpy as np

from schemas import Point2D


class DegenerateGeometryError(ArithmeticError):
    """Zero, near-zero or non-finite reference length."""


def distance(p1: Point2D, p2: Point2D) -> float:
    """Euclidean distance in pixels."""
    return float(np.linalg.norm(p1.as_array() - p2.as_array()))


def midpoint(p1: Point2D, p2: Point2D) -> Point2D:
    return Point2D((p1.x + p2.x) / 2.0, (p1.y + p2.y) / 2.0)


def angle_at(p1: Point2D, vertex: Point2D, p3: Point2D) -> float:
    """
    Angle p1-vertex-p3 at `vertex`, in degrees.

    Cosine is clamped to [-1, 1] before arccos. A zero-length ray gives NaN.
    """
    v1 = p1.as_array() - vertex.as_array()
    v2 = p3.as_array() - vertex.as_array()

    mag1 = float(np.linalg.norm(v1))
    mag2 = float(np.linalg.norm(v2))
    if mag1 == 0.0 or mag2 == 0.0:
        return float("nan")

    cos_angle = float(np.dot(v1, v2)) / (mag1 * mag2)
    cos_angle = float(np.clip(cos_angle, -1.0, 1.0))
    return float(np.degrees(np.arccos(cos_angle)))


def angle_with_horizontal(p1: Point2D, p2: Point2D) -> float:
    """Angle of the p1 -> p2 line against the x axis (atan2), in degrees."""
    dx = p2.x - p1.x
    dy = p2.y - p1.y
    return float(np.degrees(np.arctan2(dy, dx)))


def safe_ratio(num: float, den: float) -> float:
    """num / den, or NaN when den is zero or either side is not finite."""
    if den == 0.0 or not math.isfinite(den) or not math.isfinite(num):
        return float("nan")
    return num / den


def require_scale(length: float, min_length: float = 1e-6) -> float:
    """
    Validate a length used to normalize a whole face (eye distance).
    """
    if not math.isfinite(length) or length <= min_length:
        raise DegenerateGeometryError(f"degenerate scale length: {length!r}")
    return length
