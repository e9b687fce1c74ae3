"""
schemas/__init__.py
Central exports for the value types exchanged with the face core.

    from schemas import DetectedFace, LandmarkKind, Point2D, MatchResult, ...

This file should remain VERY lightweight (no heavy imports or model code).
"""

from .detected_face import (
    REQUIRED_LANDMARKS,
    BoundingBox,
    DetectedFace,
    FaceInputError,
    LandmarkKind,
    Point2D,
)
from .quality_verdict import QualityVerdict
from .match_result import MatchResult

__all__ = [
    "REQUIRED_LANDMARKS",
    "BoundingBox",
    "DetectedFace",
    "FaceInputError",
    "LandmarkKind",
    "Point2D",
    "QualityVerdict",
    "MatchResult",
]
