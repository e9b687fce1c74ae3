"""
Normalized geometric features compared between a reference and a probe face.

Each feature is one FeatureSpec row:

    name       : key used in similarities / weights / failed_features
    weight     : contribution to the weighted aggregate
    extractor  : FaceGeometry -> value (None if the face lacks the landmark)
    comparator : (reference_value, probe_value) -> similarity

All distances are divided by the face's own eye distance, so the
features are invariant to the face's scale in the image. Similarities
are NOT clamped here; see FaceMatchConfig.clamp_feature_similarity.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from schemas import DetectedFace, LandmarkKind, Point2D

from .config import FEATURE_NAMES, FaceMatchConfig
from .geometry import (
    DegenerateGeometryError,
    angle_at,
    angle_with_horizontal,
    distance,
    midpoint,
    require_scale,
    safe_ratio,
)

logger = logging.getLogger(__name__)

Extractor = Callable[["FaceGeometry"], Optional[float]]
Comparator = Callable[[float, float], float]


@dataclass(frozen=True)
class FaceGeometry:
    """
    Landmark points of one face plus its eye distance (the face's scale).

    Built only from faces that carry all required landmarks.
    """

    left_eye: Point2D
    right_eye: Point2D
    nose: Point2D
    left_mouth: Point2D
    right_mouth: Point2D
    bottom_mouth: Optional[Point2D]
    eye_distance: float

    @classmethod
    def from_face(cls, face: DetectedFace, min_eye_distance: float = 1e-6) -> "FaceGeometry":
        """
        Raises KeyError if a required landmark is missing and
        DegenerateGeometryError if the eyes coincide or any landmark
        coordinate is NaN / infinite.
        """
        lm = face.landmarks
        for kind, p in lm.items():
            if not (math.isfinite(p.x) and math.isfinite(p.y)):
                raise DegenerateGeometryError(f"non-finite {kind.value} landmark: ({p.x!r}, {p.y!r})")

        left_eye = lm[LandmarkKind.LEFT_EYE]
        right_eye = lm[LandmarkKind.RIGHT_EYE]
        return cls(
            left_eye=left_eye,
            right_eye=right_eye,
            nose=lm[LandmarkKind.NOSE_BASE],
            left_mouth=lm[LandmarkKind.LEFT_MOUTH],
            right_mouth=lm[LandmarkKind.RIGHT_MOUTH],
            bottom_mouth=lm.get(LandmarkKind.BOTTOM_MOUTH),
            eye_distance=require_scale(distance(left_eye, right_eye), min_eye_distance),
        )

    def normalized(self, p1: Point2D, p2: Point2D) -> float:
        return distance(p1, p2) / self.eye_distance

    @property
    def eye_center(self) -> Point2D:
        return midpoint(self.left_eye, self.right_eye)

    @property
    def mouth_center(self) -> Point2D:
        return midpoint(self.left_mouth, self.right_mouth)


@dataclass(frozen=True)
class FeatureSpec:
    name: str
    weight: float
    extractor: Extractor
    comparator: Comparator


# ---------------------------------------------------------------------------
# Comparators
# ---------------------------------------------------------------------------


def plain_difference() -> Comparator:
    def compare(ref: float, probe: float) -> float:
        return 1.0 - abs(probe - ref)

    return compare


def capped_difference(cap: float) -> Comparator:
    def compare(ref: float, probe: float) -> float:
        return 1.0 - min(abs(probe - ref), cap)

    return compare


def scale_ratio(cap: float) -> Comparator:
    """Compares two lengths by their ratio (probe / reference)."""

    def compare(ref: float, probe: float) -> float:
        return 1.0 - min(abs(safe_ratio(probe, ref) - 1.0), cap)

    return compare


def soft_angle_penalty(threshold_deg: float, penalty: float = 0.5) -> Comparator:
    """
    1 - diff/180, or a flat `penalty` when the angles differ by more than
    threshold_deg.
    """

    def compare(ref: float, probe: float) -> float:
        diff = abs(probe - ref)
        if diff > threshold_deg:
            return penalty
        return 1.0 - diff / 180.0

    return compare


def scaled_angle(scale_deg: float, cap: float) -> Comparator:
    def compare(ref: float, probe: float) -> float:
        return 1.0 - min(abs(probe - ref) / scale_deg, cap)

    return compare


# ---------------------------------------------------------------------------
# Extractors
# ---------------------------------------------------------------------------


def _nose_to_bottom_mouth(g: FaceGeometry) -> Optional[float]:
    if g.bottom_mouth is None:
        return None
    return g.normalized(g.nose, g.bottom_mouth)


def _eye_mouth_symmetry(g: FaceGeometry) -> float:
    return safe_ratio(distance(g.left_eye, g.left_mouth), distance(g.right_eye, g.right_mouth))


_EXTRACTORS: Dict[str, Extractor] = {
    "left_eye_to_nose_ratio": lambda g: g.normalized(g.left_eye, g.nose),
    "right_eye_to_nose_ratio": lambda g: g.normalized(g.right_eye, g.nose),
    "eye_to_eye_ratio": lambda g: g.eye_distance,
    "eye_nose_eye_angle": lambda g: angle_at(g.left_eye, g.nose, g.right_eye),
    "left_eye_angle": lambda g: angle_with_horizontal(g.left_eye, g.right_eye),
    "mouth_width_ratio": lambda g: g.normalized(g.left_mouth, g.right_mouth),
    "eye_to_mouth_ratio": lambda g: g.normalized(g.eye_center, g.mouth_center),
    "nose_to_mouth_ratio": _nose_to_bottom_mouth,
    "eye_mouth_symmetry_ratio": _eye_mouth_symmetry,
    "left_eye_to_right_mouth_ratio": lambda g: g.normalized(g.left_eye, g.right_mouth),
    "right_eye_to_left_mouth_ratio": lambda g: g.normalized(g.right_eye, g.left_mouth),
}


def build_feature_table(cfg: FaceMatchConfig) -> Tuple[FeatureSpec, ...]:
    """
    Materialize the feature table with the weights and angle threshold
    from cfg. Order is stable (FEATURE_NAMES order).
    """
    comparators: Dict[str, Comparator] = {
        "left_eye_to_nose_ratio": plain_difference(),
        "right_eye_to_nose_ratio": plain_difference(),
        "eye_to_eye_ratio": scale_ratio(0.3),
        "eye_nose_eye_angle": soft_angle_penalty(cfg.angle_threshold_deg),
        "left_eye_angle": scaled_angle(90.0, 0.5),
        "mouth_width_ratio": capped_difference(0.3),
        "eye_to_mouth_ratio": capped_difference(0.3),
        "nose_to_mouth_ratio": capped_difference(0.3),
        "eye_mouth_symmetry_ratio": capped_difference(0.5),
        "left_eye_to_right_mouth_ratio": capped_difference(0.3),
        "right_eye_to_left_mouth_ratio": capped_difference(0.3),
    }

    return tuple(
        FeatureSpec(
            name=name,
            weight=float(cfg.weights.get(name, 1.0)),
            extractor=_EXTRACTORS[name],
            comparator=comparators[name],
        )
        for name in FEATURE_NAMES
    )


def compute_similarities(
    reference: FaceGeometry,
    probe: FaceGeometry,
    table: Tuple[FeatureSpec, ...],
) -> Dict[str, float]:
    """
    Evaluate every feature available on both faces.

    Features whose extractor returns None on either face are left out.
    NaN similarities are kept; the aggregation step skips them.
    """
    similarities: Dict[str, float] = {}
    for spec in table:
        ref_value = spec.extractor(reference)
        probe_value = spec.extractor(probe)
        if ref_value is None or probe_value is None:
            continue
        similarities[spec.name] = float(spec.comparator(ref_value, probe_value))
    return similarities
