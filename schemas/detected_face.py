from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)


class FaceInputError(ValueError):
    """Malformed detector payload (bad landmark, coordinate, bbox or probability)."""


class LandmarkKind(str, Enum):
    """
    Named anatomical points reported by the face detector.

    Values are strings so they are easy to log and to read back from
    JSON / YAML detector dumps.
    """

    LEFT_EYE = "left_eye"
    RIGHT_EYE = "right_eye"
    NOSE_BASE = "nose_base"
    LEFT_MOUTH = "left_mouth"
    RIGHT_MOUTH = "right_mouth"
    BOTTOM_MOUTH = "bottom_mouth"
    LEFT_CHEEK = "left_cheek"
    RIGHT_CHEEK = "right_cheek"


REQUIRED_LANDMARKS: Tuple[LandmarkKind, ...] = (
    LandmarkKind.LEFT_EYE,
    LandmarkKind.RIGHT_EYE,
    LandmarkKind.NOSE_BASE,
    LandmarkKind.LEFT_MOUTH,
    LandmarkKind.RIGHT_MOUTH,
)


def landmark_from_hint(hint: Any) -> LandmarkKind:
    """
    Map "left_eye", "LEFT_EYE", "leftEye" or a LandmarkKind to a LandmarkKind.

    Raises FaceInputError for anything else.
    """
    if isinstance(hint, LandmarkKind):
        return hint

    if not isinstance(hint, str) or not hint.strip():
        raise FaceInputError(f"Invalid landmark kind: {hint!r}")

    s = hint.strip()
    # camelCase -> snake_case
    snake = "".join("_" + c.lower() if c.isupper() else c for c in s).lstrip("_")
    for candidate in (s.lower(), snake):
        for kind in LandmarkKind:
            if candidate == kind.value:
                return kind

    raise FaceInputError(f"Unknown landmark kind: {hint!r}")


@dataclass(frozen=True)
class Point2D:
    """Pixel coordinate in the detector's image space."""

    x: float
    y: float

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y], dtype=np.float64)

    def translated(self, dx: float, dy: float) -> "Point2D":
        return Point2D(self.x + dx, self.y + dy)

    def scaled(self, k: float) -> "Point2D":
        return Point2D(self.x * k, self.y * k)


@dataclass(frozen=True)
class BoundingBox:
    width: float
    height: float

    @property
    def area(self) -> float:
        return float(self.width) * float(self.height)


def _parse_point(raw: Any) -> Point2D:
    if isinstance(raw, Point2D):
        return raw
    if isinstance(raw, Mapping):
        x, y = raw.get("x"), raw.get("y")
    elif isinstance(raw, (list, tuple)) and len(raw) == 2:
        x, y = raw
    else:
        raise FaceInputError(f"Invalid point: {raw!r}")

    try:
        point = Point2D(float(x), float(y))
    except (TypeError, ValueError) as exc:
        raise FaceInputError(f"Invalid point coordinates: {raw!r}") from exc
    if not (math.isfinite(point.x) and math.isfinite(point.y)):
        raise FaceInputError(f"Point coordinates must be finite: {raw!r}")
    return point


def _parse_optional_float(raw: Any, name: str) -> Optional[float]:
    if raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise FaceInputError(f"Invalid value for {name}: {raw!r}") from exc
    if not math.isfinite(value):
        raise FaceInputError(f"{name} must be finite, got {raw!r}")
    return value


def _parse_probability(raw: Any, name: str) -> Optional[float]:
    p = _parse_optional_float(raw, name)
    if p is None:
        return None
    if p < 0.0 or p > 1.0:
        raise FaceInputError(f"{name} must be within [0, 1], got {p}")
    return p


@dataclass(frozen=True)
class DetectedFace:
    """
    One face as reported by the external detector.

    Fields
    ------
    landmarks : Dict[LandmarkKind, Point2D]
        Resolved landmarks only. A kind missing from the mapping means
        the detector could not place it.
    bounding_box : BoundingBox
        Face box size in pixels (same coordinate space as the landmarks).
    head_euler_angle_y, head_euler_angle_z : Optional[float]
        Yaw and roll in degrees, if the detector reported them.
    left_eye_open_probability, right_eye_open_probability : Optional[float]
        Classification probabilities in [0, 1], if available.

    Instances are never mutated by the quality gate or the matcher.
    """

    landmarks: Dict[LandmarkKind, Point2D]
    bounding_box: BoundingBox
    head_euler_angle_y: Optional[float] = None
    head_euler_angle_z: Optional[float] = None
    left_eye_open_probability: Optional[float] = None
    right_eye_open_probability: Optional[float] = None

    def landmark(self, kind: LandmarkKind) -> Optional[Point2D]:
        return self.landmarks.get(kind)

    def has_landmark(self, kind: LandmarkKind) -> bool:
        return self.landmarks.get(kind) is not None

    def count_present(self, kinds=REQUIRED_LANDMARKS) -> int:
        return sum(1 for k in kinds if self.has_landmark(k))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DetectedFace":
        """
        Build a DetectedFace from a JSON / YAML style mapping.

        Example
        -------
            {
              "landmarks": {"left_eye": [100, 100], "right_eye": {"x": 200, "y": 100}, ...},
              "bounding_box": {"width": 300, "height": 320},
              "head_euler_angle_y": 2.5,
              "left_eye_open_probability": 0.93
            }

        Landmarks with a null position are treated as not detected.
        """
        if not isinstance(data, Mapping):
            raise FaceInputError(f"Face payload must be a mapping, got {type(data).__name__}")

        raw_landmarks = data.get("landmarks") or {}
        if not isinstance(raw_landmarks, Mapping):
            raise FaceInputError("'landmarks' must be a mapping of kind -> point")

        landmarks: Dict[LandmarkKind, Point2D] = {}
        for key, raw_point in raw_landmarks.items():
            kind = landmark_from_hint(key)
            if raw_point is None:
                continue
            landmarks[kind] = _parse_point(raw_point)

        raw_box = data.get("bounding_box")
        if raw_box is None:
            raw_box = data.get("boundingBox")
        if isinstance(raw_box, Mapping):
            try:
                box = BoundingBox(float(raw_box["width"]), float(raw_box["height"]))
            except (KeyError, TypeError, ValueError) as exc:
                raise FaceInputError(f"Invalid bounding box: {raw_box!r}") from exc
        elif isinstance(raw_box, (list, tuple)) and len(raw_box) == 2:
            try:
                box = BoundingBox(float(raw_box[0]), float(raw_box[1]))
            except (TypeError, ValueError) as exc:
                raise FaceInputError(f"Invalid bounding box: {raw_box!r}") from exc
        else:
            raise FaceInputError("Face payload is missing 'bounding_box'")
        if not (math.isfinite(box.width) and math.isfinite(box.height)):
            raise FaceInputError(f"Bounding box must be finite: {raw_box!r}")

        return cls(
            landmarks=landmarks,
            bounding_box=box,
            head_euler_angle_y=_parse_optional_float(data.get("head_euler_angle_y"), "head_euler_angle_y"),
            head_euler_angle_z=_parse_optional_float(data.get("head_euler_angle_z"), "head_euler_angle_z"),
            left_eye_open_probability=_parse_probability(
                data.get("left_eye_open_probability"), "left_eye_open_probability"
            ),
            right_eye_open_probability=_parse_probability(
                data.get("right_eye_open_probability"), "right_eye_open_probability"
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "landmarks": {k.value: [p.x, p.y] for k, p in self.landmarks.items()},
            "bounding_box": {"width": self.bounding_box.width, "height": self.bounding_box.height},
            "head_euler_angle_y": self.head_euler_angle_y,
            "head_euler_angle_z": self.head_euler_angle_z,
            "left_eye_open_probability": self.left_eye_open_probability,
            "right_eye_open_probability": self.right_eye_open_probability,
        }
