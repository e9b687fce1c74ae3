import sys
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

import pytest

repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from face.config import FaceConfig
from schemas import BoundingBox, DetectedFace, LandmarkKind, Point2D

REFERENCE_LANDMARKS: Dict[LandmarkKind, Tuple[float, float]] = {
    LandmarkKind.LEFT_EYE: (100, 100),
    LandmarkKind.RIGHT_EYE: (200, 100),
    LandmarkKind.NOSE_BASE: (150, 140),
    LandmarkKind.LEFT_MOUTH: (120, 180),
    LandmarkKind.RIGHT_MOUTH: (180, 180),
}


def build_face(
    landmarks: Optional[Dict[LandmarkKind, Tuple[float, float]]] = None,
    bbox: Tuple[float, float] = (300, 300),
    yaw: Optional[float] = 0.0,
    roll: Optional[float] = 0.0,
    left_eye_open: Optional[float] = 0.9,
    right_eye_open: Optional[float] = 0.9,
    drop: Iterable[LandmarkKind] = (),
    offset: Tuple[float, float] = (0.0, 0.0),
    scale: float = 1.0,
) -> DetectedFace:
    raw = dict(REFERENCE_LANDMARKS if landmarks is None else landmarks)
    for kind in drop:
        raw.pop(kind, None)

    points = {
        kind: Point2D(x, y).scaled(scale).translated(*offset)
        for kind, (x, y) in raw.items()
    }
    return DetectedFace(
        landmarks=points,
        bounding_box=BoundingBox(*bbox),
        head_euler_angle_y=yaw,
        head_euler_angle_z=roll,
        left_eye_open_probability=left_eye_open,
        right_eye_open_probability=right_eye_open,
    )


@pytest.fixture
def make_face():
    """Factory for DetectedFace built around the reference landmark layout."""
    return build_face


@pytest.fixture
def reference_face():
    return build_face()


@pytest.fixture
def test_config():
    return FaceConfig()
