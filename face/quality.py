from __future__ import annotations

import logging
from typing import Optional

from schemas import REQUIRED_LANDMARKS, DetectedFace, QualityVerdict

from .config import FaceQualityConfig

logger = logging.getLogger(__name__)


class QualityReason:
    """Quality gate rejection reasons."""

    INSUFFICIENT_LANDMARKS = "insufficient landmarks"
    YAW_TOO_LARGE = "yaw too large"
    ROLL_TOO_LARGE = "roll too large"
    EYES_NOT_OPEN = "eye(s) not open"
    FACE_TOO_SMALL = "face too small"


_DEFAULT_QUALITY = FaceQualityConfig()


def assess_quality(
    face: DetectedFace,
    cfg: Optional[FaceQualityConfig] = None,
) -> QualityVerdict:
    """
    Decide whether a detected face can support geometric comparison.

    Checks, in order:
      - all required landmarks present,
      - |yaw| and |roll| within limits (only when reported),
      - both eyes open enough (only when reported),
      - bounding box large enough.

    A NaN pose angle or probability fails its check.

    Pure function of its input; the face is never modified.
    """
    cfg = cfg or _DEFAULT_QUALITY

    found = face.count_present(REQUIRED_LANDMARKS)
    if found < cfg.min_landmarks:
        missing = [k.value for k in REQUIRED_LANDMARKS if not face.has_landmark(k)]
        logger.debug("Not enough landmarks: %d < %d (missing: %s)", found, cfg.min_landmarks, missing)
        return QualityVerdict(False, QualityReason.INSUFFICIENT_LANDMARKS)

    yaw = face.head_euler_angle_y
    if yaw is not None and not abs(yaw) <= cfg.max_yaw_deg:
        logger.debug("Head yaw too large: %.1f deg", yaw)
        return QualityVerdict(False, QualityReason.YAW_TOO_LARGE)

    roll = face.head_euler_angle_z
    if roll is not None and not abs(roll) <= cfg.max_roll_deg:
        logger.debug("Head roll too large: %.1f deg", roll)
        return QualityVerdict(False, QualityReason.ROLL_TOO_LARGE)

    left_open = face.left_eye_open_probability
    right_open = face.right_eye_open_probability
    if (left_open is not None and not left_open >= cfg.min_eye_open_probability) or (
        right_open is not None and not right_open >= cfg.min_eye_open_probability
    ):
        logger.debug("Eye(s) not open enough: left=%s right=%s", left_open, right_open)
        return QualityVerdict(False, QualityReason.EYES_NOT_OPEN)

    box = face.bounding_box
    if not (box.width >= cfg.min_face_size_px and box.height >= cfg.min_face_size_px):
        logger.debug("Face too small in frame: %gx%g", box.width, box.height)
        return QualityVerdict(False, QualityReason.FACE_TOO_SMALL)

    return QualityVerdict(True, None)


def is_face_too_close(
    face: DetectedFace,
    cfg: Optional[FaceQualityConfig] = None,
) -> bool:
    """
    Hard "too close to the camera" check used by the capture layer.
    """
    cfg = cfg or _DEFAULT_QUALITY
    box = face.bounding_box
    if box.width > cfg.too_close_px or box.height > cfg.too_close_px:
        logger.debug("Face too close to camera: %gx%g", box.width, box.height)
        return True
    return False


def is_face_potentially_close(
    face: DetectedFace,
    cfg: Optional[FaceQualityConfig] = None,
) -> bool:
    """
    Looser closeness heuristic. Only tightens the acceptance threshold.
    """
    cfg = cfg or _DEFAULT_QUALITY
    box = face.bounding_box

    if box.width > cfg.potentially_close_px or box.height > cfg.potentially_close_px:
        return True

    return box.area > cfg.potentially_close_area_px2
