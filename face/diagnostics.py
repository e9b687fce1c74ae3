from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from schemas import DetectedFace, LandmarkKind, MatchResult

logger = logging.getLogger(__name__)


@dataclass
class MatchDiagnostics:
    """
    Intermediate values of one reference/probe comparison.

    The matcher fills these in as it goes; as_details() turns them into
    the MatchResult.details mapping. Nothing here feeds back into the
    decision.

    Fields are left as None when the corresponding step was not reached
    (e.g. no eye_ratio after a yaw fast-reject), so a reader can tell
    where the comparison stopped.
    """

    y_rotation_diff: Optional[float] = None
    z_rotation_diff: Optional[float] = None
    eye_ratio: Optional[float] = None

    similarities: Dict[str, float] = field(default_factory=dict)
    failed_features: Set[str] = field(default_factory=set)
    valid_features: Optional[int] = None
    weighted_score: Optional[float] = None

    effective_threshold: Optional[float] = None
    left_eye_open_diff: Optional[float] = None
    right_eye_open_diff: Optional[float] = None

    decision: Optional[str] = None
    error: Optional[str] = None

    def as_details(self) -> Dict[str, Any]:
        details: Dict[str, Any] = {
            "similarities": dict(self.similarities),
            "failed_features": sorted(self.failed_features),
        }
        optional = {
            "y_rotation_diff": self.y_rotation_diff,
            "z_rotation_diff": self.z_rotation_diff,
            "eye_ratio": self.eye_ratio,
            "valid_features": self.valid_features,
            "weighted_score": self.weighted_score,
            "effective_threshold": self.effective_threshold,
            "left_eye_open_diff": self.left_eye_open_diff,
            "right_eye_open_diff": self.right_eye_open_diff,
            "decision": self.decision,
            "error": self.error,
        }
        for key, value in optional.items():
            if value is not None:
                details[key] = value
        return details


def _append_scalar(parts: List[str], label: str, value: Any) -> None:
    """
    Append 'label=xx.xxx' to parts if value is a finite number.
    """
    try:
        v = float(value)
    except (TypeError, ValueError):
        return
    if math.isnan(v):
        return
    parts.append(f"{label}={v:.3f}")


def format_match_reason(result: MatchResult) -> str:
    """
    Produce a compact, human-readable fragment describing a match decision.

    Contract (prefix is stable):
      - ALWAYS starts with:
            "match={yes|no}:score={:.3f}:reason={REASON}"

      - Then, only when available:
            ":yaw_diff=..:roll_diff=..:eye_ratio=..:thr=..:valid=N:failed=a,b"

    Callers must treat the returned string as opaque.
    """
    d = result.details or {}
    parts: List[str] = [
        f"match={'yes' if result.is_match else 'no'}",
        f"score={float(result.similarity_score):.3f}",
        f"reason={result.reason or 'unknown'}",
    ]

    _append_scalar(parts, "yaw_diff", d.get("y_rotation_diff"))
    _append_scalar(parts, "roll_diff", d.get("z_rotation_diff"))
    _append_scalar(parts, "eye_ratio", d.get("eye_ratio"))
    _append_scalar(parts, "weighted", d.get("weighted_score"))
    _append_scalar(parts, "thr", d.get("effective_threshold"))

    valid = d.get("valid_features")
    if valid is not None:
        parts.append(f"valid={int(valid)}")

    failed = sorted(result.failed_features)
    if failed:
        parts.append("failed=" + ",".join(failed))

    return ":".join(parts)


def face_metrics(face: DetectedFace) -> Dict[str, Any]:
    """
    Flatten the pose, eye and landmark information of a face into a dict.
    """
    box = face.bounding_box
    landmarks: Dict[str, Optional[List[float]]] = {}
    for kind in LandmarkKind:
        p = face.landmark(kind)
        landmarks[kind.value] = None if p is None else [p.x, p.y]

    return {
        "head_euler_angle_y": face.head_euler_angle_y,
        "head_euler_angle_z": face.head_euler_angle_z,
        "left_eye_open_probability": face.left_eye_open_probability,
        "right_eye_open_probability": face.right_eye_open_probability,
        "landmarks_count": sum(1 for v in landmarks.values() if v is not None),
        "landmarks": landmarks,
        "bounding_box": [box.width, box.height],
        "face_area": box.area,
    }


def log_face_metrics(face: DetectedFace, label: str) -> None:
    """
    Dump face metrics at DEBUG level (pose, eyes, every landmark, bbox).
    """
    if not logger.isEnabledFor(logging.DEBUG):
        return

    m = face_metrics(face)
    logger.debug(
        "%s face | yaw=%s roll=%s | eye_open L=%s R=%s | landmarks=%d | bbox=%gx%g area=%g",
        label,
        m["head_euler_angle_y"],
        m["head_euler_angle_z"],
        m["left_eye_open_probability"],
        m["right_eye_open_probability"],
        m["landmarks_count"],
        m["bounding_box"][0],
        m["bounding_box"][1],
        m["face_area"],
    )
    for name, point in m["landmarks"].items():
        if point is None:
            logger.debug("%s face | landmark %s: not detected", label, name)
        else:
            logger.debug("%s face | landmark %s: (%g, %g)", label, name, point[0], point[1])
