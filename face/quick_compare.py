"""
Lightweight pairwise similarity for comparing two arbitrary face captures.

Unlike match_faces this uses only the eye/nose triangle and has no fast
rejects: a yaw mismatch only scales a good score down. It backs the
"compare two photos" tool, never the authentication decision.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Optional

from schemas import DetectedFace

from .config import FaceConfig
from .features import FaceGeometry, build_feature_table, compute_similarities

logger = logging.getLogger(__name__)

QUICK_FEATURES = (
    "left_eye_to_nose_ratio",
    "right_eye_to_nose_ratio",
    "eye_nose_eye_angle",
)

_DEFAULT_CONFIG = FaceConfig()


def quick_similarity(
    first: DetectedFace,
    second: DetectedFace,
    cfg: Optional[FaceConfig] = None,
) -> float:
    """
    Weighted eye/nose triangle similarity in [0, 1].

    Returns 0.0 for faces lacking the required landmarks or with
    degenerate geometry.
    """
    cfg = cfg or _DEFAULT_CONFIG

    try:
        g1 = FaceGeometry.from_face(first, cfg.match.min_eye_distance_px)
        g2 = FaceGeometry.from_face(second, cfg.match.min_eye_distance_px)
        table = tuple(s for s in build_feature_table(cfg.match) if s.name in QUICK_FEATURES)
        similarities = compute_similarities(g1, g2, table)
    except (KeyError, ArithmeticError, ValueError) as exc:
        logger.warning("Quick similarity failed: %s", exc)
        return 0.0

    weighted_sum = 0.0
    total_weight = 0.0
    for spec in table:
        value = similarities.get(spec.name, float("nan"))
        if math.isnan(value):
            continue
        weighted_sum += value * spec.weight
        total_weight += spec.weight

    score = weighted_sum / total_weight if total_weight > 0 else 0.0

    q = cfg.quick
    if score >= q.yaw_penalty_min_score:
        yaw1, yaw2 = first.head_euler_angle_y, second.head_euler_angle_y
        if yaw1 is not None and yaw2 is not None and abs(yaw1 - yaw2) > q.yaw_penalty_deg:
            logger.debug("Head yaw difference too large: %.2f", abs(yaw1 - yaw2))
            score *= q.yaw_penalty_factor

    return max(0.0, min(1.0, score))


def comparison_details(first: DetectedFace, second: DetectedFace) -> Dict[str, float]:
    """Pose and eye-openness differences, for whatever both faces report."""
    pairs = {
        "y_rotation_diff": (first.head_euler_angle_y, second.head_euler_angle_y),
        "z_rotation_diff": (first.head_euler_angle_z, second.head_euler_angle_z),
        "left_eye_open_diff": (first.left_eye_open_probability, second.left_eye_open_probability),
        "right_eye_open_diff": (first.right_eye_open_probability, second.right_eye_open_probability),
    }
    return {key: abs(a - b) for key, (a, b) in pairs.items() if a is not None and b is not None}


def compare_faces_quick(
    first: DetectedFace,
    second: DetectedFace,
    cfg: Optional[FaceConfig] = None,
) -> Dict[str, Any]:
    cfg = cfg or _DEFAULT_CONFIG
    score = quick_similarity(first, second, cfg)
    return {
        "is_match": score >= cfg.match.similarity_threshold,
        "similarity": score,
        "details": comparison_details(first, second),
    }
