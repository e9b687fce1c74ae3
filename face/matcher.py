from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from schemas import REQUIRED_LANDMARKS, DetectedFace, MatchResult

from .config import FaceConfig, FaceMatchConfig
from .diagnostics import MatchDiagnostics, format_match_reason
from .features import FaceGeometry, FeatureSpec, build_feature_table, compute_similarities
from .geometry import DegenerateGeometryError
from .quality import is_face_potentially_close

logger = logging.getLogger(__name__)


class ReasonCode:
    """Matcher decision reason codes."""

    ACCEPT_HIGH_CONFIDENCE = "accept_high_confidence"
    ACCEPT_BORDERLINE = "accept_borderline"

    REJECT_MISSING_LANDMARKS = "missing_landmarks"
    REJECT_YAW_DIFF = "yaw_difference_too_large"
    REJECT_ROLL_DIFF = "roll_difference_too_large"
    REJECT_EYE_RATIO = "eye_ratio_out_of_range"
    REJECT_INSUFFICIENT_FEATURES = "insufficient_valid_features"
    REJECT_TOO_MANY_FAILED = "too_many_failed_features"
    REJECT_BELOW_THRESHOLD = "below_threshold"
    REJECT_BORDERLINE_CHECKS = "borderline_checks_failed"

    ERROR_DEGENERATE_GEOMETRY = "degenerate_geometry"


_GEOMETRY_FAULTS = (
    DegenerateGeometryError,
    ZeroDivisionError,
    ValueError,
    OverflowError,
    FloatingPointError,
)

_DEFAULT_CONFIG = FaceConfig()


@dataclass(frozen=True)
class Aggregate:
    """Outcome of the weighted aggregation over per-feature similarities."""

    score: float
    valid_features: int
    failed_features: FrozenSet[str]


def aggregate_similarities(
    similarities: Dict[str, float],
    weights: Dict[str, float],
    cfg: Optional[FaceMatchConfig] = None,
) -> Aggregate:
    """
    Weighted mean of the non-NaN similarities.

    Every similarity below cfg.feature_floor is reported as failed.
    Features without a configured weight count with weight 1.0.
    """
    cfg = cfg or _DEFAULT_CONFIG.match

    weighted_sum = 0.0
    total_weight = 0.0
    valid = 0
    failed = set()

    for name, value in similarities.items():
        if math.isnan(value):
            logger.debug("Skipping invalid measurement: %s = %s", name, value)
            continue

        if cfg.clamp_feature_similarity:
            value = max(0.0, min(1.0, value))

        if value < cfg.feature_floor:
            failed.add(name)
            logger.debug("Low similarity feature: %s = %.4f", name, value)

        weight = float(weights.get(name, 1.0))
        weighted_sum += value * weight
        total_weight += weight
        valid += 1

    score = weighted_sum / total_weight if total_weight > 0 else 0.0
    return Aggregate(score=score, valid_features=valid, failed_features=frozenset(failed))


def effective_threshold(probe: DetectedFace, cfg: Optional[FaceConfig] = None) -> float:
    """Base threshold, raised for faces that look close to the camera."""
    cfg = cfg or _DEFAULT_CONFIG
    if is_face_potentially_close(probe, cfg.quality):
        return cfg.match.similarity_threshold + cfg.match.close_face_threshold_bump
    return cfg.match.similarity_threshold


def _abs_diff(a: Optional[float], b: Optional[float]) -> Optional[float]:
    if a is None or b is None:
        return None
    return abs(a - b)


def decide(
    score: float,
    reference: DetectedFace,
    probe: DetectedFace,
    failed_features: Iterable[str],
    cfg: Optional[FaceConfig] = None,
    diag: Optional[MatchDiagnostics] = None,
) -> Tuple[bool, str]:
    """
    Two-tier acceptance policy.

      score <  threshold          -> reject
      score >= high confidence    -> accept
      otherwise (borderline band) -> accept only if the left eye openness
                                     is consistent and the eye-nose-eye
                                     angle did not fail

    Only the left eye is compared in the borderline band unless
    check_right_eye_consistency is enabled.
    """
    cfg = cfg or _DEFAULT_CONFIG
    m = cfg.match
    diag = diag if diag is not None else MatchDiagnostics()

    threshold = effective_threshold(probe, cfg)
    diag.effective_threshold = threshold
    diag.left_eye_open_diff = _abs_diff(
        reference.left_eye_open_probability, probe.left_eye_open_probability
    )
    diag.right_eye_open_diff = _abs_diff(
        reference.right_eye_open_probability, probe.right_eye_open_probability
    )

    if not score >= threshold:
        return False, ReasonCode.REJECT_BELOW_THRESHOLD

    if score >= m.high_confidence_threshold:
        return True, ReasonCode.ACCEPT_HIGH_CONFIDENCE

    eyes_consistent = True
    if diag.left_eye_open_diff is not None and not diag.left_eye_open_diff <= m.eye_open_consistency_max:
        logger.debug("Left eye openness inconsistent: %.3f", diag.left_eye_open_diff)
        eyes_consistent = False

    if (
        m.check_right_eye_consistency
        and diag.right_eye_open_diff is not None
        and not diag.right_eye_open_diff <= m.eye_open_consistency_max
    ):
        logger.debug("Right eye openness inconsistent: %.3f", diag.right_eye_open_diff)
        eyes_consistent = False

    angle_ok = "eye_nose_eye_angle" not in set(failed_features)

    if eyes_consistent and angle_ok:
        return True, ReasonCode.ACCEPT_BORDERLINE
    return False, ReasonCode.REJECT_BORDERLINE_CHECKS


def _reject(reason: str, diag: MatchDiagnostics) -> MatchResult:
    diag.decision = reason
    result = MatchResult.rejected(reason, diag.as_details())
    logger.info("Face comparison | %s", format_match_reason(result))
    return result


def match_faces(
    reference: DetectedFace,
    probe: DetectedFace,
    cfg: Optional[FaceConfig] = None,
) -> MatchResult:
    """
    Decide whether reference and probe show the same person.

    Steps
    -----
    1. Structural fast rejects (score 0.0, no similarities):
       missing required landmarks, yaw / roll difference above the angle
       threshold (when both faces report it), probe/reference eye
       distance ratio out of range.
    2. Per-feature similarities over eye-distance-normalized geometry.
    3. Weighted aggregation; reject when fewer than min_valid_features
       are usable or more than max_failed_features fell below the floor.
    4. Two-tier threshold decision (see decide()).

    Never raises for policy rejects. Arithmetic faults on degenerate
    geometry (coincident eyes, NaN or infinite coordinates) are caught and
    reported as a non-match with score 0.0. A NaN pose difference counts as
    too large.
    """
    cfg = cfg or _DEFAULT_CONFIG
    m = cfg.match
    diag = MatchDiagnostics()

    for kind in REQUIRED_LANDMARKS:
        if not reference.has_landmark(kind) or not probe.has_landmark(kind):
            logger.debug("Missing required landmark: %s", kind.value)
            return _reject(ReasonCode.REJECT_MISSING_LANDMARKS, diag)

    if reference.head_euler_angle_y is not None and probe.head_euler_angle_y is not None:
        diag.y_rotation_diff = abs(reference.head_euler_angle_y - probe.head_euler_angle_y)
        if not diag.y_rotation_diff <= m.angle_threshold_deg:
            logger.debug(
                "Head yaw difference too large: %.2f (threshold %.1f)",
                diag.y_rotation_diff,
                m.angle_threshold_deg,
            )
            return _reject(ReasonCode.REJECT_YAW_DIFF, diag)

    if reference.head_euler_angle_z is not None and probe.head_euler_angle_z is not None:
        diag.z_rotation_diff = abs(reference.head_euler_angle_z - probe.head_euler_angle_z)
        if not diag.z_rotation_diff <= m.angle_threshold_deg:
            logger.debug(
                "Head roll difference too large: %.2f (threshold %.1f)",
                diag.z_rotation_diff,
                m.angle_threshold_deg,
            )
            return _reject(ReasonCode.REJECT_ROLL_DIFF, diag)

    try:
        ref_geom = FaceGeometry.from_face(reference, m.min_eye_distance_px)
        probe_geom = FaceGeometry.from_face(probe, m.min_eye_distance_px)

        eye_ratio = probe_geom.eye_distance / ref_geom.eye_distance
        if not math.isfinite(eye_ratio):
            raise DegenerateGeometryError(f"non-finite eye ratio: {eye_ratio!r}")
        diag.eye_ratio = eye_ratio

        if eye_ratio < m.eye_ratio_min or eye_ratio > m.eye_ratio_max:
            logger.debug(
                "Eye distance ratio out of range: %.3f (accepted %.2f-%.2f)",
                eye_ratio,
                m.eye_ratio_min,
                m.eye_ratio_max,
            )
            return _reject(ReasonCode.REJECT_EYE_RATIO, diag)

        table: Tuple[FeatureSpec, ...] = build_feature_table(m)
        diag.similarities = compute_similarities(ref_geom, probe_geom, table)
        agg = aggregate_similarities(diag.similarities, m.weights, m)
        if not math.isfinite(agg.score):
            raise DegenerateGeometryError(f"non-finite aggregate score: {agg.score!r}")
    except _GEOMETRY_FAULTS as exc:
        logger.warning("Face comparison failed on degenerate geometry: %s", exc)
        diag.error = str(exc)
        return _reject(ReasonCode.ERROR_DEGENERATE_GEOMETRY, diag)

    diag.failed_features = set(agg.failed_features)
    diag.valid_features = agg.valid_features
    diag.weighted_score = agg.score

    if agg.valid_features < m.min_valid_features:
        logger.debug("Not enough valid facial measurements: %d < %d", agg.valid_features, m.min_valid_features)
        return _reject(ReasonCode.REJECT_INSUFFICIENT_FEATURES, diag)

    if len(agg.failed_features) > m.max_failed_features:
        logger.debug("Too many features with low similarity: %d", len(agg.failed_features))
        return _reject(ReasonCode.REJECT_TOO_MANY_FAILED, diag)

    is_match, reason = decide(agg.score, reference, probe, agg.failed_features, cfg, diag)
    diag.decision = reason

    result = MatchResult(
        is_match=is_match,
        similarity_score=agg.score,
        failed_features=agg.failed_features,
        details=diag.as_details(),
        reason=reason,
    )
    logger.info("Face comparison | %s", format_match_reason(result))
    return result
