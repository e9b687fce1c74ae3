"""
face/config.py

Central configuration for the landmark-based face verification core.

This module does **not** run any computation; it only defines typed
configuration objects and a helper to build a FaceConfig, optionally
overlaid with the `face:` section of config/default.yaml.

Quality gate, matcher and verifier should **only** depend on these
dataclasses instead of hard-coding thresholds or weights.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


FEATURE_NAMES = (
    "left_eye_to_nose_ratio",
    "right_eye_to_nose_ratio",
    "eye_to_eye_ratio",
    "eye_nose_eye_angle",
    "left_eye_angle",
    "mouth_width_ratio",
    "eye_to_mouth_ratio",
    "nose_to_mouth_ratio",
    "eye_mouth_symmetry_ratio",
    "left_eye_to_right_mouth_ratio",
    "right_eye_to_left_mouth_ratio",
)


def default_feature_weights() -> Dict[str, float]:
    return {
        "left_eye_to_nose_ratio": 1.5,
        "right_eye_to_nose_ratio": 1.5,
        "eye_to_eye_ratio": 0.7,
        "eye_nose_eye_angle": 2.0,
        "left_eye_angle": 1.2,
        "mouth_width_ratio": 1.0,
        "eye_to_mouth_ratio": 1.8,
        "nose_to_mouth_ratio": 1.5,
        "eye_mouth_symmetry_ratio": 1.6,
        "left_eye_to_right_mouth_ratio": 1.4,
        "right_eye_to_left_mouth_ratio": 1.4,
    }


@dataclass
class FaceQualityConfig:
    """
    Thresholds of the quality gate and the close-face helpers.

    NOTE:
    - min_landmarks equals the size of the required landmark set, so
      every required landmark must be present.
    - too_close_px is a hard reject used by the capture layer.
    - potentially_close_px / potentially_close_area_px2 only tighten the
      matcher's acceptance threshold.
    """

    min_landmarks: int = 5

    max_yaw_deg: float = 15.0
    max_roll_deg: float = 15.0

    min_eye_open_probability: float = 0.6

    min_face_size_px: float = 150.0

    too_close_px: float = 900.0

    potentially_close_px: float = 800.0
    potentially_close_area_px2: float = 400_000.0


@dataclass
class FaceMatchConfig:
    """
    All numeric policy of the matcher.

    - angle_threshold_deg
        Max yaw / roll difference between the two faces (hard reject) and
        max eye-nose-eye angle difference before the 0.5 soft penalty.
    - eye_ratio_min / eye_ratio_max
        Accepted probe/reference eye-distance ratio.
    - feature_floor
        Features below this similarity are reported as failed.
    - similarity_threshold / close_face_threshold_bump / high_confidence_threshold
        Two-tier acceptance policy.
    - eye_open_consistency_max
        Borderline band: max |left eye-open difference|.
    - clamp_feature_similarity
        Clamp each similarity to [0, 1] before aggregation (off by default).
    - check_right_eye_consistency
        Borderline band: also require right eye-open consistency (off by default).
    """

    angle_threshold_deg: float = 8.0

    eye_ratio_min: float = 0.85
    eye_ratio_max: float = 1.15

    min_eye_distance_px: float = 1e-6

    feature_floor: float = 0.75
    max_failed_features: int = 3
    min_valid_features: int = 5

    similarity_threshold: float = 0.92
    close_face_threshold_bump: float = 0.02
    high_confidence_threshold: float = 0.95

    eye_open_consistency_max: float = 0.35

    clamp_feature_similarity: bool = False
    check_right_eye_consistency: bool = False

    weights: Dict[str, float] = field(default_factory=default_feature_weights)


@dataclass
class QuickCompareConfig:
    """Knobs of the lightweight three-feature pair comparison."""

    yaw_penalty_deg: float = 15.0
    yaw_penalty_factor: float = 0.9
    yaw_penalty_min_score: float = 0.8


@dataclass
class FaceConfig:
    """
    Aggregated configuration object for the face core.

    This is what the quality gate, matcher and verifier receive.
    """

    quality: FaceQualityConfig = field(default_factory=FaceQualityConfig)
    match: FaceMatchConfig = field(default_factory=FaceMatchConfig)
    quick: QuickCompareConfig = field(default_factory=QuickCompareConfig)


_TRUE_STRINGS = ("true", "yes", "on", "1")
_FALSE_STRINGS = ("false", "no", "off", "0")


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        s = value.strip().lower()
        if s in _TRUE_STRINGS:
            return True
        if s in _FALSE_STRINGS:
            return False
    raise ValueError(f"not a boolean: {value!r}")


def _parse_float(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    v = float(value)
    if not math.isfinite(v):
        raise ValueError(f"not a finite number: {value!r}")
    return v


def _overlay(obj: Any, section: Mapping[str, Any], label: str) -> None:
    """
    Assign known scalar fields from section into dataclass obj, coercing
    to the type of the current default. Unknown keys are ignored; values
    that do not parse (e.g. "maybe" for a bool, NaN for a float) are
    logged and the default is kept.
    """
    for key, value in section.items():
        if key == "weights" or not hasattr(obj, key):
            continue
        current = getattr(obj, key)
        try:
            if isinstance(current, bool):
                setattr(obj, key, _parse_bool(value))
            elif isinstance(current, int):
                setattr(obj, key, int(value))
            elif isinstance(current, float):
                setattr(obj, key, _parse_float(value))
        except (TypeError, ValueError):
            logger.warning("FaceConfig: invalid value for %s.%s: %r (kept %r)", label, key, value, current)


def default_face_config(face_section: Optional[Mapping[str, Any]] = None) -> FaceConfig:
    """
    Build a FaceConfig.

    Parameters
    ----------
    face_section : Optional[Mapping[str, Any]]
        Optional dictionary coming from config/default.yaml under the
        `face:` key. Values here override the dataclass defaults.

        Example (YAML -> dict):

            face:
              quality:
                max_yaw_deg: 15.0
                min_face_size_px: 150
              match:
                similarity_threshold: 0.92
                high_confidence_threshold: 0.95
                weights:
                  eye_nose_eye_angle: 2.0
              quick:
                yaw_penalty_deg: 15.0

    Returns
    -------
    FaceConfig
        Ready-to-use configuration object.
    """
    cfg = FaceConfig()

    if face_section is None:
        return cfg

    quality_sec = face_section.get("quality")
    if isinstance(quality_sec, Mapping):
        _overlay(cfg.quality, quality_sec, "quality")

    match_sec = face_section.get("match")
    if isinstance(match_sec, Mapping):
        _overlay(cfg.match, match_sec, "match")

        weights_sec = match_sec.get("weights")
        if isinstance(weights_sec, Mapping):
            for name, weight in weights_sec.items():
                if name not in FEATURE_NAMES:
                    logger.warning(
                        "FaceConfig: unknown feature weight '%s' ignored. Allowed: %s",
                        name,
                        ", ".join(FEATURE_NAMES),
                    )
                    continue
                try:
                    cfg.match.weights[name] = _parse_float(weight)
                except (TypeError, ValueError):
                    logger.warning(
                        "FaceConfig: invalid weight for %s: %r (kept %r)",
                        name,
                        weight,
                        cfg.match.weights[name],
                    )

    quick_sec = face_section.get("quick")
    if isinstance(quick_sec, Mapping):
        _overlay(cfg.quick, quick_sec, "quick")

    if cfg.match.high_confidence_threshold < cfg.match.similarity_threshold:
        logger.warning(
            "FaceConfig: high_confidence_threshold %.3f is below similarity_threshold %.3f; "
            "the borderline band is empty",
            cfg.match.high_confidence_threshold,
            cfg.match.similarity_threshold,
        )

    logger.info(
        "FaceConfig initialised | yaw/roll<=%.1f/%.1f eye_open>=%.2f min_face=%gpx | "
        "angle_thr=%.1f eye_ratio=[%.2f, %.2f] floor=%.2f | thr=%.3f high=%.3f close_bump=%.3f | "
        "clamp=%s right_eye_check=%s",
        cfg.quality.max_yaw_deg,
        cfg.quality.max_roll_deg,
        cfg.quality.min_eye_open_probability,
        cfg.quality.min_face_size_px,
        cfg.match.angle_threshold_deg,
        cfg.match.eye_ratio_min,
        cfg.match.eye_ratio_max,
        cfg.match.feature_floor,
        cfg.match.similarity_threshold,
        cfg.match.high_confidence_threshold,
        cfg.match.close_face_threshold_bump,
        cfg.match.clamp_feature_similarity,
        cfg.match.check_right_eye_consistency,
    )

    return cfg
