import pytest

from face.config import FaceConfig, QuickCompareConfig
from face.quick_compare import QUICK_FEATURES, compare_faces_quick, comparison_details, quick_similarity
from schemas import LandmarkKind


def test_identical_faces_score_one(reference_face):
    res = compare_faces_quick(reference_face, reference_face)
    assert res["similarity"] == pytest.approx(1.0)
    assert res["is_match"] is True


def test_yaw_mismatch_scales_good_score_down(make_face):
    res = compare_faces_quick(make_face(yaw=0.0), make_face(yaw=20.0))
    assert res["similarity"] == pytest.approx(0.9)
    assert res["is_match"] is False
    assert res["details"]["y_rotation_diff"] == pytest.approx(20.0)


def test_yaw_penalty_needs_difference_above_limit(make_face):
    assert quick_similarity(make_face(yaw=0.0), make_face(yaw=15.0)) == pytest.approx(1.0)


def test_yaw_penalty_is_configurable(make_face):
    cfg = FaceConfig(quick=QuickCompareConfig(yaw_penalty_deg=5.0, yaw_penalty_factor=0.5))
    assert quick_similarity(make_face(yaw=0.0), make_face(yaw=6.0), cfg) == pytest.approx(0.5)


def test_only_triangle_features_matter(make_face):
    # moving the mouth changes nothing in the eye/nose triangle
    landmarks = {
        LandmarkKind.LEFT_EYE: (100, 100),
        LandmarkKind.RIGHT_EYE: (200, 100),
        LandmarkKind.NOSE_BASE: (150, 140),
        LandmarkKind.LEFT_MOUTH: (90, 220),
        LandmarkKind.RIGHT_MOUTH: (210, 220),
    }
    assert quick_similarity(make_face(), make_face(landmarks=landmarks)) == pytest.approx(1.0)
    assert len(QUICK_FEATURES) == 3


def test_score_is_clamped_to_unit_interval(make_face):
    landmarks = {
        LandmarkKind.LEFT_EYE: (100, 100),
        LandmarkKind.RIGHT_EYE: (200, 100),
        LandmarkKind.NOSE_BASE: (150, 600),
        LandmarkKind.LEFT_MOUTH: (120, 180),
        LandmarkKind.RIGHT_MOUTH: (180, 180),
    }
    score = quick_similarity(make_face(), make_face(landmarks=landmarks))
    assert 0.0 <= score <= 1.0


def test_missing_landmark_scores_zero(make_face):
    assert quick_similarity(make_face(), make_face(drop=[LandmarkKind.NOSE_BASE])) == 0.0


def test_comparison_details_skip_unknown_values(make_face):
    d = comparison_details(make_face(roll=None, left_eye_open=0.9), make_face(left_eye_open=0.7))
    assert "z_rotation_diff" not in d
    assert d["left_eye_open_diff"] == pytest.approx(0.2)
    assert d["y_rotation_diff"] == 0.0
