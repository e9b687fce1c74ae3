import logging

from face.diagnostics import MatchDiagnostics, face_metrics, format_match_reason, log_face_metrics
from face.matcher import match_faces
from schemas import LandmarkKind, MatchResult


def test_format_prefix_is_stable():
    text = format_match_reason(MatchResult.rejected("missing_landmarks"))
    assert text == "match=no:score=0.000:reason=missing_landmarks"


def test_format_includes_available_fields(reference_face):
    text = format_match_reason(match_faces(reference_face, reference_face))
    assert text.startswith("match=yes:score=1.000:reason=accept_high_confidence")
    assert ":yaw_diff=0.000" in text
    assert ":eye_ratio=1.000" in text
    assert ":thr=0.920" in text
    assert ":valid=10" in text
    assert "failed=" not in text


def test_format_lists_failed_features_sorted():
    result = MatchResult(
        is_match=False,
        similarity_score=0.5,
        failed_features=frozenset({"mouth_width_ratio", "eye_to_eye_ratio"}),
        details={"eye_ratio": float("nan")},
        reason="below_threshold",
    )
    text = format_match_reason(result)
    assert text.endswith(":failed=eye_to_eye_ratio,mouth_width_ratio")
    assert "eye_ratio=" not in text.split(":failed=")[0]


def test_details_skip_unreached_steps():
    diag = MatchDiagnostics(y_rotation_diff=12.0, decision="yaw_difference_too_large")
    details = diag.as_details()
    assert details["y_rotation_diff"] == 12.0
    assert details["similarities"] == {}
    assert details["failed_features"] == []
    assert "eye_ratio" not in details
    assert "valid_features" not in details


def test_face_metrics(make_face):
    m = face_metrics(make_face(drop=[LandmarkKind.LEFT_MOUTH], bbox=(200, 250)))
    assert m["landmarks_count"] == 4
    assert m["landmarks"]["left_mouth"] is None
    assert m["landmarks"]["left_eye"] == [100.0, 100.0]
    assert m["face_area"] == 50000.0


def test_log_face_metrics_at_debug(reference_face, caplog):
    caplog.set_level(logging.DEBUG, logger="face.diagnostics")
    log_face_metrics(reference_face, "REFERENCE")
    messages = [r.getMessage() for r in caplog.records]
    assert any(msg.startswith("REFERENCE face | yaw=0.0") for msg in messages)
    assert any("landmark right_cheek: not detected" in msg for msg in messages)


def test_log_face_metrics_silent_above_debug(reference_face, caplog):
    caplog.set_level(logging.INFO, logger="face.diagnostics")
    log_face_metrics(reference_face, "REFERENCE")
    assert caplog.records == []
