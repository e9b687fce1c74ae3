import pytest

from schemas import BoundingBox, DetectedFace, FaceInputError, LandmarkKind, MatchResult, Point2D
from schemas.detected_face import landmark_from_hint


def _payload(**overrides):
    data = {
        "landmarks": {
            "left_eye": [100, 100],
            "right_eye": {"x": 200, "y": 100},
            "nose_base": [150, 140],
            "left_mouth": [120, 180],
            "right_mouth": [180, 180],
        },
        "bounding_box": {"width": 300, "height": 320},
        "head_euler_angle_y": 2.5,
        "head_euler_angle_z": -1,
        "left_eye_open_probability": 0.93,
        "right_eye_open_probability": 0.88,
    }
    data.update(overrides)
    return data


class TestLandmarkHints:
    @pytest.mark.parametrize("hint", ["left_eye", "LEFT_EYE", "leftEye", " left_eye ", LandmarkKind.LEFT_EYE])
    def test_accepted_spellings(self, hint):
        assert landmark_from_hint(hint) is LandmarkKind.LEFT_EYE

    @pytest.mark.parametrize("hint", ["", "forehead", None, 3])
    def test_rejected(self, hint):
        with pytest.raises(FaceInputError):
            landmark_from_hint(hint)


class TestDetectedFaceFromDict:
    def test_full_payload(self):
        face = DetectedFace.from_dict(_payload())
        assert face.landmark(LandmarkKind.RIGHT_EYE) == Point2D(200.0, 100.0)
        assert face.bounding_box == BoundingBox(300.0, 320.0)
        assert face.bounding_box.area == 96000.0
        assert face.head_euler_angle_z == -1.0
        assert face.count_present() == 5

    def test_null_landmark_is_not_detected(self):
        data = _payload()
        data["landmarks"]["nose_base"] = None
        face = DetectedFace.from_dict(data)
        assert not face.has_landmark(LandmarkKind.NOSE_BASE)
        assert face.count_present() == 4

    def test_camel_case_detector_dump(self):
        data = _payload(boundingBox=[300, 300])
        del data["bounding_box"]
        data["landmarks"] = {"leftEye": [1, 2], "bottomMouth": [3, 4]}
        face = DetectedFace.from_dict(data)
        assert face.has_landmark(LandmarkKind.LEFT_EYE)
        assert face.has_landmark(LandmarkKind.BOTTOM_MOUTH)
        assert face.bounding_box.width == 300.0

    def test_optional_fields_default_to_none(self):
        face = DetectedFace.from_dict({"landmarks": {}, "bounding_box": [10, 10]})
        assert face.head_euler_angle_y is None
        assert face.left_eye_open_probability is None
        assert face.landmarks == {}

    @pytest.mark.parametrize(
        "payload",
        [
            [],
            {"landmarks": {}},
            {"landmarks": {}, "bounding_box": {"width": 10}},
            {"landmarks": [[1, 2]], "bounding_box": [10, 10]},
            {"landmarks": {"left_eye": [1]}, "bounding_box": [10, 10]},
            {"landmarks": {"left_eye": ["a", 1]}, "bounding_box": [10, 10]},
            {"landmarks": {}, "bounding_box": [10, 10], "left_eye_open_probability": 1.5},
            {"landmarks": {}, "bounding_box": [10, 10], "head_euler_angle_y": "left"},
            {"landmarks": {"nose_base": ["nan", 1]}, "bounding_box": [10, 10]},
            {"landmarks": {"nose_base": [1, "inf"]}, "bounding_box": [10, 10]},
            {"landmarks": {"left_mouth": {"x": float("-inf"), "y": 1}}, "bounding_box": [10, 10]},
            {"landmarks": {}, "bounding_box": [10, 10], "head_euler_angle_y": "nan"},
            {"landmarks": {}, "bounding_box": [10, 10], "head_euler_angle_z": float("inf")},
            {"landmarks": {}, "bounding_box": [10, 10], "right_eye_open_probability": "nan"},
            {"landmarks": {}, "bounding_box": {"width": "inf", "height": 10}},
        ],
    )
    def test_malformed_payloads(self, payload):
        with pytest.raises(FaceInputError):
            DetectedFace.from_dict(payload)

    def test_to_dict_is_readable_back(self):
        face = DetectedFace.from_dict(_payload())
        assert DetectedFace.from_dict(face.to_dict()) == face


class TestMatchResult:
    def test_rejected(self):
        result = MatchResult.rejected("below_threshold", {"failed_features": ["a"], "similarities": {"a": 0.1}})
        assert not result.is_match
        assert result.similarity_score == 0.0
        assert result.failed_features == frozenset({"a"})
        assert result.similarities == {"a": 0.1}

    def test_similarities_default_empty(self):
        assert MatchResult(is_match=False).similarities == {}
