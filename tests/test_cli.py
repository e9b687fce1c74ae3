import logging

import pytest
import yaml

from identity import verify_cli
from identity.verify_cli import EXIT_BAD_INPUT, EXIT_FAIL, EXIT_OK, main


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    calls = []
    monkeypatch.setattr(verify_cli, "setup_logging", lambda **kw: calls.append(kw))
    return calls


@pytest.fixture
def face_file(tmp_path):
    def write(face, name="face.yaml"):
        path = tmp_path / name
        path.write_text(yaml.safe_dump(face.to_dict()), encoding="utf-8")
        return str(path)

    return write


class TestCheck:
    def test_pass(self, face_file, reference_face, capsys):
        assert main(["check", face_file(reference_face)]) == EXIT_OK
        assert "quality: PASS" in capsys.readouterr().out

    def test_quality_fail(self, face_file, make_face, capsys):
        assert main(["check", face_file(make_face(yaw=30.0))]) == EXIT_FAIL
        assert "quality: FAIL (yaw too large)" in capsys.readouterr().out

    def test_too_close(self, face_file, make_face, capsys):
        assert main(["check", face_file(make_face(bbox=(1000, 1000)))]) == EXIT_FAIL
        assert "face too close" in capsys.readouterr().out

    def test_missing_file(self, tmp_path, capsys):
        assert main(["check", str(tmp_path / "missing.yaml")]) == EXIT_BAD_INPUT
        assert "not found" in capsys.readouterr().err

    def test_malformed_file(self, tmp_path, capsys):
        path = tmp_path / "bad.yaml"
        path.write_text("landmarks: {}\n", encoding="utf-8")
        assert main(["check", str(path)]) == EXIT_BAD_INPUT
        assert "bounding_box" in capsys.readouterr().err


class TestMatch:
    def test_same_face(self, face_file, reference_face, capsys):
        ref = face_file(reference_face, "ref.yaml")
        probe = face_file(reference_face, "probe.yaml")
        assert main(["match", ref, probe]) == EXIT_OK
        out = capsys.readouterr().out
        assert "match: YES" in out
        assert "reason: accept_high_confidence" in out
        assert "eye_nose_eye_angle" in out

    def test_rejected_probe(self, face_file, reference_face, make_face, capsys):
        ref = face_file(reference_face, "ref.yaml")
        probe = face_file(make_face(scale=1.3), "probe.yaml")
        assert main(["match", ref, probe]) == EXIT_FAIL
        out = capsys.readouterr().out
        assert "match: NO" in out
        assert "reason: eye_ratio_out_of_range" in out

    def test_probe_fails_quality(self, face_file, reference_face, make_face, capsys):
        ref = face_file(reference_face, "ref.yaml")
        probe = face_file(make_face(left_eye_open=0.1), "probe.yaml")
        assert main(["match", ref, probe]) == EXIT_FAIL
        assert "probe quality: FAIL (eye(s) not open)" in capsys.readouterr().out

    def test_config_file_is_applied(self, tmp_path, face_file, reference_face, make_face, quiet_logging):
        cfg_path = tmp_path / "cfg.yaml"
        cfg_path.write_text(
            yaml.safe_dump({"runtime": {"log_level": "ERROR"}, "face": {"match": {"angle_threshold_deg": 2.0}}}),
            encoding="utf-8",
        )
        ref = face_file(reference_face, "ref.yaml")
        probe = face_file(make_face(yaw=3.0), "probe.yaml")
        assert main(["match", ref, probe]) == EXIT_OK
        assert main(["--config", str(cfg_path), "match", ref, probe]) == EXIT_FAIL
        assert quiet_logging[-1] == {"logs_dir": None, "level": "ERROR"}

    def test_missing_config(self, tmp_path, face_file, reference_face):
        path = face_file(reference_face)
        assert main(["--config", str(tmp_path / "nope.yaml"), "match", path, path]) == EXIT_BAD_INPUT


class TestCompare:
    def test_identical(self, face_file, reference_face, capsys):
        path = face_file(reference_face)
        assert main(["compare", path, path]) == EXIT_OK
        out = capsys.readouterr().out
        assert "similarity: 1.0000" in out

    def test_yaw_penalty(self, face_file, make_face, capsys):
        first = face_file(make_face(yaw=0.0), "a.yaml")
        second = face_file(make_face(yaw=20.0), "b.yaml")
        assert main(["compare", first, second]) == EXIT_FAIL
        assert "y_rotation_diff: 20.0000" in capsys.readouterr().out


def test_verbose_requests_debug(face_file, reference_face, quiet_logging):
    main(["-v", "check", face_file(reference_face)])
    assert quiet_logging[-1]["level"] == logging.DEBUG


def test_subcommand_required():
    with pytest.raises(SystemExit):
        main([])
