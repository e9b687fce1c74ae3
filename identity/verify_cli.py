from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Union

import yaml

from core.config import Config, load_config
from core.logging_setup import setup_logging
from face.config import FaceConfig, default_face_config
from face.matcher import match_faces
from face.quality import assess_quality, is_face_too_close
from face.quick_compare import compare_faces_quick
from schemas import DetectedFace, FaceInputError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAIL = 1
EXIT_BAD_INPUT = 2


def _load_face(path: str) -> DetectedFace:
    """
    Read a detector dump (YAML or JSON) into a DetectedFace.
    """
    p = Path(path)
    if not p.exists():
        raise FaceInputError(f"Face file not found: {p}")
    with p.open("r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise FaceInputError(f"Cannot parse {p}: {exc}") from exc
    return DetectedFace.from_dict(data)


def _face_config(args: argparse.Namespace) -> FaceConfig:
    app_cfg = getattr(args, "app_config", None)
    if app_cfg is not None:
        return app_cfg.face_config()
    return default_face_config()


def _configure_logging(args: argparse.Namespace, app_cfg: Optional[Config]) -> None:
    """
    -v wins; otherwise the config's runtime.log_level, or WARNING without
    a config file. The log file is only written when runtime.log_to_file.
    """
    if args.verbose:
        level: Union[int, str] = logging.DEBUG
    elif app_cfg is not None:
        level = app_cfg.runtime.log_level
    else:
        level = logging.WARNING

    logs_dir = None
    if app_cfg is not None and app_cfg.runtime.log_to_file:
        logs_dir = app_cfg.paths.logs_dir

    setup_logging(logs_dir=logs_dir, level=level)


def cmd_check(args: argparse.Namespace) -> int:
    cfg = _face_config(args)
    face = _load_face(args.face)

    verdict = assess_quality(face, cfg.quality)
    too_close = is_face_too_close(face, cfg.quality)

    if verdict.passed and not too_close:
        print("quality: PASS")
        return EXIT_OK

    reason = verdict.reason if not verdict.passed else "face too close"
    print(f"quality: FAIL ({reason})")
    return EXIT_FAIL


def cmd_match(args: argparse.Namespace) -> int:
    cfg = _face_config(args)
    reference = _load_face(args.reference)
    probe = _load_face(args.probe)

    for label, face in (("reference", reference), ("probe", probe)):
        verdict = assess_quality(face, cfg.quality)
        if not verdict.passed:
            print(f"{label} quality: FAIL ({verdict.reason})")
            return EXIT_FAIL

    result = match_faces(reference, probe, cfg)

    print(f"match: {'YES' if result.is_match else 'NO'}")
    print(f"score: {result.similarity_score:.4f}")
    print(f"reason: {result.reason}")
    if result.failed_features:
        print("failed features: " + ", ".join(sorted(result.failed_features)))
    for key in ("y_rotation_diff", "z_rotation_diff", "eye_ratio", "effective_threshold"):
        if key in result.details:
            print(f"{key}: {result.details[key]:.4f}")
    for name, value in result.similarities.items():
        print(f"  {name:<32} {value:.4f}")

    return EXIT_OK if result.is_match else EXIT_FAIL


def cmd_compare(args: argparse.Namespace) -> int:
    cfg = _face_config(args)
    first = _load_face(args.first)
    second = _load_face(args.second)

    res = compare_faces_quick(first, second, cfg)
    print(f"match: {'YES' if res['is_match'] else 'NO'}")
    print(f"similarity: {res['similarity']:.4f}")
    for key, value in res["details"].items():
        print(f"{key}: {value:.4f}")

    return EXIT_OK if res["is_match"] else EXIT_FAIL


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="faceverify",
        description="Landmark-based face verification tools",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML config file (defaults are used if omitted)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable DEBUG logging",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    # check
    p_check = sub.add_parser("check", help="Run the quality gate on one face file")
    p_check.add_argument("face", help="Face file (YAML / JSON detector output)")
    p_check.set_defaults(func=cmd_check)

    # match
    p_match = sub.add_parser("match", help="Verify a probe face against a reference face")
    p_match.add_argument("reference", help="Reference face file")
    p_match.add_argument("probe", help="Probe face file")
    p_match.set_defaults(func=cmd_match)

    # compare
    p_cmp = sub.add_parser("compare", help="Quick similarity between two face files")
    p_cmp.add_argument("first", help="First face file")
    p_cmp.add_argument("second", help="Second face file")
    p_cmp.set_defaults(func=cmd_compare)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    try:
        app_cfg = load_config(args.config) if args.config else None
    except (FileNotFoundError, ValueError, yaml.YAMLError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_BAD_INPUT

    _configure_logging(args, app_cfg)
    args.app_config = app_cfg

    try:
        return args.func(args)
    except (FaceInputError, FileNotFoundError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_BAD_INPUT


if __name__ == "__main__":
    sys.exit(main())
