"""
Face core: quality gate, geometric matcher and diagnostics.

    from face import assess_quality, match_faces
"""

from .config import FaceConfig, default_face_config
from .matcher import match_faces
from .quality import assess_quality, is_face_potentially_close, is_face_too_close

__all__ = [
    "FaceConfig",
    "default_face_config",
    "match_faces",
    "assess_quality",
    "is_face_potentially_close",
    "is_face_too_close",
]
