"""
identity/verification.py

Capture-layer orchestration around the face core.

FaceVerifier turns raw detector output (a list of DetectedFace for one
image) into a user-facing VerificationOutcome:

    probe checks  -> reference loading -> match_faces -> outcome

and keeps the per-user reference faces in an explicit ReferenceCache
instead of hidden global state. The stored reference images themselves
live behind `loader`, which the caller supplies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence

from core.config import Config
from face.config import FaceConfig
from face.diagnostics import format_match_reason, log_face_metrics
from face.matcher import match_faces
from face.quality import assess_quality, is_face_too_close
from face.quick_compare import compare_faces_quick
from schemas import DetectedFace, MatchResult

from .reference_cache import ReferenceCache

logger = logging.getLogger(__name__)

ReferenceLoader = Callable[[str], Optional[Sequence[DetectedFace]]]


class VerificationStatus(str, Enum):
    """
    Outcome categories. Values are strings so they are easy to log and
    to return from an API.

    MATCH / NO_MATCH       : comparison ran ("did not match" is NO_MATCH)
    READY                  : a reference face was accepted
    NO_FACE ... NO_REFERENCE : could not verify, user may retry
    ERROR                  : unexpected internal fault
    """

    MATCH = "match"
    NO_MATCH = "no_match"
    READY = "ready"

    NO_FACE = "no_face"
    MULTIPLE_FACES = "multiple_faces"
    POOR_QUALITY = "poor_quality"
    TOO_CLOSE = "too_close"
    NO_REFERENCE = "no_reference"

    ERROR = "error"


RETRYABLE_STATUSES = frozenset(
    {
        VerificationStatus.NO_FACE,
        VerificationStatus.MULTIPLE_FACES,
        VerificationStatus.POOR_QUALITY,
        VerificationStatus.TOO_CLOSE,
        VerificationStatus.NO_REFERENCE,
    }
)


@dataclass
class VerificationOutcome:
    status: VerificationStatus
    message: str
    match: Optional[MatchResult] = None
    face: Optional[DetectedFace] = None
    similarity: Optional[float] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_match(self) -> bool:
        return self.status is VerificationStatus.MATCH

    @property
    def could_not_verify(self) -> bool:
        return self.status in RETRYABLE_STATUSES


class FaceVerifier:
    """
    Reference management + probe verification for one deployment.

    Parameters
    ----------
    loader : callable(user_id) -> Sequence[DetectedFace] or None
        Runs the detector on the user's stored reference image. None means
        the user has no reference image.
    cfg : FaceConfig, optional
    cache : ReferenceCache, optional
        Shared cache; a private 10 minute cache is created if omitted.
    """

    def __init__(
        self,
        loader: ReferenceLoader,
        cfg: Optional[FaceConfig] = None,
        cache: Optional[ReferenceCache] = None,
    ) -> None:
        self.loader = loader
        self.cfg = cfg or FaceConfig()
        self.cache = cache if cache is not None else ReferenceCache()

    @classmethod
    def from_config(cls, loader: ReferenceLoader, config: Config) -> "FaceVerifier":
        """Build a verifier from the loaded YAML config (face thresholds + cache TTL)."""
        return cls(
            loader,
            cfg=config.face_config(),
            cache=ReferenceCache(ttl_sec=config.reference_cache.ttl_sec),
        )

    # ------------------------------------------------------------------
    # Reference side
    # ------------------------------------------------------------------

    def prepare_reference(self, detections: Sequence[DetectedFace]) -> VerificationOutcome:
        """
        Validate the detector output of a new reference photo (enrollment).
        """
        if not detections:
            return VerificationOutcome(
                VerificationStatus.NO_FACE,
                "No face detected in the image. Please try again with a clearer photo.",
            )

        if len(detections) > 1:
            logger.warning("Multiple faces (%d) in new reference image", len(detections))
            return VerificationOutcome(
                VerificationStatus.MULTIPLE_FACES,
                "Multiple faces detected. Please use an image with only your face.",
            )

        face = detections[0]
        log_face_metrics(face, "NEW REFERENCE")

        verdict = assess_quality(face, self.cfg.quality)
        if not verdict.passed:
            return VerificationOutcome(
                VerificationStatus.POOR_QUALITY,
                "Face quality not good enough. Please use a clearer photo with good "
                "lighting and look directly at the camera.",
                details={"quality_reason": verdict.reason},
            )

        if is_face_too_close(face, self.cfg.quality):
            return VerificationOutcome(
                VerificationStatus.TOO_CLOSE,
                "Face too close to camera. Please move back a bit and retake the photo.",
            )

        return VerificationOutcome(VerificationStatus.READY, "Face detected successfully", face=face)

    def load_reference(self, user_id: str) -> VerificationOutcome:
        """
        Return the cached reference for user_id, reloading it through the
        loader when missing or stale.
        """
        cached = self.cache.get(user_id)
        if cached is not None:
            return VerificationOutcome(VerificationStatus.READY, "Ready for face verification", face=cached)

        detections = self.loader(user_id)
        if detections is None:
            logger.warning("No reference face image for user=%s", user_id)
            return VerificationOutcome(
                VerificationStatus.NO_REFERENCE,
                "No face image found. Please register first with a face image.",
            )

        if not detections:
            return VerificationOutcome(
                VerificationStatus.NO_REFERENCE,
                "No face detected in your reference image. Please register again with a clearer image.",
            )

        if len(detections) > 1:
            logger.warning("Multiple faces (%d) in reference image of user=%s", len(detections), user_id)
            return VerificationOutcome(
                VerificationStatus.NO_REFERENCE,
                "Multiple faces detected in your reference image. Please use an image with only your face.",
            )

        face = detections[0]
        verdict = assess_quality(face, self.cfg.quality)
        if not verdict.passed:
            logger.warning("Reference face of user=%s rejected: %s", user_id, verdict.reason)
            return VerificationOutcome(
                VerificationStatus.NO_REFERENCE,
                "Reference face quality is not good enough. Please register again with a clearer image.",
                details={"quality_reason": verdict.reason},
            )

        log_face_metrics(face, "REFERENCE")
        self.cache.put(user_id, face)
        return VerificationOutcome(VerificationStatus.READY, "Ready for face verification", face=face)

    def refresh_reference(self, user_id: str) -> VerificationOutcome:
        self.cache.invalidate(user_id)
        return self.load_reference(user_id)

    # ------------------------------------------------------------------
    # Probe side
    # ------------------------------------------------------------------

    def verify(self, user_id: str, detections: Sequence[DetectedFace]) -> VerificationOutcome:
        """
        Verify a fresh capture against the user's reference face.

        Never raises: unexpected faults come back as status ERROR.
        """
        try:
            return self._verify(user_id, detections)
        except Exception as exc:
            logger.error("Face verification failed for user=%s: %s", user_id, exc, exc_info=True)
            return VerificationOutcome(
                VerificationStatus.ERROR,
                f"Error during face comparison: {exc}",
                details={"error": str(exc)},
            )

    def _verify(self, user_id: str, detections: Sequence[DetectedFace]) -> VerificationOutcome:
        if not detections:
            return VerificationOutcome(
                VerificationStatus.NO_FACE,
                "No face detected. Please try again with better lighting.",
            )

        if len(detections) > 1:
            logger.warning("Multiple faces detected (%d)", len(detections))
            return VerificationOutcome(
                VerificationStatus.MULTIPLE_FACES,
                "Multiple faces detected. Please ensure only your face is in view.",
            )

        probe = detections[0]
        log_face_metrics(probe, "DETECTED")

        verdict = assess_quality(probe, self.cfg.quality)
        if not verdict.passed:
            return VerificationOutcome(
                VerificationStatus.POOR_QUALITY,
                "Face quality not good enough. Please try again with better lighting.",
                details={"quality_reason": verdict.reason},
            )

        if is_face_too_close(probe, self.cfg.quality):
            return VerificationOutcome(
                VerificationStatus.TOO_CLOSE,
                "Face too close to camera. Please move back a bit.",
            )

        ref = self.load_reference(user_id)
        if ref.status is not VerificationStatus.READY or ref.face is None:
            return ref

        result = match_faces(ref.face, probe, self.cfg)
        logger.info("Verification user=%s | %s", user_id, format_match_reason(result))

        pct = result.similarity_score * 100.0
        if result.is_match:
            return VerificationOutcome(
                VerificationStatus.MATCH,
                f"Face recognized with {pct:.1f}% confidence",
                match=result,
                face=probe,
                similarity=result.similarity_score,
            )
        return VerificationOutcome(
            VerificationStatus.NO_MATCH,
            f"Face not recognized. (Score: {pct:.1f}%)",
            match=result,
            face=probe,
            similarity=result.similarity_score,
        )

    # ------------------------------------------------------------------
    # Two arbitrary captures
    # ------------------------------------------------------------------

    def compare_pair(self, first: DetectedFace, second: DetectedFace) -> VerificationOutcome:
        """
        Quality-gate two captures and run the quick pairwise similarity.
        """
        for label, face in (("First", first), ("Second", second)):
            verdict = assess_quality(face, self.cfg.quality)
            if not verdict.passed:
                return VerificationOutcome(
                    VerificationStatus.POOR_QUALITY,
                    f"{label} face quality not good enough",
                    similarity=0.0,
                    details={"quality_reason": verdict.reason},
                )

        res = compare_faces_quick(first, second, self.cfg)
        pct = res["similarity"] * 100.0
        if res["is_match"]:
            status, message = VerificationStatus.MATCH, f"Faces match with {pct:.1f}% confidence"
        else:
            status, message = VerificationStatus.NO_MATCH, f"Faces do not match ({pct:.1f}% similarity)"

        return VerificationOutcome(status, message, similarity=res["similarity"], details=res["details"])
