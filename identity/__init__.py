from .reference_cache import ReferenceCache
from .verification import FaceVerifier, VerificationOutcome, VerificationStatus

__all__ = [
    "ReferenceCache",
    "FaceVerifier",
    "VerificationOutcome",
    "VerificationStatus",
]
